import pytest

from mockup_studio.devices import ScreenMask, get_device
from mockup_studio.errors import InvalidLayoutInput
from utils.image_fit import fit_image_to_mask


def test_wide_image_matches_mask_height():
    result = fit_image_to_mask(2000, 1000, ScreenMask(x=10, y=20, width=300, height=600))
    assert result.x == pytest.approx(-440)
    assert result.y == pytest.approx(20)
    assert result.width == pytest.approx(1200)
    assert result.height == pytest.approx(600)
    assert result.scale == pytest.approx(0.6)


def test_tall_image_matches_mask_width():
    result = fit_image_to_mask(1000, 4000, ScreenMask(x=0, y=0, width=500, height=1000))
    assert result.x == 0
    assert result.width == pytest.approx(500)
    assert result.height == pytest.approx(2000)
    assert result.y == pytest.approx(-500)


def test_square_image_in_square_mask_has_no_offset():
    result = fit_image_to_mask(800, 800, ScreenMask(x=5, y=7, width=400, height=400))
    assert (result.x, result.y) == (5, 7)
    assert (result.width, result.height) == (400, 400)
    assert result.scale == pytest.approx(0.5)


@pytest.mark.parametrize(
    "size",
    [(1179, 2556), (2556, 1179), (1, 5000), (5000, 1), (640, 480), (1048, 2380)],
)
def test_fit_always_covers_the_device_screen(size):
    mask = get_device("iphone").screen
    result = fit_image_to_mask(*size, mask)
    eps = 1e-6
    assert result.width >= mask.width - eps
    assert result.height >= mask.height - eps
    assert result.x <= mask.x + eps
    assert result.y <= mask.y + eps
    assert result.x + result.width >= mask.x + mask.width - eps
    assert result.y + result.height >= mask.y + mask.height - eps
    assert result.x == pytest.approx(mask.x) or result.y == pytest.approx(mask.y)


def test_pixel_box_rounds_edges_half_up():
    result = fit_image_to_mask(2000, 1000, ScreenMask(x=10, y=20, width=300, height=600))
    assert result.pixel_box() == (-440, 20, 1200, 600)


@pytest.mark.parametrize(
    "img, mask",
    [
        ((0, 100), ScreenMask(0, 0, 10, 10)),
        ((100, -1), ScreenMask(0, 0, 10, 10)),
        ((100, 100), ScreenMask(0, 0, 0, 10)),
        ((100, 100), ScreenMask(0, 0, 10, -10)),
        ((float("nan"), 100), ScreenMask(0, 0, 10, 10)),
    ],
)
def test_invalid_input_raises(img, mask):
    with pytest.raises(InvalidLayoutInput):
        fit_image_to_mask(*img, mask)
