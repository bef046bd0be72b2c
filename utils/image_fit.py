"""Cover-fit placement of a screenshot inside a device screen mask."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple
import math

from mockup_studio.errors import InvalidLayoutInput
from .frame_layout import round_half_up


class MaskRect(Protocol):
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class FitResult:
    """Placement of an image that fully covers a mask."""

    x: float
    y: float
    width: float
    height: float
    scale: float

    def pixel_box(self) -> Tuple[int, int, int, int]:
        """Return ``(left, top, width, height)`` snapped to whole pixels."""
        left = round_half_up(self.x)
        top = round_half_up(self.y)
        return (
            left,
            top,
            max(1, round_half_up(self.x + self.width) - left),
            max(1, round_half_up(self.y + self.height) - top),
        )


def _positive(name: str, value: float) -> float:
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise InvalidLayoutInput(f"{name} must be positive, got {value!r}")
    return number


def fit_image_to_mask(img_width: float, img_height: float, mask: MaskRect) -> FitResult:
    """Scale an image so it covers ``mask`` while keeping its aspect ratio.

    The axis on which the image is relatively narrower is matched exactly to
    the mask; the other axis overflows and is centered, so the offset on that
    axis can be negative relative to the mask origin.
    """
    iw = _positive("img_width", img_width)
    ih = _positive("img_height", img_height)
    mw = _positive("mask.width", mask.width)
    mh = _positive("mask.height", mask.height)

    if iw / ih > mw / mh:
        height = mh
        width = iw * (mh / ih)
        x = mask.x - (width - mw) / 2
        y = float(mask.y)
    else:
        width = mw
        height = ih * (mw / iw)
        x = float(mask.x)
        y = mask.y - (height - mh) / 2

    return FitResult(x=x, y=y, width=width, height=height, scale=width / iw)
