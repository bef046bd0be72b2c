from PIL import Image
import pytest

from mockup_studio import config
from mockup_studio.rendering import (
    GUIDES_LAYER,
    SELECTION_LAYER,
    StripRenderer,
    StripScene,
    StripSurface,
)
from mockup_studio.store import FrameStore
from utils.frame_layout import calculate_frame_layout

RED = (255, 0, 0, 255)


def _scene(frame_count=2, preset="even", images=None, width=300, height=500):
    store = FrameStore()
    for _ in range(frame_count - 1):
        store.add_frame()
    snapshot = store.snapshot()
    layout = calculate_frame_layout(snapshot.frame_ids, preset, width, height)
    return store, StripScene(layout, snapshot.frames, images or {}, snapshot.active_frame_id)


def _screen_center(renderer, scene, frame_id):
    frame_slice = scene.layout.slice_for(frame_id)
    frame = next(f for f in scene.frames if f.id == frame_id)
    tile, (left, top) = renderer.render_device(frame_slice, frame, None)
    return left + tile.width // 2, top + tile.height // 2


def test_strip_has_layout_size_and_background():
    _, scene = _scene(frame_count=3)
    strip = StripRenderer().render(scene, show_guides=False, show_selection=False)
    assert strip.size == (900, 500)
    assert strip.getpixel((1, 1)) == config.BACKGROUND_COLOR


def test_missing_screenshot_draws_placeholder_and_loaded_one_fills_screen():
    _, scene = _scene(frame_count=2)
    renderer = StripRenderer()
    empty = renderer.render(scene, show_guides=False, show_selection=False)
    center = _screen_center(renderer, scene, "frame-1")
    assert empty.getpixel(center) == config.SCREEN_PLACEHOLDER_COLOR

    _, filled_scene = _scene(frame_count=2, images={"frame-1": Image.new("RGBA", (50, 100), RED)})
    filled = renderer.render(filled_scene, show_guides=False, show_selection=False)
    assert filled.getpixel(center) == RED
    # the other frame still shows its placeholder
    assert filled.getpixel(_screen_center(renderer, filled_scene, "frame-2")) == config.SCREEN_PLACEHOLDER_COLOR


def test_guides_drawn_only_when_layer_visible():
    _, scene = _scene(frame_count=2)
    renderer = StripRenderer()
    assert renderer.cut_lines(scene.layout) == [300]
    with_guides = renderer.render(scene, show_guides=True, show_selection=False)
    without = renderer.render(scene, show_guides=False, show_selection=False)
    assert with_guides.getpixel((300, 10)) == config.GUIDE_COLOR
    assert without.getpixel((300, 10)) == config.BACKGROUND_COLOR


def test_overlap_guides_mark_both_edges():
    _, scene = _scene(frame_count=2, preset="overlap")
    assert StripRenderer.cut_lines(scene.layout) == [264, 300]


def test_selection_outlines_active_frame():
    _, scene = _scene(frame_count=2)
    strip = StripRenderer().render(scene, show_guides=False, show_selection=True)
    assert scene.active_frame_id == "frame-2"
    assert strip.getpixel((301, 250)) == config.SELECTION_COLOR
    assert strip.getpixel((1, 250)) == config.BACKGROUND_COLOR


def test_offset_moves_device_without_changing_size():
    store, scene = _scene(frame_count=1)
    renderer = StripRenderer()
    frame_slice = scene.layout.frames[0]
    tile, origin = renderer.render_device(frame_slice, scene.frames[0], None)

    store.set_frame_offset("frame-1", 10, -5)
    moved_frame = store.snapshot().frames[0]
    moved_tile, moved_origin = renderer.render_device(frame_slice, moved_frame, None)

    assert moved_tile.size == tile.size
    assert moved_origin == (origin[0] + 10, origin[1] - 5)


def test_rotation_expands_tile():
    store, scene = _scene(frame_count=1)
    renderer = StripRenderer()
    frame_slice = scene.layout.frames[0]
    tile, _ = renderer.render_device(frame_slice, scene.frames[0], None)
    store.set_frame_properties("frame-1", rotation=30)
    rotated, _ = renderer.render_device(frame_slice, store.snapshot().frames[0], None)
    assert rotated.width > tile.width


def test_hidden_device_body_leaves_only_screen():
    store, scene = _scene(frame_count=1)
    store.toggle_frame_device("frame-1")
    frame = store.snapshot().frames[0]
    tile, _ = StripRenderer().render_device(scene.layout.frames[0], frame, None)
    assert tile.getpixel((0, tile.height // 2))[3] == 0


def test_text_overlay_renders_without_installed_fonts():
    store, _ = _scene(frame_count=1)
    store.set_headline("frame-1", text="Ship faster")
    snapshot = store.snapshot()
    layout = calculate_frame_layout(snapshot.frame_ids, "even", 600, 900)
    scene = StripScene(layout, snapshot.frames, {}, snapshot.active_frame_id)
    with_text = StripRenderer().render(scene, show_guides=False, show_selection=False)
    store.set_headline("frame-1", text="")
    plain_scene = StripScene(layout, store.snapshot().frames, {}, None)
    plain = StripRenderer().render(plain_scene, show_guides=False, show_selection=False)
    top_band = (0, 0, 600, 200)
    assert with_text.crop(top_band).tobytes() != plain.crop(top_band).tobytes()


def test_surface_scales_output_and_reports_layers():
    _, scene = _scene(frame_count=2)
    surface = StripSurface(scale=0.5)
    assert not surface.is_ready
    surface.set_scene(scene)
    assert surface.is_ready
    assert [layer.name for layer in surface.editor_layers()] == [GUIDES_LAYER, SELECTION_LAYER]

    assert surface.to_image(0, 0, 600, 500).size == (300, 250)
    assert surface.to_image(300, 0, 300, 500, pixel_ratio=2.0).size == (300, 500)

    with pytest.raises(ValueError):
        surface.scale = 0
    with pytest.raises(ValueError):
        surface.to_image(0, 0, 0, 10)


def test_surface_rerenders_when_layer_visibility_changes():
    _, scene = _scene(frame_count=2)
    surface = StripSurface()
    surface.set_scene(scene)
    first = surface.render_strip()
    assert surface.render_strip() is first
    surface.layer(GUIDES_LAYER).hide()
    second = surface.render_strip()
    assert second is not first
    assert second.getpixel((300, 10)) == config.BACKGROUND_COLOR
