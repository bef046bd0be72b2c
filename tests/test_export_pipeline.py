"""Tests for the export protocol: restoration, slicing and packaging."""
from __future__ import annotations

import io
import zipfile
from datetime import datetime

import pytest
from PIL import Image, ImageChops

from mockup_studio.errors import ExportNotReady, ImageDecodeFailure, InvalidLayoutInput
from mockup_studio.export import ExportMode, ExportPipeline, ExportResult
from mockup_studio.rendering import GUIDES_LAYER, SELECTION_LAYER, StripRenderer, StripScene, StripSurface
from mockup_studio.store import FrameStore
from utils.frame_layout import calculate_frame_layout

WIDTH, HEIGHT = 300, 500
NOW = datetime(2024, 3, 5, 14, 7)
COLORS = [(220, 38, 38, 255), (22, 163, 74, 255), (37, 99, 235, 255), (234, 179, 8, 255)]


def _scene(frame_count=3, preset="even", width=WIDTH, height=HEIGHT):
    store = FrameStore()
    for _ in range(frame_count - 1):
        store.add_frame()
    snapshot = store.snapshot()
    layout = calculate_frame_layout(snapshot.frame_ids, preset, width, height)
    images = {
        frame_id: Image.new("RGBA", (30, 60), COLORS[index])
        for index, frame_id in enumerate(snapshot.frame_ids)
    }
    return StripScene(layout, snapshot.frames, images, snapshot.active_frame_id)


def _surface(scene=None, scale=0.5):
    surface = StripSurface(scale=scale)
    surface.set_scene(scene or _scene())
    return surface


def _export(surface, pipeline=None, mode=ExportMode.BATCH, preset="even", width=WIDTH, height=HEIGHT):
    pipeline = pipeline or ExportPipeline(yield_fn=lambda: None)
    ids = [frame.id for frame in surface.scene.frames] if surface.scene else []
    return pipeline.export_composite(surface, ids, preset, width, height, mode, now=NOW)


def _visibility(surface):
    return {layer.name: layer.visible for layer in surface.editor_layers()}


def _same_pixels(a: Image.Image, b: Image.Image) -> bool:
    return a.size == b.size and ImageChops.difference(a, b).getbbox() is None


class FailingSurface(StripSurface):
    def to_image(self, x, y, width, height, pixel_ratio=1.0):
        raise OSError("rasterizer exploded")


def test_batch_export_packages_one_png_per_frame():
    surface = _surface()
    result = _export(surface)

    assert result.filename == "0503241407-mockups.zip"
    assert result.media_type == "application/zip"
    assert result.entries == ("1.png", "2.png", "3.png")
    with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
        assert archive.namelist() == ["1.png", "2.png", "3.png"]
        for name in archive.namelist():
            with Image.open(io.BytesIO(archive.read(name))) as png:
                assert png.format == "PNG"
                assert png.size == (WIDTH, HEIGHT)


def test_batch_export_can_include_full_strip():
    surface = _surface()
    pipeline = ExportPipeline(yield_fn=lambda: None, include_full_strip=True)
    result = _export(surface, pipeline)
    with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
        assert archive.namelist() == ["1.png", "2.png", "3.png", "_full.png"]
        with Image.open(io.BytesIO(archive.read("_full.png"))) as png:
            assert png.size == (3 * WIDTH, HEIGHT)


def test_batch_slices_match_frames_rendered_alone():
    scene = _scene()
    surface = _surface(scene)
    result = _export(surface)
    renderer = StripRenderer()

    with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
        for index, frame in enumerate(scene.frames, start=1):
            alone = StripScene(
                calculate_frame_layout([frame.id], "even", WIDTH, HEIGHT),
                (frame,),
                {frame.id: scene.images[frame.id]},
            )
            expected = renderer.render(alone, show_guides=False, show_selection=False)
            with Image.open(io.BytesIO(archive.read(f"{index}.png"))) as png:
                assert _same_pixels(png.convert("RGBA"), expected)


def test_hero_slices_use_layout_widths():
    scene = _scene(preset="hero")
    surface = _surface(scene)
    result = _export(surface, preset="hero")
    widths = []
    with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
        for name in result.entries:
            with Image.open(io.BytesIO(archive.read(name))) as png:
                widths.append(png.width)
    assert widths == [s.width for s in scene.layout.frames]


def test_single_mode_exports_whole_canvas():
    surface = _surface()
    result = _export(surface, mode="single")
    assert result.filename == "0503241407-canvas.png"
    assert result.media_type == "image/png"
    with Image.open(io.BytesIO(result.payload)) as png:
        assert png.size == (3 * WIDTH, HEIGHT)


def test_batch_with_one_frame_falls_back_to_single_png():
    surface = _surface(_scene(frame_count=1))
    result = _export(surface, mode=ExportMode.BATCH)
    assert result.filename == "0503241407-mockup.png"
    assert result.media_type == "image/png"
    with Image.open(io.BytesIO(result.payload)) as png:
        assert png.size == (WIDTH, HEIGHT)


def test_export_ignores_display_scale_and_hides_editor_layers():
    scene = _scene()
    surface = _surface(scene, scale=0.25)
    seen = []
    pipeline = ExportPipeline(
        yield_fn=lambda: None,
        on_progress=lambda done, total: seen.append((done, total, surface.scale, _visibility(surface))),
    )
    result = _export(surface, pipeline, mode="single")

    assert seen == [(1, 1, 1.0, {GUIDES_LAYER: False, SELECTION_LAYER: False})]
    clean = StripRenderer().render(scene, show_guides=False, show_selection=False)
    with Image.open(io.BytesIO(result.payload)) as png:
        assert _same_pixels(png.convert("RGBA"), clean)


def test_restores_scale_and_exact_layer_visibility_after_success():
    surface = _surface(scale=0.4)
    surface.layer(SELECTION_LAYER).hide()
    before = _visibility(surface)

    _export(surface)

    assert surface.scale == 0.4
    assert _visibility(surface) == before == {GUIDES_LAYER: True, SELECTION_LAYER: False}


def test_restores_state_when_rasterization_fails():
    surface = FailingSurface(scale=0.3)
    surface.set_scene(_scene())
    before = _visibility(surface)

    with pytest.raises(ImageDecodeFailure, match="rasterizer exploded"):
        _export(surface)

    assert surface.scale == 0.3
    assert _visibility(surface) == before


def test_failure_mid_batch_emits_nothing_and_restores():
    surface = _surface(scale=0.6)
    calls = []

    def progress(done, total):
        calls.append(done)
        if done == 2:
            raise RuntimeError("disk full")

    pipeline = ExportPipeline(yield_fn=lambda: None, on_progress=progress)
    with pytest.raises(ImageDecodeFailure):
        _export(surface, pipeline)

    assert calls == [1, 2]
    assert surface.scale == 0.6
    assert all(_visibility(surface).values())


def test_invalid_layout_input_passes_through_and_restores():
    surface = _surface(scale=0.7)
    with pytest.raises(InvalidLayoutInput):
        _export(surface, width=0)
    assert surface.scale == 0.7
    assert all(_visibility(surface).values())


def test_not_ready_surface_is_left_untouched():
    surface = StripSurface(scale=0.5)
    surface.layer(GUIDES_LAYER).hide()
    pipeline = ExportPipeline(yield_fn=lambda: None)

    with pytest.raises(ExportNotReady):
        pipeline.export_composite(surface, ["frame-1"], "even", WIDTH, HEIGHT, "batch")

    assert surface.scale == 0.5
    assert _visibility(surface) == {GUIDES_LAYER: False, SELECTION_LAYER: True}


def test_empty_frame_list_is_not_ready():
    surface = _surface()
    with pytest.raises(ExportNotReady):
        ExportPipeline(yield_fn=lambda: None).export_composite(surface, [], "even", WIDTH, HEIGHT)


def test_yields_between_slices_and_reports_progress():
    surface = _surface(_scene(frame_count=4))
    yields = []
    progress = []
    pipeline = ExportPipeline(yield_fn=lambda: yields.append(1), on_progress=lambda d, t: progress.append((d, t)))
    _export(surface, pipeline)
    assert len(yields) == 3
    assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_pixel_scale_multiplies_output_size():
    surface = _surface(_scene(frame_count=2))
    pipeline = ExportPipeline(yield_fn=lambda: None, pixel_scale=2.0)
    result = _export(surface, pipeline)
    with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
        with Image.open(io.BytesIO(archive.read("2.png"))) as png:
            assert png.size == (2 * WIDTH, 2 * HEIGHT)


def test_result_save_writes_payload(tmp_path):
    result = ExportResult("0101240000-mockup.png", b"\x89PNG fake", "image/png")
    path = result.save(tmp_path)
    assert path == (tmp_path / "0101240000-mockup.png").resolve()
    assert path.read_bytes() == b"\x89PNG fake"

    with pytest.raises(ValueError):
        result.save(tmp_path / "missing")


def test_surface_drawing_another_layout_is_rejected_and_restored():
    surface = _surface(_scene(preset="even"), scale=0.5)
    surface.layer(SELECTION_LAYER).hide()

    with pytest.raises(ExportNotReady, match="different layout"):
        _export(surface, preset="hero")

    assert surface.scale == 0.5
    assert _visibility(surface) == {GUIDES_LAYER: True, SELECTION_LAYER: False}


def test_result_save_keeps_earlier_export_with_same_name(tmp_path):
    first = ExportResult("0101251200-mockup.png", b"first", "image/png")
    second = ExportResult("0101251200-mockup.png", b"second", "image/png")
    third = ExportResult("0101251200-mockup.png", b"third", "image/png")

    paths = [first.save(tmp_path), second.save(tmp_path), third.save(tmp_path)]

    assert [p.name for p in paths] == [
        "0101251200-mockup.png",
        "0101251200-mockup (1).png",
        "0101251200-mockup (2).png",
    ]
    assert [p.read_bytes() for p in paths] == [b"first", b"second", b"third"]
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(p.name for p in paths)
