import pytest

from mockup_studio import config
from mockup_studio.devices import UnknownDeviceError
from mockup_studio.store import FrameLimitError, FrameNotFoundError, FrameStore
from utils.frame_layout import CutPreset


def test_store_starts_with_one_active_frame():
    store = FrameStore()
    assert [f.id for f in store.frames] == ["frame-1"]
    assert store.active_frame_id == "frame-1"
    assert store.cut_preset is CutPreset.EVEN
    assert (store.canvas_width, store.canvas_height) == (None, None)


def test_add_frame_copies_active_device_and_becomes_active():
    store = FrameStore(device_type="android")
    frame = store.add_frame()
    assert frame.device_type == "android"
    assert store.active_frame_id == frame.id == "frame-2"
    assert store.add_frame("tablet").device_type == "tablet"


def test_add_frame_respects_limit():
    store = FrameStore()
    for _ in range(config.MAX_FRAMES - 1):
        store.add_frame()
    with pytest.raises(FrameLimitError):
        store.add_frame()
    assert len(store.frames) == config.MAX_FRAMES


def test_add_frame_rejects_unknown_device():
    store = FrameStore()
    with pytest.raises(UnknownDeviceError):
        store.add_frame("watch")


def test_remove_frame_keeps_one_and_moves_selection():
    store = FrameStore()
    store.add_frame()
    store.add_frame()
    store.set_active_frame("frame-2")

    store.remove_frame("frame-2")
    assert [f.id for f in store.frames] == ["frame-1", "frame-3"]
    assert store.active_frame_id == "frame-3"

    store.remove_frame("frame-3")
    assert store.active_frame_id == "frame-1"
    with pytest.raises(FrameLimitError):
        store.remove_frame("frame-1")


def test_ids_are_never_reused():
    store = FrameStore()
    store.add_frame()
    store.remove_frame("frame-2")
    assert store.add_frame().id == "frame-3"


def test_unknown_frame_raises_value_error():
    store = FrameStore()
    with pytest.raises(FrameNotFoundError):
        store.set_active_frame("nope")
    with pytest.raises(ValueError):
        store.get_frame("nope")


def test_reorder_frame():
    store = FrameStore()
    store.add_frame()
    store.add_frame()
    store.reorder_frame(0, 2)
    assert [f.id for f in store.frames] == ["frame-2", "frame-3", "frame-1"]
    with pytest.raises(IndexError):
        store.reorder_frame(0, 5)


def test_cut_preset_rejects_diagonal():
    store = FrameStore()
    store.set_cut_preset("hero")
    assert store.cut_preset is CutPreset.HERO
    with pytest.raises(ValueError):
        store.set_cut_preset("diagonal")
    with pytest.raises(ValueError):
        store.set_cut_preset("zigzag")
    assert store.cut_preset is CutPreset.HERO


def test_canvas_size_validation():
    store = FrameStore()
    store.set_canvas_size(1080, 1920)
    assert (store.canvas_width, store.canvas_height) == (1080, 1920)
    store.set_canvas_size(None, None)
    assert store.canvas_width is None
    with pytest.raises(ValueError):
        store.set_canvas_size(0, 100)


def test_frame_properties_and_offset():
    store = FrameStore()
    store.set_frame_properties("frame-1", scale=1.2, rotation=15, flip_x=True)
    transform = store.active_frame.transform
    assert (transform.scale, transform.rotation, transform.flip_x) == (1.2, 15, True)
    assert not transform.is_identity()

    store.set_frame_offset("frame-1", 12, -8)
    assert (store.active_frame.transform.offset_x, store.active_frame.transform.offset_y) == (12, -8)
    assert store.active_frame.transform.scale == 1.2

    with pytest.raises(ValueError):
        store.set_frame_properties("frame-1", wobble=1)
    with pytest.raises(ValueError):
        store.set_frame_properties("frame-1", scale=0)


def test_offsets_alone_keep_transform_identity():
    store = FrameStore()
    store.set_frame_offset("frame-1", 30, 40)
    assert store.active_frame.transform.is_identity()


def test_toggle_device_and_text_truncation():
    store = FrameStore()
    assert store.toggle_frame_device("frame-1") is False
    assert store.toggle_frame_device("frame-1") is True

    store.set_headline("frame-1", text="x" * 60)
    store.set_subtitle("frame-1", text="y" * 100, fill="#000000")
    frame = store.active_frame
    assert len(frame.headline.text) == config.HEADLINE_MAX_CHARS
    assert len(frame.subtitle.text) == config.SUBTITLE_MAX_CHARS
    assert frame.subtitle.fill == "#000000"
    assert frame.subtitle.to_dict()["fontFamily"] == "Inter"


def test_snapshot_is_detached_from_store():
    store = FrameStore()
    store.set_screenshot("frame-1", "shot.png")
    snapshot = store.snapshot()
    store.set_frame_offset("frame-1", 99, 99)
    store.add_frame()

    assert snapshot.frame_ids == ["frame-1"]
    assert snapshot.active_frame.screenshot == "shot.png"
    assert snapshot.active_frame.transform.offset_x == 0
