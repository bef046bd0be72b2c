"""Frame store for the multi-frame editor.

This module holds the ordered list of frames, the active frame, the cut
preset and the optional explicit canvas size.  It is a plain Python model so
it can be unit tested without a Qt environment.  Readers such as the layout
engine and the exporter only ever see :meth:`FrameStore.snapshot` copies;
mutations go through the setters below.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from utils.frame_layout import CutPreset

from . import config
from .devices import get_device


class FrameNotFoundError(ValueError):
    """Raised when a frame id is not present in the store."""


class FrameLimitError(ValueError):
    """Raised when adding or removing a frame would break the frame count limits."""


@dataclass
class TextOverlay:
    """Marketing text drawn over a frame; ``x``/``y`` are fractions of the slice."""

    kind: str
    text: str = ""
    x: float = 0.5
    y: float = 0.07
    font_size: int = 64
    font_family: str = "Poppins"
    font_weight: int = 800
    fill: str = "#ffffff"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size,
            "fontFamily": self.font_family,
            "fontWeight": self.font_weight,
            "fill": self.fill,
        }


def default_headline() -> TextOverlay:
    return TextOverlay(kind="headline")


def default_subtitle() -> TextOverlay:
    return TextOverlay(
        kind="subtitle",
        y=0.14,
        font_size=32,
        font_family="Inter",
        font_weight=500,
        fill="#e4e4e7",
    )


@dataclass
class FrameTransform:
    scale: float = 1.0
    rotation: float = 0.0
    tilt_x: float = 0.0
    tilt_y: float = 0.0
    skew_x: float = 0.0
    skew_y: float = 0.0
    flip_x: bool = False
    flip_y: bool = False
    offset_x: int = 0
    offset_y: int = 0

    def is_identity(self) -> bool:
        return self == FrameTransform(offset_x=self.offset_x, offset_y=self.offset_y)


_TRANSFORM_FIELDS = frozenset(f.name for f in fields(FrameTransform))


@dataclass
class Frame:
    """One device plus screenshot composition unit."""

    id: str
    device_type: str = config.DEFAULT_DEVICE_TYPE
    screenshot: Optional[Union[str, bytes]] = None
    headline: TextOverlay = field(default_factory=default_headline)
    subtitle: TextOverlay = field(default_factory=default_subtitle)
    transform: FrameTransform = field(default_factory=FrameTransform)
    show_device: bool = True


@dataclass(frozen=True)
class StoreSnapshot:
    """Read-only view of the store handed to layout, rendering and export."""

    frames: Tuple[Frame, ...]
    active_frame_id: str
    cut_preset: CutPreset
    canvas_width: Optional[int]
    canvas_height: Optional[int]

    @property
    def frame_ids(self) -> List[str]:
        return [frame.id for frame in self.frames]

    @property
    def active_frame(self) -> Frame:
        for frame in self.frames:
            if frame.id == self.active_frame_id:
                return frame
        return self.frames[0]


class FrameStore:
    """Maintain the ordered frame list of an editing session."""

    def __init__(self, device_type: str = config.DEFAULT_DEVICE_TYPE):
        get_device(device_type)
        self._next_id = 0
        first = self._new_frame(device_type)
        self.frames: List[Frame] = [first]
        self.active_frame_id: str = first.id
        self.cut_preset: CutPreset = CutPreset.EVEN
        self.canvas_width: Optional[int] = None
        self.canvas_height: Optional[int] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _new_frame(self, device_type: str) -> Frame:
        self._next_id += 1
        return Frame(id=f"frame-{self._next_id}", device_type=device_type)

    def _index_of(self, frame_id: str) -> int:
        for index, frame in enumerate(self.frames):
            if frame.id == frame_id:
                return index
        raise FrameNotFoundError(f"Frame not found: {frame_id}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_frame(self, frame_id: str) -> Frame:
        return self.frames[self._index_of(frame_id)]

    @property
    def active_frame(self) -> Frame:
        return self.get_frame(self.active_frame_id)

    def add_frame(self, device_type: Optional[str] = None) -> Frame:
        """Append a frame and make it active.

        The new frame copies the active frame's device type unless one is given.
        """
        if len(self.frames) >= config.MAX_FRAMES:
            raise FrameLimitError(f"At most {config.MAX_FRAMES} frames are supported")
        if device_type is None:
            device_type = self.active_frame.device_type
        get_device(device_type)
        frame = self._new_frame(device_type)
        self.frames.append(frame)
        self.active_frame_id = frame.id
        logging.info("FrameStore: added %s (%s)", frame.id, device_type)
        return frame

    def remove_frame(self, frame_id: str) -> None:
        """Remove a frame; the last remaining frame can never be removed."""
        index = self._index_of(frame_id)
        if len(self.frames) <= 1:
            raise FrameLimitError("At least one frame must remain")
        del self.frames[index]
        if self.active_frame_id == frame_id:
            self.active_frame_id = self.frames[min(index, len(self.frames) - 1)].id
        logging.info("FrameStore: removed %s", frame_id)

    def set_active_frame(self, frame_id: str) -> None:
        self._index_of(frame_id)
        self.active_frame_id = frame_id

    def reorder_frame(self, from_index: int, to_index: int) -> None:
        count = len(self.frames)
        if not (0 <= from_index < count and 0 <= to_index < count):
            raise IndexError(f"Cannot move frame {from_index} to {to_index} of {count}")
        frame = self.frames.pop(from_index)
        self.frames.insert(to_index, frame)

    def set_cut_preset(self, preset: "CutPreset | str") -> None:
        cut = CutPreset.parse(preset)
        if cut not in CutPreset.selectable():
            raise ValueError(f"Cut preset '{cut.value}' is not available yet")
        self.cut_preset = cut

    def set_canvas_size(self, width: Optional[int], height: Optional[int]) -> None:
        """Set an explicit canvas size; ``None`` for a dimension means automatic."""
        for name, value in (("width", width), ("height", height)):
            if value is not None and int(value) <= 0:
                raise ValueError(f"Canvas {name} must be positive, got {value}")
        self.canvas_width = int(width) if width is not None else None
        self.canvas_height = int(height) if height is not None else None

    def set_screenshot(self, frame_id: str, source: Optional[Union[str, bytes]]) -> None:
        self.get_frame(frame_id).screenshot = source

    def set_device_type(self, frame_id: str, device_type: str) -> None:
        get_device(device_type)
        self.get_frame(frame_id).device_type = device_type

    def set_frame_properties(self, frame_id: str, **changes: Any) -> None:
        """Update transform attributes (``scale``, ``rotation``, ``flip_x`` ...)."""
        unknown = set(changes) - _TRANSFORM_FIELDS
        if unknown:
            raise ValueError(f"Unknown transform properties: {sorted(unknown)}")
        if "scale" in changes and float(changes["scale"]) <= 0:
            raise ValueError("Transform scale must be positive")
        frame = self.get_frame(frame_id)
        frame.transform = replace(frame.transform, **changes)

    def set_frame_offset(self, frame_id: str, offset_x: int, offset_y: int) -> None:
        frame = self.get_frame(frame_id)
        frame.transform = replace(frame.transform, offset_x=int(offset_x), offset_y=int(offset_y))

    def toggle_frame_device(self, frame_id: str) -> bool:
        frame = self.get_frame(frame_id)
        frame.show_device = not frame.show_device
        return frame.show_device

    def set_headline(self, frame_id: str, **changes: Any) -> None:
        frame = self.get_frame(frame_id)
        if "text" in changes:
            changes["text"] = str(changes["text"])[: config.HEADLINE_MAX_CHARS]
        frame.headline = replace(frame.headline, **changes)

    def set_subtitle(self, frame_id: str, **changes: Any) -> None:
        frame = self.get_frame(frame_id)
        if "text" in changes:
            changes["text"] = str(changes["text"])[: config.SUBTITLE_MAX_CHARS]
        frame.subtitle = replace(frame.subtitle, **changes)

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            frames=tuple(copy.deepcopy(self.frames)),
            active_frame_id=self.active_frame_id,
            cut_preset=self.cut_preset,
            canvas_width=self.canvas_width,
            canvas_height=self.canvas_height,
        )
