"""Strip layout engine for multi-frame mockups.

Frames are arranged left to right along a single wide strip. The cut preset
decides how wide each frame's slice is and where it starts. The function here
is pure so the live stage and the exporter can call it independently and
still agree on every slice boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import math

from mockup_studio import config
from mockup_studio.errors import InvalidLayoutInput


class CutPreset(str, Enum):
    """Named algorithms for arranging frames along the strip."""

    EVEN = "even"
    OVERLAP = "overlap"
    HERO = "hero"
    DIAGONAL = "diagonal"  # reserved, lays out like EVEN

    @classmethod
    def selectable(cls) -> Tuple["CutPreset", ...]:
        """Presets a user may pick; ``diagonal`` stays hidden until implemented."""
        return (cls.EVEN, cls.OVERLAP, cls.HERO)

    @classmethod
    def parse(cls, value: "CutPreset | str") -> "CutPreset":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidLayoutInput(f"Unknown cut preset: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class FrameSlice:
    """Position and size of one frame's slice on the strip."""

    id: str
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class FrameLayout:
    """Result of :func:`calculate_frame_layout`."""

    total_width: int
    stage_height: int
    frames: Tuple[FrameSlice, ...] = field(default_factory=tuple)

    def slice_for(self, frame_id: str) -> Optional[FrameSlice]:
        for frame_slice in self.frames:
            if frame_slice.id == frame_id:
                return frame_slice
        return None

    def __len__(self) -> int:
        return len(self.frames)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up.

    Matches the rounding of the on-screen canvas, which differs from
    Python's built-in ``round`` on exact halves (``round(2.5) == 2``).
    """
    return int(math.floor(value + 0.5))


def _validate_dimension(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidLayoutInput(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number) or number <= 0:
        raise InvalidLayoutInput(f"{name} must be positive, got {value!r}")
    return number


def _validate_frame_ids(frame_ids: Iterable[str]) -> List[str]:
    if frame_ids is None or isinstance(frame_ids, (str, bytes)):
        raise InvalidLayoutInput("frame_ids must be a sequence of frame identifiers")
    ids = list(frame_ids)
    seen = set()
    for frame_id in ids:
        if not isinstance(frame_id, str) or not frame_id:
            raise InvalidLayoutInput(f"Invalid frame id: {frame_id!r}")
        if frame_id in seen:
            raise InvalidLayoutInput(f"Duplicate frame id: {frame_id}")
        seen.add(frame_id)
    return ids


def _even(ids: Sequence[str], base_width: float, height: int) -> Tuple[int, List[FrameSlice]]:
    width = round_half_up(base_width)
    slices = [
        FrameSlice(frame_id, i * width, 0, width, height)
        for i, frame_id in enumerate(ids)
    ]
    return len(ids) * width, slices


def _overlap(ids: Sequence[str], base_width: float, height: int) -> Tuple[int, List[FrameSlice]]:
    overlap = round_half_up(base_width * config.OVERLAP_FRACTION)
    step = base_width - overlap
    width = round_half_up(base_width)
    slices = [
        FrameSlice(frame_id, round_half_up(i * step), 0, width, height)
        for i, frame_id in enumerate(ids)
    ]
    return slices[-1].x + width, slices


def _hero(ids: Sequence[str], base_width: float, height: int) -> Tuple[int, List[FrameSlice]]:
    center = (len(ids) - 1) // 2
    center_width = round_half_up(base_width * config.HERO_CENTER_RATIO)
    side_width = round_half_up(base_width * config.HERO_SIDE_RATIO)
    slices: List[FrameSlice] = []
    current_x = 0
    for i, frame_id in enumerate(ids):
        width = center_width if i == center else side_width
        slices.append(FrameSlice(frame_id, current_x, 0, width, height))
        current_x += width
    return current_x, slices


def calculate_frame_layout(
    frame_ids: Iterable[str],
    preset: "CutPreset | str",
    base_width: float,
    base_height: float,
) -> FrameLayout:
    """
    Compute slice geometry for every frame on the strip.

    Args:
        frame_ids: Ordered frame identifiers, left to right.
        preset: Cut preset name or :class:`CutPreset`.
        base_width: Nominal width of one frame in logical pixels.
        base_height: Strip height in logical pixels.

    Returns:
        FrameLayout: Integer slice rectangles and the total strip width.

    Raises:
        InvalidLayoutInput: If the dimensions are not positive, the preset is
            unknown, or the frame list holds empty or duplicate ids.
    """
    width = _validate_dimension("base_width", base_width)
    height_value = _validate_dimension("base_height", base_height)
    cut = CutPreset.parse(preset)
    ids = _validate_frame_ids(frame_ids)
    height = round_half_up(height_value)

    if not ids:
        return FrameLayout(total_width=0, stage_height=height, frames=())

    if len(ids) == 1:
        single = round_half_up(width)
        return FrameLayout(
            total_width=single,
            stage_height=height,
            frames=(FrameSlice(ids[0], 0, 0, single, height),),
        )

    if cut is CutPreset.OVERLAP:
        total, slices = _overlap(ids, width, height)
    elif cut is CutPreset.HERO:
        total, slices = _hero(ids, width, height)
    else:
        if cut is CutPreset.DIAGONAL:
            logging.info("Cut preset 'diagonal' is not implemented; using 'even' geometry")
        total, slices = _even(ids, width, height)

    return FrameLayout(total_width=total, stage_height=height, frames=tuple(slices))
