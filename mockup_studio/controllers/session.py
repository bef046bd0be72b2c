"""Editor session controller.

:class:`EditorSession` ties the frame store, the per-frame image loaders, the
render surface and the export pipeline together without depending on
``QWidget`` internals.  It holds no subscriptions: every mutation helper ends
with an explicit :meth:`EditorSession.refresh`, and hosts call ``refresh``
themselves when a decode finishes.

User input reaches the store only as intents (:class:`SetFrameOffset` and
friends).  Layout output is never written back into the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple, Union

from utils.frame_layout import CutPreset, FrameLayout, calculate_frame_layout
from utils.image_fit import FitResult, fit_image_to_mask

from ..devices import auto_canvas_size, get_device
from ..export import ExportMode, ExportPipeline, ExportResult
from ..image_loader import (
    DecodeSubmitter,
    FrameImageLoader,
    ImageLoadState,
    Source,
    ThreadPoolSubmitter,
    decode_image_source,
)
from ..rendering import StripScene, StripSurface
from ..store import Frame, FrameStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetFrameOffset:
    frame_id: str
    offset_x: int
    offset_y: int


@dataclass(frozen=True)
class SetActiveFrame:
    frame_id: str


@dataclass(frozen=True)
class SetCutPreset:
    preset: Union[CutPreset, str]


Intent = Union[SetFrameOffset, SetActiveFrame, SetCutPreset]
LoadChangeCallback = Callable[[str, ImageLoadState], None]


class EditorSession:
    """Coordinate one multi-frame editing session."""

    def __init__(
        self,
        store: Optional[FrameStore] = None,
        *,
        surface: Optional[StripSurface] = None,
        submitter: Optional[DecodeSubmitter] = None,
        pipeline: Optional[ExportPipeline] = None,
        decoder: Callable[[Source], object] = decode_image_source,
        on_load_change: Optional[LoadChangeCallback] = None,
    ) -> None:
        self.store = store or FrameStore()
        self.surface = surface or StripSurface()
        self.pipeline = pipeline or ExportPipeline()
        self._submitter = submitter
        self._owns_submitter = False
        self._decoder = decoder
        self._on_load_change = on_load_change
        self._loaders: Dict[str, FrameImageLoader] = {}
        self._sync_loaders()

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------
    @property
    def submitter(self) -> DecodeSubmitter:
        if self._submitter is None:
            self._submitter = ThreadPoolSubmitter()
            self._owns_submitter = True
        return self._submitter

    def _sync_loaders(self) -> None:
        current = {frame.id for frame in self.store.frames}
        for frame_id in list(self._loaders):
            if frame_id not in current:
                self._loaders.pop(frame_id).close()
                LOGGER.debug("Dropped loader for removed %s", frame_id)
        for frame in self.store.frames:
            if frame.id not in self._loaders:
                loader = FrameImageLoader(
                    frame.id,
                    self.submitter,
                    decoder=self._decoder,
                    on_change=self._handle_load_change,
                )
                self._loaders[frame.id] = loader
                if frame.screenshot is not None:
                    loader.set_source(frame.screenshot)

    def _handle_load_change(self, frame_id: str, state: ImageLoadState) -> None:
        if self._on_load_change is not None:
            self._on_load_change(frame_id, state)

    def load_state(self, frame_id: str) -> ImageLoadState:
        self.store.get_frame(frame_id)
        return self._loaders[frame_id].state

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def canvas_size(self) -> Tuple[int, int]:
        """Explicit canvas size, with missing dimensions derived from the active device."""
        auto_width, auto_height = auto_canvas_size(get_device(self.store.active_frame.device_type))
        width = self.store.canvas_width if self.store.canvas_width is not None else auto_width
        height = self.store.canvas_height if self.store.canvas_height is not None else auto_height
        return width, height

    def compute_layout(self) -> FrameLayout:
        width, height = self.canvas_size()
        return calculate_frame_layout(
            [frame.id for frame in self.store.frames],
            self.store.cut_preset,
            width,
            height,
        )

    def refresh(self) -> StripScene:
        """Recompute the layout and push a fresh scene into the surface."""
        self._sync_loaders()
        snapshot = self.store.snapshot()
        scene = StripScene(
            layout=self.compute_layout(),
            frames=snapshot.frames,
            images={frame_id: loader.state.image for frame_id, loader in self._loaders.items()},
            active_frame_id=snapshot.active_frame_id,
        )
        self.surface.set_scene(scene)
        return scene

    def fit_for_frame(self, frame_id: str) -> Optional[FitResult]:
        """Cover-fit of the frame's loaded screenshot inside its device screen."""
        frame = self.store.get_frame(frame_id)
        image = self._loaders[frame_id].state.image
        if image is None:
            return None
        return fit_image_to_mask(image.width, image.height, get_device(frame.device_type).screen)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_screenshot(self, frame_id: str, source: Optional[Source]) -> None:
        self._sync_loaders()
        self.store.set_screenshot(frame_id, source)
        self._loaders[frame_id].set_source(source)
        self.refresh()

    def add_frame(self, device_type: Optional[str] = None) -> Frame:
        frame = self.store.add_frame(device_type)
        self.refresh()
        return frame

    def remove_frame(self, frame_id: str) -> None:
        self.store.remove_frame(frame_id)
        self.refresh()

    def set_canvas_size(self, width: Optional[int], height: Optional[int]) -> None:
        self.store.set_canvas_size(width, height)
        self.refresh()

    def apply(self, intent: Intent) -> None:
        """Apply one user intent to the store, then refresh."""
        if isinstance(intent, SetFrameOffset):
            self.store.set_frame_offset(intent.frame_id, intent.offset_x, intent.offset_y)
        elif isinstance(intent, SetActiveFrame):
            self.store.set_active_frame(intent.frame_id)
        elif isinstance(intent, SetCutPreset):
            self.store.set_cut_preset(intent.preset)
        else:
            raise TypeError(f"Unsupported intent: {intent!r}")
        self.refresh()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def failed_frames(self) -> Dict[str, str]:
        return {
            frame_id: loader.state.error or ""
            for frame_id, loader in self._loaders.items()
            if loader.state.error is not None
        }

    def export(self, mode: "ExportMode | str" = ExportMode.BATCH, *, now: Optional[datetime] = None) -> ExportResult:
        """Refresh the surface, then export it.

        Failed frames export with their placeholder.
        """
        self.refresh()
        for frame_id, message in self.failed_frames().items():
            LOGGER.warning("Exporting %s with placeholder: %s", frame_id, message)
        snapshot = self.store.snapshot()
        width, height = self.canvas_size()
        return self.pipeline.export_composite(
            self.surface,
            snapshot.frame_ids,
            snapshot.cut_preset,
            width,
            height,
            mode,
            now=now,
        )

    def close(self) -> None:
        for loader in self._loaders.values():
            loader.close()
        self._loaders.clear()
        if self._owns_submitter:
            self._submitter.shutdown(wait=False)
            self._submitter = None
            self._owns_submitter = False


__all__ = [
    "EditorSession",
    "Intent",
    "SetActiveFrame",
    "SetCutPreset",
    "SetFrameOffset",
]
