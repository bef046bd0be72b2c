"""Export the strip as one canvas PNG or as a ZIP of per-frame PNGs.

Every export follows the same protocol against a :class:`RenderSurface`:
check readiness, record the display scale, force unit scale, hide editor-only
layers, recompute the layout, rasterize, and restore scale and layer
visibility on every exit path.
"""

from __future__ import annotations

import io
import logging
import time
import zipfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from PIL import Image

from utils.frame_layout import CutPreset, FrameLayout, FrameSlice, calculate_frame_layout, round_half_up
from utils.image_operations import crop_image, encode_png
from utils.validation import validate_output_path

from . import config
from .errors import ExportNotReady, ImageDecodeFailure, MockupStudioError
from .rendering import RenderSurface

PNG_MEDIA_TYPE = "image/png"
ZIP_MEDIA_TYPE = "application/zip"

ProgressCallback = Callable[[int, int], None]


class ExportMode(str, Enum):
    SINGLE = "single"
    BATCH = "batch"


@dataclass(frozen=True)
class ExportJob:
    mode: ExportMode
    layout: FrameLayout
    pixel_scale: float = config.EXPORT_PIXEL_SCALE


@dataclass(frozen=True)
class ExportResult:
    """Encoded export payload ready to be written or handed to a host."""

    filename: str
    payload: bytes
    media_type: str
    entries: Tuple[str, ...] = ()

    def save(self, directory: Union[str, Path]) -> Path:
        """Write the payload into ``directory`` without replacing existing files.

        A name already taken gets a counter, e.g. ``0101251200-mockup (1).png``.
        """
        base = Path(self.filename)
        attempt = 0
        while True:
            name = self.filename if attempt == 0 else f"{base.stem} ({attempt}){base.suffix}"
            path = validate_output_path(Path(directory) / name, {".png", ".zip"})
            try:
                with path.open("xb") as handle:
                    handle.write(self.payload)
                break
            except FileExistsError:
                attempt += 1
        logging.info("Saved export to %s (%d bytes)", path, len(self.payload))
        return path


def _default_yield() -> None:
    time.sleep(config.EXPORT_SLICE_YIELD_SECONDS)


def slice_box(frame_slice: FrameSlice) -> Tuple[int, int, int, int]:
    """Crop box ``(left, top, right, bottom)`` for a slice of the strip raster."""
    left = round_half_up(frame_slice.x)
    width = round_half_up(frame_slice.width)
    height = round_half_up(frame_slice.height)
    return left, 0, left + width, height


class ExportPipeline:
    """Rasterize a render surface into PNG payloads.

    Args:
        yield_fn: Called between batch slices so the host can breathe.
        on_progress: Receives ``(done, total)`` after each encoded image.
        include_full_strip: Also store the whole strip in batch archives.
        pixel_scale: Pixel ratio used when rasterizing at unit scale.
    """

    def __init__(
        self,
        yield_fn: Optional[Callable[[], None]] = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        include_full_strip: bool = config.EXPORT_INCLUDE_FULL_STRIP,
        pixel_scale: float = config.EXPORT_PIXEL_SCALE,
    ):
        self.yield_fn = yield_fn or _default_yield
        self.on_progress = on_progress
        self.include_full_strip = include_full_strip
        self.pixel_scale = pixel_scale

    def export_composite(
        self,
        surface: RenderSurface,
        frame_ids: Iterable[str],
        preset: "CutPreset | str",
        canvas_width: float,
        canvas_height: float,
        mode: "ExportMode | str" = ExportMode.BATCH,
        *,
        now: Optional[datetime] = None,
    ) -> ExportResult:
        """Run the export protocol and return the encoded result.

        Raises:
            ExportNotReady: The surface cannot draw, there are no frames, or
                the surface draws a layout other than the one requested.
                The surface is left as it was found.
            InvalidLayoutInput: The layout inputs are out of domain.
            ImageDecodeFailure: Rasterizing or encoding failed.
        """
        frame_ids = list(frame_ids)
        mode = ExportMode(mode)
        if not surface.is_ready:
            raise ExportNotReady("Render surface is not ready")
        if not frame_ids:
            raise ExportNotReady("There are no frames to export")

        stamp = (now or datetime.now()).strftime(config.EXPORT_TIMESTAMP_FORMAT)
        previous_scale = surface.scale
        hidden: List[tuple] = []
        try:
            surface.scale = 1.0
            for layer in surface.editor_layers():
                hidden.append((layer, layer.visible))
                layer.visible = False

            job = ExportJob(
                mode,
                calculate_frame_layout(frame_ids, preset, canvas_width, canvas_height),
                self.pixel_scale,
            )
            if surface.layout is not None and surface.layout != job.layout:
                raise ExportNotReady("Render surface shows a different layout; refresh before exporting")
            try:
                if job.mode is ExportMode.BATCH and len(job.layout) > 1:
                    result = self._export_batch(surface, job, stamp)
                else:
                    result = self._export_single(surface, job, stamp)
            except MockupStudioError:
                raise
            except (OSError, ValueError, RuntimeError, MemoryError, zipfile.LargeZipFile) as exc:
                logging.error("Export rasterization failed: %s", exc)
                raise ImageDecodeFailure(f"Export failed: {exc}") from exc
        finally:
            for layer, visible in reversed(hidden):
                layer.visible = visible
            surface.scale = previous_scale

        logging.info("Exported %s (%s, %d frame(s))", result.filename, mode.value, len(frame_ids))
        return result

    # ------------------------------------------------------------------
    # Rasterization
    # ------------------------------------------------------------------
    def _rasterize(self, surface: RenderSurface, x: int, y: int, width: int, height: int) -> Image.Image:
        return surface.to_image(x, y, width, height, pixel_ratio=self.pixel_scale)

    def _export_single(self, surface: RenderSurface, job: ExportJob, stamp: str) -> ExportResult:
        layout = job.layout
        if len(layout) == 1:
            left, top, right, bottom = slice_box(layout.frames[0])
            image = self._rasterize(surface, left, top, right - left, bottom - top)
            filename = f"{stamp}-mockup.png"
        else:
            image = self._rasterize(surface, 0, 0, layout.total_width, layout.stage_height)
            filename = f"{stamp}-canvas.png"
        payload = encode_png(image, compress_level=config.EXPORT_PNG_COMPRESS_LEVEL)
        self._report(1, 1)
        return ExportResult(filename, payload, PNG_MEDIA_TYPE, (filename,))

    def _export_batch(self, surface: RenderSurface, job: ExportJob, stamp: str) -> ExportResult:
        layout = job.layout
        strip = self._rasterize(surface, 0, 0, layout.total_width, layout.stage_height)
        total = len(layout)

        # crop boxes are logical; the strip may carry a pixel ratio
        ratio = strip.width / layout.total_width if layout.total_width else 1.0
        slices: List[Tuple[str, bytes]] = []
        for index, frame_slice in enumerate(layout.frames, start=1):
            left, top, right, bottom = slice_box(frame_slice)
            if ratio != 1.0:
                left, top, right, bottom = (round_half_up(v * ratio) for v in (left, top, right, bottom))
            crop = crop_image(strip, (left, top, right, bottom))
            slices.append((f"{index}.png", encode_png(crop, compress_level=config.EXPORT_PNG_COMPRESS_LEVEL)))
            self._report(index, total)
            if index < total:
                self.yield_fn()

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in slices:
                archive.writestr(name, data)
            if self.include_full_strip:
                archive.writestr(
                    config.EXPORT_FULL_STRIP_ENTRY,
                    encode_png(strip, compress_level=config.EXPORT_PNG_COMPRESS_LEVEL),
                )
        entries = tuple(name for name, _ in slices)
        if self.include_full_strip:
            entries += (config.EXPORT_FULL_STRIP_ENTRY,)
        return ExportResult(f"{stamp}-mockups.zip", buffer.getvalue(), ZIP_MEDIA_TYPE, entries)

    def _report(self, done: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(done, total)
