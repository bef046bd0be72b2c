"""Pillow renderer adapter and render surfaces.

The renderer only consumes geometry computed elsewhere: slice rectangles from
:func:`utils.frame_layout.calculate_frame_layout` and screenshot placement
from :func:`utils.image_fit.fit_image_to_mask`.  Surfaces wrap a renderer with
the state an interactive stage has (display scale and editor-only layers) so
the export pipeline can drive the live stage and a headless stage the same
way.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from utils.frame_layout import FrameLayout, FrameSlice, round_half_up
from utils.image_fit import fit_image_to_mask
from utils.image_operations import apply_operations, rounded_rect_mask, scale_image

from . import config
from .devices import DeviceMeta, ScreenMask, get_device
from .store import Frame, FrameTransform, TextOverlay

LOGGER = logging.getLogger(__name__)

GUIDES_LAYER = "guides"
SELECTION_LAYER = "selection"


@dataclass(frozen=True)
class StripScene:
    """Everything needed to draw the strip once."""

    layout: FrameLayout
    frames: Tuple[Frame, ...]
    images: Mapping[str, Optional[Image.Image]] = field(default_factory=dict)
    active_frame_id: Optional[str] = None

    @property
    def width(self) -> int:
        return self.layout.total_width

    @property
    def height(self) -> int:
        return self.layout.stage_height


@dataclass
class EditorLayer:
    """A group of editor-only content that must never reach an export."""

    name: str
    visible: bool = True

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False


@lru_cache(maxsize=32)
def _load_font(family: str, weight: int, size: int) -> ImageFont.ImageFont:
    candidates = [f"{family}.ttf"]
    if weight >= 700:
        candidates.insert(0, f"{family}-Bold.ttf")
    for name in candidates:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    LOGGER.debug("Font %s not found; using Pillow default at %dpx", family, size)
    return ImageFont.load_default(size=size)


def _transform_operations(transform: FrameTransform) -> List[dict]:
    return [
        {"type": "foreshorten", "params": {"tilt_x": transform.tilt_x, "tilt_y": transform.tilt_y}},
        {"type": "skew", "params": {"skew_x": transform.skew_x, "skew_y": transform.skew_y}},
        {"type": "flip", "params": {"horizontal": transform.flip_x, "vertical": transform.flip_y}},
        {"type": "rotate", "params": {"angle": transform.rotation}},
    ]


class StripRenderer:
    """Draw a :class:`StripScene` into a Pillow image at logical resolution."""

    def __init__(self, device_lookup: Callable[[str], DeviceMeta] = get_device):
        self._device_lookup = device_lookup

    def render(
        self,
        scene: StripScene,
        *,
        show_guides: bool = True,
        show_selection: bool = True,
    ) -> Image.Image:
        width = max(1, scene.width)
        height = max(1, scene.height)
        strip = Image.new("RGBA", (width, height), config.BACKGROUND_COLOR)
        frames = {frame.id: frame for frame in scene.frames}

        for frame_slice in scene.layout.frames:
            frame = frames.get(frame_slice.id)
            if frame is None:
                LOGGER.warning("Layout references unknown frame %s", frame_slice.id)
                continue
            tile, origin = self.render_device(frame_slice, frame, scene.images.get(frame.id))
            strip.alpha_composite(tile, dest=_clip_origin(origin), source=_clip_source(origin))

        draw = ImageDraw.Draw(strip)
        for frame_slice in scene.layout.frames:
            frame = frames.get(frame_slice.id)
            if frame is not None:
                for overlay in (frame.headline, frame.subtitle):
                    self._draw_text(draw, frame_slice, overlay)

        if show_guides:
            self._draw_guides(draw, scene.layout)
        if show_selection and scene.active_frame_id:
            active = scene.layout.slice_for(scene.active_frame_id)
            if active is not None:
                self._draw_selection(draw, active)
        return strip

    # ------------------------------------------------------------------
    # Frame content
    # ------------------------------------------------------------------
    def device_scale(self, frame_slice: FrameSlice, device: DeviceMeta, transform: FrameTransform) -> float:
        """Scale that fits the device into the slice, times the user scale."""
        avail_w = max(1, frame_slice.width - 2 * config.CANVAS_PADDING_X)
        avail_h = max(1, frame_slice.height - config.CANVAS_PADDING_TOP - config.CANVAS_PADDING_BOTTOM)
        fit = min(avail_w / device.frame_width, avail_h / device.frame_height)
        return fit * transform.scale

    def render_device(
        self,
        frame_slice: FrameSlice,
        frame: Frame,
        image: Optional[Image.Image],
    ) -> Tuple[Image.Image, Tuple[int, int]]:
        """Compose one frame's device tile and return it with its strip origin.

        The origin is the slice origin plus an offset computed only from the
        slice size, so the same frame renders identically at any slice ``x``.
        """
        device = self._device_lookup(frame.device_type)
        transform = frame.transform
        scale = self.device_scale(frame_slice, device, transform)
        tile = self._compose_device(device, frame.show_device, image, scale)
        if not transform.is_identity():
            tile = apply_operations(tile, _transform_operations(transform))

        avail_h = frame_slice.height - config.CANVAS_PADDING_TOP - config.CANVAS_PADDING_BOTTOM
        left = frame_slice.x + round_half_up((frame_slice.width - tile.width) / 2) + transform.offset_x
        top = (
            frame_slice.y
            + config.CANVAS_PADDING_TOP
            + round_half_up((avail_h - tile.height) / 2)
            + transform.offset_y
        )
        return tile, (left, top)

    def _compose_device(
        self,
        device: DeviceMeta,
        show_device: bool,
        image: Optional[Image.Image],
        scale: float,
    ) -> Image.Image:
        width = max(1, round_half_up(device.frame_width * scale))
        height = max(1, round_half_up(device.frame_height * scale))
        tile = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        screen = ScreenMask(
            x=round_half_up(device.screen.x * scale),
            y=round_half_up(device.screen.y * scale),
            width=max(1, round_half_up(device.screen.width * scale)),
            height=max(1, round_half_up(device.screen.height * scale)),
            corner_radius=round_half_up(device.screen.corner_radius * scale),
        )

        if show_device:
            body_radius = (device.screen.corner_radius + config.DEVICE_BODY_RADIUS_EXTRA) * scale
            ImageDraw.Draw(tile).rounded_rectangle(
                (0, 0, width - 1, height - 1),
                radius=max(0, int(min(body_radius, width / 2, height / 2))),
                fill=config.DEVICE_BODY_COLOR,
                outline=config.DEVICE_BORDER_COLOR,
                width=max(1, round_half_up(1.5 * scale)),
            )

        tile.paste(
            self._screen_content(image, screen),
            (screen.x, screen.y),
            rounded_rect_mask((screen.width, screen.height), screen.corner_radius),
        )
        return tile

    def _screen_content(self, image: Optional[Image.Image], screen: ScreenMask) -> Image.Image:
        content = Image.new("RGBA", (screen.width, screen.height), config.SCREEN_PLACEHOLDER_COLOR)
        if image is None:
            return content
        local = ScreenMask(0, 0, screen.width, screen.height, screen.corner_radius)
        fit = fit_image_to_mask(image.width, image.height, local)
        left, top, width, height = fit.pixel_box()
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        content.alpha_composite(resized, dest=_clip_origin((left, top)), source=_clip_source((left, top)))
        return content

    def _draw_text(self, draw: ImageDraw.ImageDraw, frame_slice: FrameSlice, overlay: TextOverlay) -> None:
        if not overlay.text:
            return
        font = _load_font(overlay.font_family, overlay.font_weight, overlay.font_size)
        x = frame_slice.x + round_half_up(overlay.x * frame_slice.width)
        y = frame_slice.y + round_half_up(overlay.y * frame_slice.height)
        # centred manually; bitmap fallback fonts reject anchors
        width = draw.textlength(overlay.text, font=font)
        draw.text((x - width / 2, y), overlay.text, font=font, fill=overlay.fill)

    # ------------------------------------------------------------------
    # Editor-only content
    # ------------------------------------------------------------------
    @staticmethod
    def cut_lines(layout: FrameLayout) -> List[int]:
        """X positions where one slice ends or the next begins."""
        lines = set()
        for previous, current in zip(layout.frames, layout.frames[1:]):
            lines.add(current.x)
            lines.add(previous.right)
        return sorted(lines)

    def _draw_guides(self, draw: ImageDraw.ImageDraw, layout: FrameLayout) -> None:
        half = config.GUIDE_WIDTH // 2
        for x in self.cut_lines(layout):
            draw.rectangle((x - half, 0, x - half + config.GUIDE_WIDTH - 1, layout.stage_height - 1), fill=config.GUIDE_COLOR)

    def _draw_selection(self, draw: ImageDraw.ImageDraw, frame_slice: FrameSlice) -> None:
        draw.rectangle(
            (frame_slice.x, frame_slice.y, frame_slice.right - 1, frame_slice.y + frame_slice.height - 1),
            outline=config.SELECTION_COLOR,
            width=config.SELECTION_WIDTH,
        )


def _clip_origin(origin: Tuple[int, int]) -> Tuple[int, int]:
    return max(0, origin[0]), max(0, origin[1])


def _clip_source(origin: Tuple[int, int]) -> Tuple[int, int]:
    return max(0, -origin[0]), max(0, -origin[1])


class RenderSurface(ABC):
    """Contract between the export pipeline and whatever shows the strip."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the surface can rasterize right now."""

    @property
    @abstractmethod
    def scale(self) -> float:
        """Display scale applied on top of logical canvas pixels."""

    @scale.setter
    @abstractmethod
    def scale(self, value: float) -> None: ...

    @abstractmethod
    def editor_layers(self) -> Sequence[EditorLayer]:
        """Layers tagged editor-only (cut guides, active frame outline)."""

    @abstractmethod
    def to_image(self, x: int, y: int, width: int, height: int, pixel_ratio: float = 1.0) -> Image.Image:
        """Rasterize a logical region; output pixels are ``scale * pixel_ratio`` per unit."""

    @property
    def layout(self) -> Optional[FrameLayout]:
        """Layout currently drawn, or None when the surface does not track one."""
        return None


class StripSurface(RenderSurface):
    """Pillow-backed surface used headless and behind the Qt stage widget."""

    def __init__(
        self,
        renderer: Optional[StripRenderer] = None,
        *,
        scale: float = 1.0,
    ):
        self._renderer = renderer or StripRenderer()
        self._scale = float(scale)
        self._scene: Optional[StripScene] = None
        self._layers: Dict[str, EditorLayer] = {
            GUIDES_LAYER: EditorLayer(GUIDES_LAYER),
            SELECTION_LAYER: EditorLayer(SELECTION_LAYER),
        }
        self._cache_key: Optional[tuple] = None
        self._cache_image: Optional[Image.Image] = None

    @property
    def scene(self) -> Optional[StripScene]:
        return self._scene

    @property
    def layout(self) -> Optional[FrameLayout]:
        return self._scene.layout if self._scene is not None else None

    def set_scene(self, scene: Optional[StripScene]) -> None:
        self._scene = scene
        self._invalidate()

    @property
    def is_ready(self) -> bool:
        return self._scene is not None and self._scene.width > 0 and self._scene.height > 0

    @property
    def scale(self) -> float:
        return self._scale

    @scale.setter
    def scale(self, value: float) -> None:
        value = float(value)
        if value <= 0:
            raise ValueError(f"Surface scale must be positive, got {value}")
        if value != self._scale:
            self._scale = value
            self._invalidate()

    def layer(self, name: str) -> EditorLayer:
        return self._layers[name]

    def editor_layers(self) -> Sequence[EditorLayer]:
        return tuple(self._layers.values())

    def render_strip(self) -> Image.Image:
        """Full strip at logical resolution with the current layer visibility."""
        if self._scene is None:
            raise RuntimeError("Surface has no scene to render")
        key = (
            id(self._scene),
            self._layers[GUIDES_LAYER].visible,
            self._layers[SELECTION_LAYER].visible,
        )
        if key != self._cache_key or self._cache_image is None:
            self._cache_image = self._renderer.render(
                self._scene,
                show_guides=key[1],
                show_selection=key[2],
            )
            self._cache_key = key
        return self._cache_image

    def to_image(self, x: int, y: int, width: int, height: int, pixel_ratio: float = 1.0) -> Image.Image:
        if width <= 0 or height <= 0:
            raise ValueError(f"Region must have a positive size, got {width}x{height}")
        region = self.render_strip().crop((x, y, x + width, y + height))
        return scale_image(region, self._scale * pixel_ratio)

    def _invalidate(self) -> None:
        self._cache_key = None
        self._cache_image = None
