# devices.py
"""
Static device metadata: silhouette size, screen mask and export presets.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

from . import config


class UnknownDeviceError(KeyError):
    """Raised when a device type is not in the metadata table."""


@dataclass(frozen=True, slots=True)
class ScreenMask:
    """Rounded rectangle, relative to the device silhouette, where content shows."""

    x: int
    y: int
    width: int
    height: int
    corner_radius: int = 0


@dataclass(frozen=True, slots=True)
class ExportPreset:
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class DeviceMeta:
    name: str
    type: str
    frame_width: int
    frame_height: int
    screen: ScreenMask
    export_presets: Mapping[str, ExportPreset]

    @property
    def is_desktop(self) -> bool:
        return self.type == "desktop"


_PHONE_EXPORTS = {
    "appstore": ExportPreset(1320, 2868),
    "playstore": ExportPreset(1080, 1920),
    "social": ExportPreset(1080, 1350),
}

DEVICE_METAS: Dict[str, DeviceMeta] = {
    "iphone": DeviceMeta(
        name="iPhone 16 Pro Max",
        type="iphone",
        frame_width=1136,
        frame_height=2468,
        screen=ScreenMask(x=44, y=44, width=1048, height=2380, corner_radius=150),
        export_presets=_PHONE_EXPORTS,
    ),
    "android": DeviceMeta(
        name="Galaxy S25 Ultra",
        type="android",
        frame_width=1100,
        frame_height=2400,
        screen=ScreenMask(x=36, y=36, width=1028, height=2328, corner_radius=60),
        export_presets=_PHONE_EXPORTS,
    ),
    "tablet": DeviceMeta(
        name="iPad Pro",
        type="tablet",
        frame_width=1640,
        frame_height=2260,
        screen=ScreenMask(x=60, y=60, width=1520, height=2140, corner_radius=36),
        export_presets={
            "appstore": ExportPreset(2064, 2752),
            "playstore": ExportPreset(1600, 2560),
            "social": ExportPreset(1080, 1350),
        },
    ),
    "desktop": DeviceMeta(
        name="MacBook",
        type="desktop",
        frame_width=2000,
        frame_height=1300,
        screen=ScreenMask(x=60, y=40, width=1880, height=1176, corner_radius=8),
        export_presets={
            "appstore": ExportPreset(2880, 1800),
            "playstore": ExportPreset(1920, 1080),
            "social": ExportPreset(1200, 675),
        },
    ),
}

# (label, width, height)
CANVAS_SIZE_PRESETS: Tuple[Tuple[str, int, int], ...] = (
    ("App Store", 1320, 2868),
    ("Play Store", 1080, 1920),
    ("IG Post", 1080, 1350),
    ("IG Story/Reels", 1080, 1920),
    ("TikTok", 1080, 1920),
    ("Facebook Post", 1200, 630),
    ("Twitter/X", 1200, 675),
    ("IG Carousel", 1080, 1080),
)


def get_device(device_type: str) -> DeviceMeta:
    """Return metadata for ``device_type``."""
    try:
        return DEVICE_METAS[device_type]
    except KeyError:
        raise UnknownDeviceError(device_type) from None


def device_types() -> Tuple[str, ...]:
    return tuple(DEVICE_METAS)


def auto_canvas_size(device: DeviceMeta) -> Tuple[int, int]:
    """Canvas size used when the store has no explicit size.

    The device sits inside horizontal padding with a text zone above it.
    """
    width = device.frame_width + config.CANVAS_PADDING_X * 2
    if device.is_desktop:
        width += config.DESKTOP_EXTRA_WIDTH
    height = device.frame_height + config.CANVAS_PADDING_TOP + config.CANVAS_PADDING_BOTTOM
    return width, height
