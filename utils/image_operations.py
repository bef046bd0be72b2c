"""Reusable Pillow operations for composing device frames.

Functions are small and pure so the renderer and the exporter can share
them and so they are easy to test without a Qt environment.
"""

from __future__ import annotations

import io
import logging
import math
from typing import Any

from PIL import Image, ImageDraw, ImageOps


def rounded_rect_mask(size: tuple[int, int], radius: float) -> Image.Image:
    """Return an ``L`` mask of ``size`` with a rounded rectangle filled in."""
    width, height = size
    mask = Image.new("L", (max(1, width), max(1, height)), 0)
    draw = ImageDraw.Draw(mask)
    r = max(0, min(int(round(radius)), width // 2, height // 2))
    draw.rounded_rectangle((0, 0, width - 1, height - 1), radius=r, fill=255)
    return mask


def downscale_to_limit(image: Image.Image, max_dimension: int) -> Image.Image:
    """Shrink ``image`` so neither side exceeds ``max_dimension``."""
    if max(image.size) <= max_dimension:
        return image
    resized = image.copy()
    resized.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
    return resized


def scale_image(image: Image.Image, factor: float) -> Image.Image:
    """Resize ``image`` by ``factor``; a factor of one returns it untouched."""
    if factor <= 0:
        raise ValueError(f"Scale factor must be positive, got {factor}")
    if math.isclose(factor, 1.0):
        return image
    width = max(1, int(round(image.width * factor)))
    height = max(1, int(round(image.height * factor)))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def flip_image(image: Image.Image, *, horizontal: bool = False, vertical: bool = False) -> Image.Image:
    """Mirror ``image`` on either axis."""
    if horizontal:
        image = ImageOps.mirror(image)
    if vertical:
        image = ImageOps.flip(image)
    return image


def rotate_image(image: Image.Image, angle: float, *, expand: bool = True) -> Image.Image:
    """Rotate ``image`` clockwise by ``angle`` degrees."""
    if not angle:
        return image
    # Pillow rotates counter-clockwise
    return image.rotate(-angle, expand=expand, resample=Image.Resampling.BICUBIC)


def skew_image(image: Image.Image, skew_x: float = 0.0, skew_y: float = 0.0) -> Image.Image:
    """Shear ``image`` by the given angles in degrees, growing the canvas to fit."""
    if not skew_x and not skew_y:
        return image
    kx = math.tan(math.radians(skew_x))
    ky = math.tan(math.radians(skew_y))
    width, height = image.size
    out_w = int(math.ceil(width + abs(kx) * height))
    out_h = int(math.ceil(height + abs(ky) * width))
    shift_x = abs(kx) * height if kx < 0 else 0.0
    shift_y = abs(ky) * width if ky < 0 else 0.0
    # Forward map: X = x + kx*y + shift_x, Y = ky*x + y + shift_y; Pillow wants the inverse.
    det = 1 - kx * ky
    if math.isclose(det, 0.0):
        logging.warning("Degenerate skew (%s, %s) ignored", skew_x, skew_y)
        return image
    a = 1 / det
    b = -kx / det
    d = -ky / det
    e = 1 / det
    c = -(a * shift_x + b * shift_y)
    f = -(d * shift_x + e * shift_y)
    return image.transform(
        (out_w, out_h),
        Image.Transform.AFFINE,
        (a, b, c, d, e, f),
        resample=Image.Resampling.BICUBIC,
    )


def foreshorten_image(image: Image.Image, tilt_x: float = 0.0, tilt_y: float = 0.0) -> Image.Image:
    """Approximate a 3D tilt by compressing the tilted axis by ``cos(angle)``.

    ``tilt_x`` turns the image around the horizontal axis (compresses height),
    ``tilt_y`` around the vertical axis (compresses width).
    """
    if not tilt_x and not tilt_y:
        return image
    width = max(1, int(round(image.width * abs(math.cos(math.radians(tilt_y))))))
    height = max(1, int(round(image.height * abs(math.cos(math.radians(tilt_x))))))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def crop_image(image: Image.Image, box: tuple[int, int, int, int]) -> Image.Image:
    """Crop ``image`` to ``box`` given as ``(left, top, right, bottom)``."""
    return image.crop(box)


def encode_png(image: Image.Image, *, compress_level: int = 6) -> bytes:
    """Serialize ``image`` into PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", compress_level=compress_level)
    return buffer.getvalue()


_OPERATION_DISPATCH: dict[str, Any] = {
    "scale": scale_image,
    "foreshorten": foreshorten_image,
    "skew": skew_image,
    "flip": flip_image,
    "rotate": rotate_image,
    "crop": crop_image,
}


def apply_operations(image: Image.Image, operations: list[dict[str, Any]]) -> Image.Image:
    """Apply a sequence of transformation ``operations`` to ``image``.

    Each operation dictionary must contain a ``type`` key that matches one of
    the keys in :data:`_OPERATION_DISPATCH` and an optional ``params``
    dictionary.  Unknown operation types are skipped with a warning.
    """
    result = image
    for operation in operations:
        op_type = operation.get("type")
        params = operation.get("params", {})
        func = _OPERATION_DISPATCH.get(op_type)
        if not func:
            logging.warning("Unknown operation type: %s", op_type)
            continue
        result = func(result, **params)
    return result


__all__ = [
    "rounded_rect_mask",
    "downscale_to_limit",
    "scale_image",
    "flip_image",
    "rotate_image",
    "skew_image",
    "foreshorten_image",
    "crop_image",
    "encode_png",
    "apply_operations",
]
