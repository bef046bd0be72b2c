"""Utility package for Mockup Studio."""

from . import frame_layout, image_fit, image_operations, validation

__all__ = ["frame_layout", "image_fit", "image_operations", "validation"]
