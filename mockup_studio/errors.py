"""Error taxonomy shared by the layout, loading and export layers."""

from __future__ import annotations


class MockupStudioError(Exception):
    """Base class for errors raised by Mockup Studio."""


class InvalidLayoutInput(MockupStudioError, ValueError):
    """Raised when geometry helpers receive out-of-domain input.

    This is a caller contract violation: the pure layout and fitting
    functions never try to recover from it.
    """


class ImageDecodeFailure(MockupStudioError):
    """Raised when a screenshot cannot be decoded or an export cannot be rasterized."""


class ExportNotReady(MockupStudioError):
    """Raised when an export is requested before the render surface can draw."""


class StaleResultDiscarded(MockupStudioError):
    """Internal signal for a decode result that lost to a newer source.

    Never propagates past :class:`mockup_studio.image_loader.ImageLoadState`.
    """
