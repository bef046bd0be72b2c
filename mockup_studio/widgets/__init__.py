"""Qt widgets for the Mockup Studio editor."""

from .stage import StageWidget

__all__ = ["StageWidget"]
