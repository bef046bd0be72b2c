"""Controller layer for decoupling editor state management from widgets."""

from .session import (
    EditorSession,
    Intent,
    SetActiveFrame,
    SetCutPreset,
    SetFrameOffset,
)

__all__ = [
    "EditorSession",
    "Intent",
    "SetActiveFrame",
    "SetCutPreset",
    "SetFrameOffset",
]
