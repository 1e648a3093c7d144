"""Playback session control, engine contract and subtitle handling."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "PlaybackEngine",
    "PlaybackSessionController",
    "PlaybackState",
    "PlaybackStatus",
    "PlayerError",
    "SessionPhase",
    "SubtitleError",
    "make_engine",
]

_MODULE_EXPORTS = {
    "controller": {"PlaybackSessionController", "SessionPhase"},
    "engine": {"PlaybackEngine", "PlaybackState", "PlaybackStatus", "make_engine"},
    "exceptions": {"PlayerError", "SubtitleError"},
}

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from .controller import PlaybackSessionController, SessionPhase
    from .engine import PlaybackEngine, PlaybackState, PlaybackStatus, make_engine
    from .exceptions import PlayerError, SubtitleError


def __getattr__(name: str) -> Any:
    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            module = importlib.import_module(f"{__name__}.{module_name}")
            value = getattr(module, name)
            globals()[name] = value
            return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
