from __future__ import annotations

"""Exceptions for the player subsystem."""

from justplay.backend.common.errors import JustPlayError


class PlayerError(JustPlayError):
    """Top-level error raised by the player subsystem."""


class UnsupportedInput(PlayerError):
    """Raised when a media file's extension is not in the allow-list."""


class SubtitleError(PlayerError):
    """Raised when subtitle loading, discovery or download fails."""


class SubtitleFormatError(SubtitleError):
    """Raised when subtitle content yields no usable cues."""


class SubtitleReadError(SubtitleError, OSError):
    """Raised when a subtitle file cannot be read or written."""


class RemoteServiceError(SubtitleError):
    """Raised when the remote subtitle service fails (network, auth, rate limit)."""


class NotConfigured(RemoteServiceError):
    """Raised when the remote subtitle service has no access credential."""
