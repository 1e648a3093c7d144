from justplay.backend.player.subtitles.models import (
    LANGUAGE_OPTIONS,
    Cue,
    RemoteSubtitleDownload,
    RemoteSubtitleResult,
    SubtitleLanguageOption,
    SubtitleSourceKind,
    SubtitleTrack,
    SubtitleTrackOption,
)
from justplay.backend.player.subtitles.service import SubtitleService
from justplay.backend.player.subtitles.timeline import CueTimeline, active_cue

__all__ = [
    "LANGUAGE_OPTIONS",
    "Cue",
    "CueTimeline",
    "RemoteSubtitleDownload",
    "RemoteSubtitleResult",
    "SubtitleLanguageOption",
    "SubtitleService",
    "SubtitleSourceKind",
    "SubtitleTrack",
    "SubtitleTrackOption",
    "active_cue",
]
