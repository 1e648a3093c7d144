from __future__ import annotations

"""Dataclasses shared by the subtitle parser, matcher and controller."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(frozen=True, slots=True)
class Cue:
    index: int
    start: float
    end: float
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def contains(self, time: float) -> bool:
        return self.start <= time < self.end


class SubtitleSourceKind(str, Enum):
    AUTO_DETECTED = "autoDetected"
    MANUAL = "manual"
    REMOTE_DOWNLOADED = "remoteDownloaded"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    SubtitleSourceKind.AUTO_DETECTED: "Auto",
    SubtitleSourceKind.MANUAL: "Imported",
    SubtitleSourceKind.REMOTE_DOWNLOADED: "Downloaded",
}


def subtitle_track_id(source_kind: SubtitleSourceKind, location: Path) -> str:
    """Stable identity of a track loaded from ``location`` as ``source_kind``."""

    return f"{source_kind.value}::{location}"


@dataclass(slots=True)
class SubtitleTrack:
    source_kind: SubtitleSourceKind
    location: Path
    cues: tuple[Cue, ...]
    display_name: str = ""
    id: str = field(init=False)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.location.name
        self.id = subtitle_track_id(self.source_kind, self.location)


@dataclass(frozen=True, slots=True)
class SubtitleTrackOption:
    id: str
    display_name: str
    source_label: str


@dataclass(frozen=True, slots=True)
class SubtitleLanguageOption:
    code: str
    title: str


ANY_LANGUAGE_CODE = "any"

LANGUAGE_OPTIONS: tuple[SubtitleLanguageOption, ...] = (
    SubtitleLanguageOption(ANY_LANGUAGE_CODE, "Any Language"),
    SubtitleLanguageOption("en", "English"),
    SubtitleLanguageOption("es", "Spanish"),
    SubtitleLanguageOption("fr", "French"),
    SubtitleLanguageOption("de", "German"),
    SubtitleLanguageOption("it", "Italian"),
    SubtitleLanguageOption("pt", "Portuguese"),
    SubtitleLanguageOption("ja", "Japanese"),
    SubtitleLanguageOption("ko", "Korean"),
    SubtitleLanguageOption("zh", "Chinese"),
)

SUPPORTED_LANGUAGE_CODES: frozenset[str] = frozenset(option.code for option in LANGUAGE_OPTIONS)


@dataclass(frozen=True, slots=True)
class RemoteSubtitleResult:
    id: int
    file_id: int
    file_name: str
    language_code: str
    title: Optional[str] = None
    language_name: Optional[str] = None
    release: Optional[str] = None

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "file_name": self.file_name,
            "title": self.title,
            "language_code": self.language_code,
            "language_name": self.language_name,
            "release": self.release,
        }


@dataclass(frozen=True, slots=True)
class RemoteSubtitleDownload:
    file_name: str
    subtitle_text: str


SUBTITLE_EXTENSION = ".srt"
