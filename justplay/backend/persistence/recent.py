"""Recent playback entries with resume positions and subtitle selections.

The whole list is stored as one JSON snapshot document. Every mutation
rewrites it through a temporary file that is atomically renamed over the
previous snapshot, so readers never observe a half-written document.

Loading is fail-soft: a missing or corrupt document yields an empty list,
and a single bad record (or bad optional field) does not prevent the rest
from loading.
"""

from __future__ import annotations

import json
import math
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from justplay.backend.common.errors import PersistenceError
from justplay.backend.common.logging import get_logger
from justplay.backend.player.subtitles.models import SubtitleSourceKind

log = get_logger(__name__)

MAX_ENTRIES = 50
RESUME_FINISHED_RATIO = 0.98
SNAPSHOT_VERSION = 1

_OPTIONAL_FIELDS = frozenset({"file_size", "content_modification_date", "selected_subtitle"})


def normalize_path_key(path: Union[str, Path]) -> str:
    """Stable identity string for a media file path."""

    resolved = Path(path).expanduser().resolve(strict=False)
    return os.path.normcase(str(resolved))


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(seconds: float) -> str:
    """``MM:SS`` below an hour, ``H:MM:SS`` otherwise."""

    total = max(int(seconds), 0) if math.isfinite(seconds) else 0
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class SubtitleSelection(BaseModel):
    """Pointer back to the subtitle track active when the entry was saved."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    file_path_key: str
    location_handle: str
    display_name: str
    source_kind: SubtitleSourceKind

    def resolved_path(self) -> Path:
        return Path(self.location_handle)


class RecentEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    file_path_key: str
    location_handle: str
    last_playback_position: float = Field(default=0.0, ge=0)
    duration: float = Field(default=0.0, ge=0)
    last_opened_at: datetime
    file_size: Optional[int] = Field(default=None, ge=0)
    content_modification_date: Optional[datetime] = None
    selected_subtitle: Optional[SubtitleSelection] = None

    @field_validator("last_opened_at", "content_modification_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @property
    def display_name(self) -> str:
        return Path(self.location_handle).name or Path(self.file_path_key).name

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        return min(max(self.last_playback_position / self.duration, 0.0), 1.0)

    def resolved_path(self) -> Path:
        return Path(self.location_handle)

    def progress_detail(self) -> str:
        if self.last_playback_position <= 0:
            return "Start from beginning"
        resume_text = format_timestamp(self.last_playback_position)
        if self.duration > 0:
            return f"Resume at {resume_text} of {format_timestamp(self.duration)}"
        return f"Resume at {resume_text}"


def _validate_record(raw: Any) -> Optional[RecentEntry]:
    if not isinstance(raw, Mapping):
        return None
    try:
        return RecentEntry.model_validate(raw)
    except ValidationError as exc:
        broken = {err["loc"][0] for err in exc.errors() if err.get("loc")}
        if not broken or not broken <= _OPTIONAL_FIELDS:
            log.warning("recent_entry_dropped", extra={"errors": exc.error_count()})
            return None
        log.warning("recent_entry_fields_reset", extra={"fields": sorted(map(str, broken))})
        cleaned = {k: v for k, v in raw.items() if k not in broken}
        try:
            return RecentEntry.model_validate(cleaned)
        except ValidationError:
            return None


class RecentEntryStore:
    """Ordered, capacity-bounded set of :class:`RecentEntry` keyed by path."""

    def __init__(
        self,
        path: Path,
        *,
        max_entries: int = MAX_ENTRIES,
        finished_ratio: float = RESUME_FINISHED_RATIO,
    ) -> None:
        self._path = Path(path)
        self._max_entries = max(1, max_entries)
        self._finished_ratio = finished_ratio
        self._entries: List[RecentEntry] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entries(self) -> List[RecentEntry]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Snapshot I/O
    # ------------------------------------------------------------------
    def load(self) -> List[RecentEntry]:
        entries: List[RecentEntry] = []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            payload = None
        except (OSError, ValueError) as exc:
            log.warning("recent_store_unreadable", extra={"path": str(self._path), "error": str(exc)})
            payload = None

        records = payload.get("entries") if isinstance(payload, Mapping) else None
        if isinstance(records, list):
            seen: set[str] = set()
            for raw in records:
                entry = _validate_record(raw)
                if entry is None or entry.file_path_key in seen:
                    continue
                seen.add(entry.file_path_key)
                entries.append(entry)

        self._entries = self._ordered(entries)
        return self.entries

    def save(self, entries: Iterable[RecentEntry]) -> None:
        ordered = self._ordered(entries)
        document = {
            "version": SNAPSHOT_VERSION,
            "entries": [entry.model_dump(mode="json") for entry in ordered],
        }
        temp_file = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with temp_file.open("w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            temp_file.replace(self._path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                temp_file.unlink(missing_ok=True)
            except OSError:
                pass
            raise PersistenceError(f"Unable to write recent entries to {self._path}: {exc}") from exc
        self._entries = ordered

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, file_path_key: str) -> Optional[RecentEntry]:
        for entry in self._entries:
            if entry.file_path_key == file_path_key:
                return entry
        return None

    def resume_position_for(self, file_path_key: str) -> Optional[float]:
        entry = self.get(file_path_key)
        if entry is None or entry.duration <= 0:
            return None
        position = entry.last_playback_position
        if position <= 0:
            return None
        if position / entry.duration >= self._finished_ratio:
            return None
        return min(position, entry.duration)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def upsert(
        self,
        file_path_key: str,
        position: float,
        duration: float,
        opened_at: datetime,
        subtitle_selection: Optional[SubtitleSelection] = None,
        size_hint: Optional[int] = None,
        mtime_hint: Optional[datetime] = None,
        location_handle: Optional[str] = None,
    ) -> RecentEntry:
        """Merge a progress report into the entry for ``file_path_key``.

        Duration never regresses, the position is clamped into the merged
        duration and the selection always reflects the caller's current one.
        The in-memory list is updated even when the write fails, in which
        case :class:`PersistenceError` propagates to the caller.
        """

        existing = self.get(file_path_key)
        merged_duration = max(duration, 0.0)
        if existing is not None:
            merged_duration = max(existing.duration, merged_duration)
        clamped = max(position, 0.0)
        if merged_duration > 0:
            clamped = min(clamped, merged_duration)

        if existing is None:
            entry = RecentEntry(
                file_path_key=file_path_key,
                location_handle=location_handle or file_path_key,
                last_playback_position=clamped,
                duration=merged_duration,
                last_opened_at=_utc(opened_at),
                file_size=size_hint,
                content_modification_date=mtime_hint,
                selected_subtitle=subtitle_selection,
            )
            entries = [*self._entries, entry]
        else:
            entry = existing.model_copy(
                update={
                    "location_handle": location_handle or existing.location_handle,
                    "last_playback_position": clamped,
                    "duration": merged_duration,
                    "last_opened_at": _utc(opened_at),
                    "file_size": size_hint if size_hint is not None else existing.file_size,
                    "content_modification_date": _utc(mtime_hint) or existing.content_modification_date,
                    "selected_subtitle": subtitle_selection,
                }
            )
            entries = [entry if e.file_path_key == file_path_key else e for e in self._entries]

        self._entries = self._ordered(entries)
        self.save(self._entries)
        return entry

    def remove(self, file_path_key: str) -> bool:
        if self.get(file_path_key) is None:
            return False
        self._entries = [e for e in self._entries if e.file_path_key != file_path_key]
        self.save(self._entries)
        return True

    def clear(self) -> None:
        self._entries = []
        self.save(self._entries)

    def _ordered(self, entries: Iterable[RecentEntry]) -> List[RecentEntry]:
        ordered = sorted(entries, key=lambda e: e.last_opened_at, reverse=True)
        return ordered[: self._max_entries]


__all__ = [
    "MAX_ENTRIES",
    "RecentEntry",
    "RecentEntryStore",
    "SubtitleSelection",
    "format_timestamp",
    "normalize_path_key",
]
