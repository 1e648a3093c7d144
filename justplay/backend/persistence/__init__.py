"""JSON snapshot persistence for JustPlay."""

from .recent import (
    MAX_ENTRIES,
    RecentEntry,
    RecentEntryStore,
    SubtitleSelection,
    format_timestamp,
    normalize_path_key,
)

__all__ = [
    "MAX_ENTRIES",
    "RecentEntry",
    "RecentEntryStore",
    "SubtitleSelection",
    "format_timestamp",
    "normalize_path_key",
]
