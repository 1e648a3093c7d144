"""Map a playback timestamp to the cue that should be on screen."""

from __future__ import annotations

from bisect import bisect_right
from typing import Optional, Sequence

from justplay.backend.player.subtitles.models import Cue


class CueTimeline:
    """Active-cue lookup over cues sorted by start time.

    The last matched index is cached. Playback normally moves forward a
    little between ticks, so the cached index or its successor usually
    answers the query directly; anything else (seeks, overlaps) falls back
    to a binary search on start times.

    When cues overlap, the earliest-starting cue containing ``time`` wins.
    """

    def __init__(self, cues: Sequence[Cue] = ()) -> None:
        self._cues: tuple[Cue, ...] = tuple(sorted(cues, key=lambda cue: cue.start))
        self._starts = [cue.start for cue in self._cues]
        self._max_duration = max((cue.end - cue.start for cue in self._cues), default=0.0)
        self._overlapping = any(
            later.start < earlier.end for earlier, later in zip(self._cues, self._cues[1:])
        )
        self._last_index: Optional[int] = None

    @property
    def cues(self) -> tuple[Cue, ...]:
        return self._cues

    def __len__(self) -> int:
        return len(self._cues)

    def active_index(self, time: float) -> Optional[int]:
        if not self._cues:
            return None

        if not self._overlapping:
            cached = self._match_cached(time)
            if cached is not None:
                return cached

        index = self._search(time)
        self._last_index = index
        return index

    def active_cue(self, time: float) -> Optional[Cue]:
        index = self.active_index(time)
        return None if index is None else self._cues[index]

    def _match_cached(self, time: float) -> Optional[int]:
        last = self._last_index
        if last is None:
            return None
        for candidate in (last, last + 1):
            if candidate < len(self._cues) and self._cues[candidate].contains(time):
                self._last_index = candidate
                return candidate
        return None

    def _search(self, time: float) -> Optional[int]:
        # Cues starting after ``time`` cannot match.
        upper = bisect_right(self._starts, time)
        if upper == 0:
            return None
        if not self._overlapping:
            candidate = upper - 1
            return candidate if self._cues[candidate].contains(time) else None

        # With overlaps, the earliest match may sit before the nearest start,
        # but never further back than the longest cue duration.
        lower = bisect_right(self._starts, time - self._max_duration) - 1
        for candidate in range(max(lower, 0), upper):
            if self._cues[candidate].contains(time):
                return candidate
        return None


def active_cue(cues: Sequence[Cue], time: float) -> Optional[Cue]:
    """One-shot lookup; prefer :class:`CueTimeline` for repeated queries."""

    return CueTimeline(cues).active_cue(time)


__all__ = ["CueTimeline", "active_cue"]
