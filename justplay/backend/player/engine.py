from __future__ import annotations

"""Playback engine capability contract consumed by the session controller."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from justplay.backend.player.exceptions import PlayerError


class PlaybackStatus(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class PlaybackState:
    current_time: float = 0.0
    duration: float = 0.0  # 0 means unknown
    is_playing: bool = False
    status: PlaybackStatus = PlaybackStatus.INITIAL


INITIAL_STATE = PlaybackState()


class EngineObserver(Protocol):
    """Receives engine notifications, possibly on a foreign thread."""

    def state_changed(self, state: PlaybackState) -> None: ...

    def playback_finished(self) -> None: ...


@runtime_checkable
class PlaybackEngine(Protocol):
    """Capabilities a decode/render backend must offer.

    Implementations are interchangeable and chosen at construction time.
    They report progress by calling the registered observer; a ``None``
    observer unsubscribes.
    """

    def set_observer(self, observer: Optional[EngineObserver]) -> None: ...

    def load(self, location: Path, autoplay: bool) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, to: float) -> None: ...

    def skip(self, by: float) -> None: ...

    def set_rate(self, value: float) -> None: ...

    def set_volume(self, value: float) -> None: ...

    def set_muted(self, value: bool) -> None: ...


def _make_vlc_engine() -> PlaybackEngine:
    from justplay.backend.player.vlc_engine import VlcPlaybackEngine

    return VlcPlaybackEngine()


ENGINE_FACTORIES: Dict[str, Callable[[], PlaybackEngine]] = {
    "vlc": _make_vlc_engine,
}


def make_engine(name: str = "vlc") -> PlaybackEngine:
    factory = ENGINE_FACTORIES.get(name.strip().lower())
    if factory is None:
        raise PlayerError(f"Unknown playback engine '{name}'")
    return factory()


__all__ = [
    "ENGINE_FACTORIES",
    "INITIAL_STATE",
    "EngineObserver",
    "PlaybackEngine",
    "PlaybackState",
    "PlaybackStatus",
    "make_engine",
]
