from __future__ import annotations

"""python-vlc implementation of the playback engine contract."""

from pathlib import Path
from typing import Optional
import threading

from justplay.backend.common.logging import get_logger
from justplay.backend.player.engine import EngineObserver, PlaybackState, PlaybackStatus
from justplay.backend.player.exceptions import PlayerError
from justplay.backend.player.vlc_paths import resolve_vlc_runtime

log = get_logger(__name__)


class VlcPlaybackEngine:
    """Drives a libVLC media player and relays its events to one observer.

    libVLC fires events on its own threads; the observer is called from
    there and must marshal onto its own context.
    """

    def __init__(self, vlc_root: Optional[str] = None) -> None:
        runtime = resolve_vlc_runtime(vlc_root)
        if runtime is None:
            log.info("vlc_runtime_not_bundled", extra={"hint": "Using system VLC installation"})
        try:
            import vlc  # type: ignore
        except Exception as exc:  # noqa: BLE001
            raise PlayerError(f"python-vlc import failed: {exc}") from exc
        self._vlc = vlc
        self._instance = vlc.Instance()
        if self._instance is None:
            raise PlayerError("libVLC could not be initialised")
        self._player = self._instance.media_player_new()
        self._event_manager = self._player.event_manager()
        self._lock = threading.Lock()
        self._observer: Optional[EngineObserver] = None
        self._status = PlaybackStatus.INITIAL
        self._pause_on_start = False
        self._register_events()

    # ------------------------------------------------------------------
    # Observer
    # ------------------------------------------------------------------
    def set_observer(self, observer: Optional[EngineObserver]) -> None:
        with self._lock:
            self._observer = observer

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def load(self, location: Path, autoplay: bool) -> None:
        path = Path(location)
        if not path.exists():
            raise PlayerError(f"Media path not found: {path}")
        media = self._instance.media_new_path(str(path))
        self._player.set_media(media)
        self._pause_on_start = not autoplay
        self._set_status(PlaybackStatus.LOADING)
        # libVLC only reports a length once playback has started.
        self._player.play()
        self._emit_state()

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.set_pause(1)

    def seek(self, to: float) -> None:
        self._player.set_time(max(int(to * 1000), 0))

    def skip(self, by: float) -> None:
        current = max(self._player.get_time(), 0)
        target = current + int(by * 1000)
        length = self._player.get_length()
        if length > 0:
            target = min(target, length)
        self._player.set_time(max(target, 0))

    def set_rate(self, value: float) -> None:
        self._player.set_rate(float(value))

    def set_volume(self, value: float) -> None:
        self._player.audio_set_volume(int(round(max(0.0, min(value, 1.0)) * 100)))

    def set_muted(self, value: bool) -> None:
        self._player.audio_set_mute(bool(value))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _snapshot(self) -> PlaybackState:
        with self._lock:
            status = self._status
        return PlaybackState(
            current_time=max(self._player.get_time(), 0) / 1000.0,
            duration=max(self._player.get_length(), 0) / 1000.0,
            is_playing=bool(self._player.is_playing()),
            status=status,
        )

    def _set_status(self, status: PlaybackStatus) -> None:
        with self._lock:
            self._status = status

    def _emit_state(self) -> None:
        with self._lock:
            observer = self._observer
        if observer is not None:
            observer.state_changed(self._snapshot())

    def _register_events(self) -> None:
        event_type = self._vlc.EventType
        handlers = {
            event_type.MediaPlayerOpening: self._on_opening,
            event_type.MediaPlayerPlaying: self._on_playing,
            event_type.MediaPlayerPaused: self._on_paused,
            event_type.MediaPlayerStopped: self._on_paused,
            event_type.MediaPlayerTimeChanged: self._on_progress,
            event_type.MediaPlayerLengthChanged: self._on_progress,
            event_type.MediaPlayerEndReached: self._on_end_reached,
            event_type.MediaPlayerEncounteredError: self._on_error,
        }
        for event, handler in handlers.items():
            self._event_manager.event_attach(event, handler)

    def _on_opening(self, event) -> None:  # noqa: ANN001
        self._set_status(PlaybackStatus.LOADING)
        self._emit_state()

    def _on_playing(self, event) -> None:  # noqa: ANN001
        if self._pause_on_start:
            self._pause_on_start = False
            self._player.set_pause(1)
        self._set_status(PlaybackStatus.PLAYING)
        self._emit_state()

    def _on_paused(self, event) -> None:  # noqa: ANN001
        self._set_status(PlaybackStatus.PAUSED)
        self._emit_state()

    def _on_progress(self, event) -> None:  # noqa: ANN001
        self._emit_state()

    def _on_end_reached(self, event) -> None:  # noqa: ANN001
        self._set_status(PlaybackStatus.FINISHED)
        self._emit_state()
        with self._lock:
            observer = self._observer
        if observer is not None:
            observer.playback_finished()

    def _on_error(self, event) -> None:  # noqa: ANN001
        log.warning("vlc_playback_error")
        self._set_status(PlaybackStatus.ERROR)
        self._emit_state()
