from __future__ import annotations

"""Playback session controller.

Owns the state of the currently opened video: subtitle tracks, the cue on
screen, the pending resume seek and the recent-entry bookkeeping. The
controller is single-threaded. Engine notifications and remote subtitle
completions arrive on foreign threads and are posted into a
:class:`SerialDispatcher`; they only touch controller state once the owner
drains it (``process_events``).
"""

from concurrent.futures import Future
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from justplay.backend.common.errors import PersistenceError, TaskError
from justplay.backend.common.logging import get_logger
from justplay.backend.common.tasks import PeriodicTask, SerialDispatcher, TaskRunner
from justplay.backend.persistence.recent import (
    RecentEntry,
    RecentEntryStore,
    SubtitleSelection,
    normalize_path_key,
)
from justplay.backend.player.engine import (
    INITIAL_STATE,
    PlaybackEngine,
    PlaybackState,
    PlaybackStatus,
)
from justplay.backend.player.exceptions import (
    NotConfigured,
    PlayerError,
    SubtitleError,
    UnsupportedInput,
)
from justplay.backend.player.subtitles import srt
from justplay.backend.player.subtitles.models import (
    ANY_LANGUAGE_CODE,
    LANGUAGE_OPTIONS,
    Cue,
    RemoteSubtitleResult,
    SubtitleLanguageOption,
    SubtitleSourceKind,
    SubtitleTrack,
    SubtitleTrackOption,
)
from justplay.backend.player.subtitles.providers.base import SubtitleProvider
from justplay.backend.player.subtitles.providers.stub import unconfigured_provider_factory
from justplay.backend.player.subtitles.service import (
    SubtitleService,
    find_sidecar_subtitle,
    search_query_for,
)
from justplay.backend.player.subtitles.timeline import CueTimeline
from justplay.config.settings.core import Settings, normalize_language_code
from justplay.config.settings.paths import get_downloaded_subtitles_dir

log = get_logger(__name__)

IDLE_STATUS = "Drop an MP4 or MKV file, or open one from the menu."
NOT_CONFIGURED_MESSAGE = "Add your OpenSubtitles API key to enable online subtitle search."
SUBTITLE_READ_FAILED = "Unable to read subtitle file."

ProviderFactory = Callable[[str], SubtitleProvider]
PreferencesSaver = Callable[[Settings], object]


class SessionPhase(str, Enum):
    NO_FILE = "no-file"
    OPENING = "opening"
    READY = "ready"


class _EngineRelay:
    """Engine observer that forwards notifications onto the dispatcher.

    Each notification carries the load generation current when it was
    relayed so the controller can drop events left over from earlier media.
    """

    def __init__(self, controller: "PlaybackSessionController", dispatcher: SerialDispatcher) -> None:
        self._controller = controller
        self._dispatcher = dispatcher

    def state_changed(self, state: PlaybackState) -> None:
        self._dispatcher.post(self._controller._handle_state_change, self._controller._load_generation, state)

    def playback_finished(self) -> None:
        self._dispatcher.post(self._controller._handle_playback_finished, self._controller._load_generation)


class PlaybackSessionController:
    """Drives a :class:`PlaybackEngine` for one video at a time."""

    def __init__(
        self,
        engine: PlaybackEngine,
        store: RecentEntryStore,
        settings: Settings,
        *,
        subtitle_service: Optional[SubtitleService] = None,
        provider_factory: ProviderFactory = unconfigured_provider_factory,
        dispatcher: Optional[SerialDispatcher] = None,
        preferences_saver: Optional[PreferencesSaver] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.engine = engine
        self._store = store
        self._settings = settings
        self._provider_factory = provider_factory
        self._dispatcher = dispatcher or SerialDispatcher("player")
        self._preferences_saver = preferences_saver
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._subtitles = subtitle_service or SubtitleService(
            provider_factory(settings.subtitle_api_key),
            get_downloaded_subtitles_dir(),
            TaskRunner(max_workers=settings.task_workers, context="subtitles"),
        )

        self._phase = SessionPhase.NO_FILE
        self._playback_state: PlaybackState = INITIAL_STATE
        self._current_path: Optional[Path] = None
        self._current_key: Optional[str] = None
        self._opened_at: datetime = self._clock()
        self._pending_resume_seek: Optional[float] = None
        self._load_generation = 0
        self._status_message = IDLE_STATUS

        self._tracks: List[SubtitleTrack] = []
        self._active_track_id: Optional[str] = None
        self._timeline: Optional[CueTimeline] = None
        self._subtitles_enabled = True
        self._subtitle_text: Optional[str] = None
        self._active_cue_index: Optional[int] = None

        self._playback_rate = 1.0
        self._volume = 1.0
        self._is_muted = False

        self._subtitle_search_query = ""
        self._subtitle_search_results: tuple[RemoteSubtitleResult, ...] = ()
        self._subtitle_search_message: Optional[str] = None
        self._subtitle_search_is_loading = False
        self._search_generation = 0
        self._download_in_flight_id: Optional[int] = None

        self._store.load()
        if not self.is_subtitle_api_configured:
            self._subtitle_search_message = NOT_CONFIGURED_MESSAGE

        self._relay = _EngineRelay(self, self._dispatcher)
        self.engine.set_observer(self._relay)
        self.engine.set_rate(self._playback_rate)
        self.engine.set_volume(self._volume)
        self.engine.set_muted(self._is_muted)

        self._progress_timer = PeriodicTask(
            settings.progress_interval,
            lambda: self._dispatcher.post(self.persist_progress),
            name="progress",
        )
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Begin periodic progress persistence."""

        self._progress_timer.start()

    def process_events(self) -> int:
        """Apply queued engine and remote-service notifications."""

        return self._dispatcher.drain()

    def close(self) -> None:
        """Flush progress and detach from the engine (application shutdown)."""

        if self._closed:
            return
        self._closed = True
        self._progress_timer.stop()
        self.process_events()
        self.persist_progress(force=True)
        self.engine.set_observer(None)
        self._subtitles.close()

    def __enter__(self) -> "PlaybackSessionController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def dispatcher(self) -> SerialDispatcher:
        return self._dispatcher

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def playback_state(self) -> PlaybackState:
        return self._playback_state

    @property
    def current_path(self) -> Optional[Path]:
        return self._current_path

    @property
    def current_file_path_key(self) -> Optional[str]:
        return self._current_key

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def recent_entries(self) -> List[RecentEntry]:
        return self._store.entries

    @property
    def subtitle_text(self) -> Optional[str]:
        return self._subtitle_text

    @property
    def active_cue_index(self) -> Optional[int]:
        return self._active_cue_index

    @property
    def active_cues(self) -> tuple[Cue, ...]:
        return self._timeline.cues if self._timeline is not None else ()

    @property
    def available_subtitle_tracks(self) -> tuple[SubtitleTrackOption, ...]:
        return tuple(
            SubtitleTrackOption(id=track.id, display_name=track.display_name, source_label=track.source_kind.label)
            for track in self._tracks
        )

    @property
    def selected_subtitle_track_id(self) -> Optional[str]:
        return self._active_track_id

    @property
    def active_subtitle_file_name(self) -> Optional[str]:
        track = self._active_track()
        return track.display_name if track is not None else None

    @property
    def has_subtitle_track(self) -> bool:
        return self._active_track_id is not None

    @property
    def subtitles_enabled(self) -> bool:
        return self._subtitles_enabled

    @subtitles_enabled.setter
    def subtitles_enabled(self, value: bool) -> None:
        self._subtitles_enabled = bool(value)
        self._update_subtitle_text(self._playback_state.current_time)

    @property
    def playback_rate(self) -> float:
        return self._playback_rate

    @playback_rate.setter
    def playback_rate(self, value: float) -> None:
        self._playback_rate = float(value)
        self.engine.set_rate(self._playback_rate)

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = float(value)
        self.engine.set_volume(self._volume)

    @property
    def is_muted(self) -> bool:
        return self._is_muted

    @is_muted.setter
    def is_muted(self, value: bool) -> None:
        self._is_muted = bool(value)
        self.engine.set_muted(self._is_muted)

    @property
    def is_subtitle_api_configured(self) -> bool:
        return self._settings.is_subtitle_api_configured

    @property
    def language_options(self) -> tuple[SubtitleLanguageOption, ...]:
        return LANGUAGE_OPTIONS

    @property
    def subtitle_search_language(self) -> str:
        return self._settings.subtitle_language

    @property
    def subtitle_search_query(self) -> str:
        return self._subtitle_search_query

    @subtitle_search_query.setter
    def subtitle_search_query(self, value: str) -> None:
        self._subtitle_search_query = value

    @property
    def subtitle_search_results(self) -> tuple[RemoteSubtitleResult, ...]:
        return self._subtitle_search_results

    @property
    def subtitle_search_message(self) -> Optional[str]:
        return self._subtitle_search_message

    @property
    def subtitle_search_is_loading(self) -> bool:
        return self._subtitle_search_is_loading

    @property
    def subtitle_download_in_flight_id(self) -> Optional[int]:
        return self._download_in_flight_id

    # ------------------------------------------------------------------
    # Opening files
    # ------------------------------------------------------------------
    def open(self, location: Union[str, Path], autoplay: bool = True) -> bool:
        path = Path(location).expanduser()
        try:
            self._check_supported(path)
        except UnsupportedInput as exc:
            self._status_message = str(exc)
            log.info("open_rejected", extra={"path": str(path), "error": str(exc)})
            return False

        path = path.resolve(strict=False)
        key = normalize_path_key(path)
        self._current_path = path
        self._current_key = key
        self._opened_at = self._clock()
        self._phase = SessionPhase.OPENING
        self._playback_state = INITIAL_STATE

        self._subtitle_search_query = search_query_for(path)
        self._subtitle_search_results = ()
        if self.is_subtitle_api_configured:
            self._subtitle_search_message = "Search online subtitles for this video."

        resume_position = self._store.resume_position_for(key)
        self._pending_resume_seek = resume_position
        if resume_position is not None:
            self._status_message = f"{path.name} (resuming)"
        else:
            self._status_message = path.name

        self._reset_subtitle_state()
        self._load_auto_detected_subtitle(path)
        self._restore_persisted_subtitle_selection(key)

        self._load_generation += 1
        try:
            self.engine.load(path, autoplay)
        except PlayerError as exc:
            log.warning("open_failed", extra={"path": str(path), "error": str(exc)})
            self._status_message = f"Unable to open {path.name}."
            self._reset_subtitle_state()
            self._current_path = None
            self._current_key = None
            self._pending_resume_seek = None
            self._phase = SessionPhase.NO_FILE
            return False

        log.info("file_opened", extra={"path": str(path), "resume_position": resume_position})
        existing = self._store.get(key)
        seed_duration = existing.duration if existing is not None else 0.0
        self._upsert(resume_position or 0.0, seed_duration)
        return True

    def open_recent(self, entry: RecentEntry, autoplay: bool = True) -> bool:
        return self.open(entry.resolved_path(), autoplay)

    def remove_recent(self, file_path_key: str) -> bool:
        try:
            return self._store.remove(file_path_key)
        except PersistenceError as exc:
            log.warning("recent_store_save_failed", extra={"error": str(exc)})
            return True

    # ------------------------------------------------------------------
    # Subtitle tracks
    # ------------------------------------------------------------------
    def select_subtitle_track(self, track_id: str) -> bool:
        for track in self._tracks:
            if track.id == track_id:
                self._activate_track(track)
                return True
        return False

    def import_subtitle(self, location: Union[str, Path]) -> bool:
        return self._load_subtitle(Path(location), SubtitleSourceKind.MANUAL)

    def remove_active_subtitle_track(self) -> None:
        if self._active_track_id is None:
            self._clear_active_track()
            return

        removed_id = self._active_track_id
        self._tracks = [track for track in self._tracks if track.id != removed_id]
        if self._tracks:
            self._activate_track(self._tracks[0], persist=False)
        else:
            self._clear_active_track()
        log.info("subtitle_track_removed", extra={"track_id": removed_id})
        self.persist_progress(force=True)

    # ------------------------------------------------------------------
    # Transport pass-throughs
    # ------------------------------------------------------------------
    def toggle_play_pause(self) -> None:
        if self._playback_state.is_playing:
            self.engine.pause()
        else:
            self.engine.play()

    def skip_forward(self) -> None:
        self.engine.skip(self._settings.skip_interval)

    def skip_backward(self) -> None:
        self.engine.skip(-self._settings.skip_interval)

    def seek(self, to: float) -> None:
        self.engine.seek(to)

    # ------------------------------------------------------------------
    # Progress persistence
    # ------------------------------------------------------------------
    def persist_progress(self, force: bool = False) -> None:
        """Record the current position for the open file.

        Unforced calls are skipped until a duration is known. While a resume
        seek is still pending the stored resume point is kept rather than
        overwritten with the not-yet-seeked engine time.
        """

        if self._current_key is None:
            return

        existing = self._store.get(self._current_key)
        duration = max(self._playback_state.duration, existing.duration if existing is not None else 0.0)
        if self._pending_resume_seek is not None:
            current_time = self._pending_resume_seek
        else:
            current_time = max(self._playback_state.current_time, 0.0)

        if duration <= 0 and not force:
            return
        if self._playback_state.status is PlaybackStatus.FINISHED and not force:
            return

        self._upsert(current_time, duration)

    # ------------------------------------------------------------------
    # Remote subtitles
    # ------------------------------------------------------------------
    def set_subtitle_api_key(self, api_key: str) -> None:
        trimmed = api_key.strip()
        self._settings = replace(self._settings, subtitle_api_key=trimmed)
        self._subtitles.set_provider(self._provider_factory(trimmed))

        if trimmed:
            self._subtitle_search_message = "API key saved."
        else:
            self._subtitle_search_results = ()
            self._subtitle_search_message = NOT_CONFIGURED_MESSAGE
        self._save_preferences()

    def set_subtitle_language(self, code: str) -> None:
        self._settings = replace(self._settings, subtitle_language=normalize_language_code(code))
        self._save_preferences()

    def use_current_file_name_for_search(self) -> None:
        if self._current_path is None:
            return
        self._subtitle_search_query = search_query_for(self._current_path)

    def search_subtitles(self) -> bool:
        if not self.is_subtitle_api_configured:
            self._subtitle_search_message = "Add your OpenSubtitles API key to search subtitles online."
            return False

        query = self._subtitle_search_query.strip()
        if not query:
            self._subtitle_search_message = "Enter a title or use the current file name."
            self._subtitle_search_results = ()
            return False

        language_code = self._settings.subtitle_language
        language = None if language_code == ANY_LANGUAGE_CODE else language_code

        self._search_generation += 1
        generation = self._search_generation
        self._subtitle_search_is_loading = True
        self._subtitle_search_message = "Searching subtitles..."
        self._subtitle_search_results = ()

        try:
            future = self._subtitles.submit_search(query, language)
        except TaskError as exc:
            self._subtitle_search_is_loading = False
            self._subtitle_search_message = str(exc)
            return False

        future.add_done_callback(lambda f: self._dispatcher.post(self._finish_search, generation, f))
        log.info("subtitle_search_started", extra={"query": query, "language": language})
        return True

    def download_subtitle(self, result: RemoteSubtitleResult) -> bool:
        """Start downloading ``result``; rejected while another download runs."""

        if self._download_in_flight_id is not None:
            log.info(
                "subtitle_download_rejected",
                extra={"requested": result.id, "in_flight": self._download_in_flight_id},
            )
            return False

        if self._current_path is None or self._current_key is None:
            self._subtitle_search_message = "Open a video before downloading subtitles."
            return False

        self._download_in_flight_id = result.id
        self._subtitle_search_message = f"Downloading {result.file_name}..."
        video_key = self._current_key

        try:
            future = self._subtitles.submit_download(result, self._current_path)
        except TaskError as exc:
            self._download_in_flight_id = None
            self._subtitle_search_message = str(exc)
            return False

        future.add_done_callback(lambda f: self._dispatcher.post(self._finish_download, video_key, f))
        return True

    # ------------------------------------------------------------------
    # Notification handlers (run on the owner context)
    # ------------------------------------------------------------------
    def _handle_state_change(self, generation: int, state: PlaybackState) -> None:
        if generation != self._load_generation:
            log.debug("engine_event_stale", extra={"generation": generation})
            return
        self._playback_state = state
        if self._phase is SessionPhase.OPENING and (
            state.duration > 0
            or state.status in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED, PlaybackStatus.FINISHED)
        ):
            self._phase = SessionPhase.READY
        if state.status is PlaybackStatus.ERROR:
            log.warning("engine_reported_error", extra={"path": str(self._current_path)})
        self._apply_pending_resume_seek(state)
        self._update_subtitle_text(state.current_time)

    def _handle_playback_finished(self, generation: int) -> None:
        if generation != self._load_generation or self._current_key is None:
            return
        existing = self._store.get(self._current_key)
        duration = max(self._playback_state.duration, existing.duration if existing is not None else 0.0)
        self._pending_resume_seek = None
        self._upsert(0.0, duration)

    def _finish_search(self, generation: int, future: Future) -> None:
        if generation != self._search_generation:
            log.debug("subtitle_search_superseded", extra={"generation": generation})
            return

        self._subtitle_search_is_loading = False
        try:
            results = list(future.result())
        except NotConfigured:
            self._subtitle_search_message = NOT_CONFIGURED_MESSAGE
            return
        except Exception as exc:  # noqa: BLE001
            log.warning("subtitle_search_failed", extra={"error": str(exc)})
            self._subtitle_search_message = str(exc) or "Subtitle search failed."
            return

        self._subtitle_search_results = tuple(results)
        if results:
            self._subtitle_search_message = f"Found {len(results)} subtitles."
        else:
            self._subtitle_search_message = "No subtitles found."

    def _finish_download(self, video_key: str, future: Future) -> None:
        self._download_in_flight_id = None
        try:
            saved_path: Path = future.result()
        except NotConfigured:
            self._subtitle_search_message = NOT_CONFIGURED_MESSAGE
            return
        except Exception as exc:  # noqa: BLE001
            log.warning("subtitle_download_failed", extra={"error": str(exc)})
            self._subtitle_search_message = str(exc) or "Subtitle download failed."
            return

        if video_key != self._current_key:
            log.info("subtitle_download_orphaned", extra={"path": str(saved_path)})
            self._subtitle_search_message = "Downloaded subtitle belongs to a previously opened video."
            return

        self._load_subtitle(saved_path, SubtitleSourceKind.REMOTE_DOWNLOADED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _check_supported(self, path: Path) -> None:
        extension = path.suffix.lower().lstrip(".")
        if extension not in self._settings.supported_extensions:
            raise UnsupportedInput(f"Unsupported file type: .{extension}")

    def _apply_pending_resume_seek(self, state: PlaybackState) -> None:
        pending = self._pending_resume_seek
        if pending is None or state.duration <= 0:
            return

        clamped = min(max(pending, 0.0), max(state.duration - 1, 0.0))
        self._pending_resume_seek = None
        if clamped <= 0:
            return

        log.info("resume_seek", extra={"position": clamped})
        self.engine.seek(clamped)

    def _reset_subtitle_state(self) -> None:
        self._tracks = []
        self._clear_active_track()

    def _load_auto_detected_subtitle(self, video_path: Path) -> None:
        sidecar = find_sidecar_subtitle(video_path)
        if sidecar is not None:
            self._load_subtitle(sidecar, SubtitleSourceKind.AUTO_DETECTED, announce=False, persist=False)

    def _restore_persisted_subtitle_selection(self, key: str) -> None:
        entry = self._store.get(key)
        selection = entry.selected_subtitle if entry is not None else None
        if selection is None:
            return
        subtitle_path = selection.resolved_path()
        if not subtitle_path.is_file():
            log.info("subtitle_selection_missing", extra={"path": str(subtitle_path)})
            return
        self._load_subtitle(subtitle_path, selection.source_kind, announce=False, persist=False)

    def _load_subtitle(
        self,
        location: Path,
        source_kind: SubtitleSourceKind,
        *,
        announce: bool = True,
        persist: bool = True,
    ) -> bool:
        try:
            cues = srt.parse_file(location)
        except SubtitleError as exc:
            log.warning(
                "subtitle_load_failed",
                extra={"path": str(location), "source": source_kind.value, "error": str(exc)},
            )
            if source_kind is not SubtitleSourceKind.AUTO_DETECTED:
                self._status_message = SUBTITLE_READ_FAILED
            return False

        track = SubtitleTrack(
            source_kind=source_kind,
            location=location.expanduser().resolve(strict=False),
            cues=tuple(cues),
        )
        for position, existing in enumerate(self._tracks):
            if existing.id == track.id:
                self._tracks[position] = track
                break
        else:
            self._tracks.append(track)

        log.info("subtitle_loaded", extra={"track_id": track.id, "cues": len(track.cues)})
        self._activate_track(track, persist=persist)

        if announce:
            message = f"Loaded subtitle: {track.display_name}"
            if source_kind is SubtitleSourceKind.MANUAL:
                self._status_message = message
            elif source_kind is SubtitleSourceKind.REMOTE_DOWNLOADED:
                self._subtitle_search_message = message
        return True

    def _active_track(self) -> Optional[SubtitleTrack]:
        for track in self._tracks:
            if track.id == self._active_track_id:
                return track
        return None

    def _activate_track(self, track: SubtitleTrack, *, persist: bool = True) -> None:
        self._active_track_id = track.id
        self._timeline = CueTimeline(track.cues)
        self._subtitles_enabled = True
        self._update_subtitle_text(self._playback_state.current_time)
        if persist:
            self.persist_progress(force=True)

    def _clear_active_track(self) -> None:
        self._timeline = None
        self._subtitle_text = None
        self._active_cue_index = None
        self._active_track_id = None

    def _update_subtitle_text(self, time: float) -> None:
        if not self._subtitles_enabled or self._timeline is None or not len(self._timeline):
            self._subtitle_text = None
            self._active_cue_index = None
            return

        index = self._timeline.active_index(time)
        self._active_cue_index = index
        self._subtitle_text = self._timeline.cues[index].text if index is not None else None

    def _subtitle_selection(self) -> Optional[SubtitleSelection]:
        track = self._active_track()
        if track is None:
            return None
        return SubtitleSelection(
            file_path_key=normalize_path_key(track.location),
            location_handle=str(track.location),
            display_name=track.display_name,
            source_kind=track.source_kind,
        )

    def _save_preferences(self) -> None:
        if self._preferences_saver is None:
            return
        try:
            self._preferences_saver(self._settings)
        except OSError as exc:
            log.warning("subtitle_preferences_save_failed", extra={"error": str(exc)})

    def _upsert(self, position: float, duration: float) -> None:
        path = self._current_path
        key = self._current_key
        if path is None or key is None:
            return

        size_hint: Optional[int] = None
        mtime_hint: Optional[datetime] = None
        try:
            stat = path.stat()
            size_hint = stat.st_size
            mtime_hint = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        except OSError:
            pass

        try:
            self._store.upsert(
                key,
                position,
                duration,
                self._opened_at,
                subtitle_selection=self._subtitle_selection(),
                size_hint=size_hint,
                mtime_hint=mtime_hint,
                location_handle=str(path),
            )
        except PersistenceError as exc:
            log.warning("recent_store_save_failed", extra={"path": str(path), "error": str(exc)})
