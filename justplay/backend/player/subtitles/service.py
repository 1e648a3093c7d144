from __future__ import annotations

"""Subtitle discovery, remote search/download submission and storage."""

from concurrent.futures import Future
from pathlib import Path
from typing import List, Optional
import base64
import uuid

from guessit import guessit

from justplay.backend.common.logging import get_logger
from justplay.backend.common.tasks import TaskRunner, TaskSpec
from justplay.backend.player.exceptions import SubtitleReadError
from justplay.backend.player.subtitles.models import (
    SUBTITLE_EXTENSION,
    RemoteSubtitleResult,
)
from justplay.backend.player.subtitles.providers.base import SubtitleProvider

log = get_logger(__name__)

_FORBIDDEN_NAME_CHARS = "/:\\"
_FALLBACK_FILE_NAME = "subtitle.srt"


def find_sidecar_subtitle(video_path: Path) -> Optional[Path]:
    """Return a same-directory ``.srt`` whose base name matches the video.

    Both the base name and the extension compare case-insensitively; hidden
    files are ignored.
    """

    directory = video_path.parent
    base_name = video_path.stem.lower()
    try:
        candidates = sorted(directory.iterdir())
    except OSError:
        return None
    for candidate in candidates:
        if candidate.name.startswith("."):
            continue
        if candidate.suffix.lower() == SUBTITLE_EXTENSION and candidate.stem.lower() == base_name:
            if candidate.is_file():
                return candidate
    return None


def _plain_query(video_path: Path) -> str:
    return video_path.stem.replace(".", " ").replace("_", " ").strip()


def search_query_for(video_path: Path) -> str:
    """Derive a remote search query from a video's file name."""

    try:
        details = guessit(video_path.name)
    except Exception:  # noqa: BLE001
        log.debug("subtitle_query_guess_failed", extra={"path": str(video_path)})
        return _plain_query(video_path)

    title = details.get("title")
    if not isinstance(title, str) or not title.strip():
        return _plain_query(video_path)

    parts = [title.strip()]
    season = details.get("season")
    episode = details.get("episode")
    if isinstance(season, int) and isinstance(episode, int):
        parts.append(f"S{season:02d}E{episode:02d}")
    elif isinstance(details.get("year"), int):
        parts.append(str(details["year"]))
    return " ".join(parts)


def sanitize_file_name(file_name: str) -> str:
    trimmed = file_name.strip()
    if not trimmed:
        return _FALLBACK_FILE_NAME
    sanitized = "".join("_" if ch in _FORBIDDEN_NAME_CHARS else ch for ch in trimmed)
    return sanitized or _FALLBACK_FILE_NAME


def _video_key(video_path: Path) -> str:
    encoded = base64.urlsafe_b64encode(str(video_path).encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


class SubtitleService:
    """Runs remote subtitle work off the owner thread and stores downloads."""

    def __init__(
        self,
        provider: SubtitleProvider,
        downloads_dir: Path,
        task_runner: Optional[TaskRunner] = None,
    ) -> None:
        self._provider = provider
        self._downloads_dir = downloads_dir
        self._task_runner = task_runner or TaskRunner(max_workers=2, context="subtitles")

    @property
    def provider(self) -> SubtitleProvider:
        return self._provider

    def set_provider(self, provider: SubtitleProvider) -> None:
        self._provider = provider

    def submit_search(self, query: str, language: Optional[str]) -> Future:
        provider = self._provider
        return self._task_runner.submit(
            TaskSpec(
                fn=provider.search,
                args=(query, language),
                retries=provider.retries,
                backoff_sec=provider.backoff_sec,
                name=f"subtitle_search_{provider.name}",
            )
        )

    def submit_download(self, result: RemoteSubtitleResult, video_path: Path) -> Future:
        provider = self._provider

        def _download() -> Path:
            downloaded = provider.download(result.file_id)
            return self.save_download(downloaded.subtitle_text, downloaded.file_name, video_path)

        return self._task_runner.submit(
            TaskSpec(
                fn=_download,
                retries=provider.retries,
                backoff_sec=provider.backoff_sec,
                name=f"subtitle_download_{provider.name}",
            )
        )

    def downloads_dir_for(self, video_path: Path) -> Path:
        return self._downloads_dir / _video_key(video_path)

    def save_download(self, text: str, file_name: str, video_path: Path) -> Path:
        directory = self.downloads_dir_for(video_path)
        target = directory / f"{uuid.uuid4()}-{sanitize_file_name(file_name)}"
        temp_file = target.with_name(target.name + ".tmp")
        try:
            directory.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(text, encoding="utf-8")
            temp_file.replace(target)
        except OSError as exc:
            try:
                temp_file.unlink(missing_ok=True)
            except OSError:
                pass
            raise SubtitleReadError(f"Unable to store downloaded subtitle: {exc}") from exc
        log.info("subtitle_download_saved", extra={"path": str(target)})
        return target

    def close(self) -> None:
        self._task_runner.close(wait=False)


__all__: List[str] = [
    "SubtitleService",
    "find_sidecar_subtitle",
    "sanitize_file_name",
    "search_query_for",
]
