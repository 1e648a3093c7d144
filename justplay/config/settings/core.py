from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from justplay.backend.common.logging import get_logger
from justplay.backend.player.subtitles.models import ANY_LANGUAGE_CODE, SUPPORTED_LANGUAGE_CODES

from .user import load_user_settings, write_user_settings

log = get_logger(__name__)

_SETTINGS_LOCK = threading.Lock()
_SETTINGS_SINGLETON: Optional["Settings"] = None

DEFAULT_SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({"mp4", "m4v", "mkv"})


@dataclass(frozen=True)
class Settings:
    app_name: str = "JustPlay"
    env: str = "development"
    log_level: str = "INFO"
    task_workers: int = 2
    engine: str = "vlc"
    supported_extensions: frozenset[str] = field(default=DEFAULT_SUPPORTED_EXTENSIONS)
    max_recent_entries: int = 50
    progress_interval: float = 5.0
    skip_interval: float = 10.0
    resume_finished_ratio: float = 0.98
    subtitle_api_key: str = ""
    subtitle_language: str = ANY_LANGUAGE_CODE

    @property
    def is_subtitle_api_configured(self) -> bool:
        return bool(self.subtitle_api_key.strip())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "app_name": self.app_name,
            "env": self.env,
            "log_level": self.log_level,
            "task_workers": self.task_workers,
            "engine": self.engine,
            "supported_extensions": sorted(self.supported_extensions),
            "max_recent_entries": self.max_recent_entries,
            "progress_interval": self.progress_interval,
            "skip_interval": self.skip_interval,
            "resume_finished_ratio": self.resume_finished_ratio,
            "subtitle_api_configured": self.is_subtitle_api_configured,
            "subtitle_language": self.subtitle_language,
        }


def normalize_language_code(value: Optional[str]) -> str:
    code = (value or "").strip().lower()
    return code if code in SUPPORTED_LANGUAGE_CODES else ANY_LANGUAGE_CODE


def _coerce_int(value: Any, default: int, minimum: int = 1) -> int:
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _parse_extensions(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        return DEFAULT_SUPPORTED_EXTENSIONS
    cleaned = {str(item).strip().lstrip(".").lower() for item in items}
    cleaned.discard("")
    return frozenset(cleaned) or DEFAULT_SUPPORTED_EXTENSIONS


def _build_settings() -> Settings:
    user_cfg = load_user_settings()
    app_name = os.getenv("JUSTPLAY_APP_NAME", user_cfg.get("app_name", "JustPlay"))
    env = os.getenv("JUSTPLAY_ENV", user_cfg.get("env", "development"))
    log_level = str(os.getenv("JUSTPLAY_LOG_LEVEL", user_cfg.get("log_level", "INFO"))).upper()
    task_workers = _coerce_int(os.getenv("JUSTPLAY_TASK_WORKERS") or user_cfg.get("task_workers"), 2)
    engine = os.getenv("JUSTPLAY_ENGINE", user_cfg.get("engine", "vlc"))

    extensions = _parse_extensions(
        os.getenv("JUSTPLAY_SUPPORTED_EXTENSIONS") or user_cfg.get("supported_extensions")
    )
    subtitles_cfg = user_cfg.get("subtitles") or {}
    api_key = os.getenv("OPEN_SUBTITLES_API_KEY") or subtitles_cfg.get("api_key") or ""

    return Settings(
        app_name=app_name,
        env=env,
        log_level=log_level,
        task_workers=task_workers,
        engine=engine,
        supported_extensions=extensions,
        max_recent_entries=_coerce_int(user_cfg.get("max_recent_entries"), 50),
        progress_interval=_coerce_float(user_cfg.get("progress_interval"), 5.0),
        skip_interval=_coerce_float(user_cfg.get("skip_interval"), 10.0),
        subtitle_api_key=str(api_key).strip(),
        subtitle_language=normalize_language_code(subtitles_cfg.get("language")),
    )


def get_settings(*, reload: bool = False) -> Settings:
    global _SETTINGS_SINGLETON
    with _SETTINGS_LOCK:
        if _SETTINGS_SINGLETON is None or reload:
            _SETTINGS_SINGLETON = _build_settings()

        return _SETTINGS_SINGLETON


def save_subtitle_preferences(current: Settings) -> Settings:
    """Persist the subtitle credential and language of ``current``."""

    payload = load_user_settings()
    subtitles_cfg = dict(payload.get("subtitles") or {})
    if current.subtitle_api_key:
        subtitles_cfg["api_key"] = current.subtitle_api_key
    else:
        subtitles_cfg.pop("api_key", None)
    subtitles_cfg["language"] = current.subtitle_language
    payload["subtitles"] = subtitles_cfg
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    try:
        write_user_settings(payload)
    except OSError as exc:
        log.warning("subtitle_preferences_save_failed", extra={"error": str(exc)})
        return current

    return get_settings(reload=True)


__all__ = [
    "DEFAULT_SUPPORTED_EXTENSIONS",
    "Settings",
    "get_settings",
    "normalize_language_code",
    "save_subtitle_preferences",
]
