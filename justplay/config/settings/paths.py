from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from justplay.backend.common.errors import ConfigError

_CONFIG_DIR = Path(__file__).resolve().parent.parent
_PACKAGE_ROOT = _CONFIG_DIR.parent
_PATH_BASES = [_PACKAGE_ROOT, *_PACKAGE_ROOT.parents]

load_dotenv(_PACKAGE_ROOT / ".env")

_DEFAULT_CONFIG_PATHS = {
    "recent_entries": str(_PACKAGE_ROOT / "var" / "recent_entries.json"),
    "downloaded_subtitles": str(_PACKAGE_ROOT / "var" / "downloaded-subtitles"),
    "user_settings": str(_PACKAGE_ROOT / "var" / "user_settings.json"),
    "vlc_runtime_root": str(_PACKAGE_ROOT / "Resources" / "vlc"),
}

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env_in_str(value: str) -> str:
    """Expand ``${VAR}`` tokens within a string."""

    def _repl(match: re.Match[str]) -> str:
        var = match.group(1)
        return os.getenv(var, "")

    return _ENV_PATTERN.sub(_repl, value)


def read_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _resolve_candidate(value: str) -> str:
    candidate = Path(expand_env_in_str(value)).expanduser()
    if candidate.is_absolute():
        return str(candidate.resolve())

    for base in _PATH_BASES:
        resolved = (base / candidate).resolve()
        if resolved.exists() or resolved.parent.exists():
            return str(resolved)

    return str((_PACKAGE_ROOT / candidate).resolve())


def load_config_paths() -> Dict[str, str]:
    cfg_path = _CONFIG_DIR / "config_paths.json"
    if not cfg_path.exists():
        return {k: str(Path(v).resolve()) for k, v in _DEFAULT_CONFIG_PATHS.items()}

    try:
        raw = read_json(cfg_path)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Unable to read {cfg_path}: {exc}") from exc
    merged = {**_DEFAULT_CONFIG_PATHS, **(raw or {})}

    for key, value in list(merged.items()):
        merged[key] = _resolve_candidate(value)

    return merged


PATHS: Dict[str, str] = load_config_paths()


def get_recent_entries_path() -> Path:
    path = Path(PATHS["recent_entries"])
    path.parent.mkdir(parents=True, exist_ok=True)

    return path


def get_downloaded_subtitles_dir() -> Path:
    path = Path(PATHS["downloaded_subtitles"])
    path.mkdir(parents=True, exist_ok=True)

    return path


def get_vlc_runtime_root() -> str:
    return PATHS["vlc_runtime_root"]


def get_user_settings_path() -> Path:
    return Path(PATHS["user_settings"])


__all__ = [
    "PATHS",
    "expand_env_in_str",
    "get_downloaded_subtitles_dir",
    "get_recent_entries_path",
    "get_user_settings_path",
    "get_vlc_runtime_root",
    "load_config_paths",
    "read_json",
]
