from __future__ import annotations

"""Locate a libVLC runtime shipped next to the application.

A bundle lives under ``vlc_runtime_root`` either directly (``lib/`` and
``plugins/``) or in a per-platform folder such as ``linux-x86_64``. When one
is found the python-vlc loader variables are exported before ``vlc`` is
imported; otherwise the system installation is used.
"""

from dataclasses import dataclass
from pathlib import Path
import os
import sys
from typing import Iterator, Optional

from ..common.logging import get_logger
from ...config import settings

log = get_logger(__name__)

_PLATFORM_DIRS: dict[str, tuple[str, ...]] = {
    "win32": ("win64", "win32"),
    "cygwin": ("win64", "win32"),
    "darwin": ("macos-arm64", "macos-x64", "macos"),
    "linux": ("linux-x86_64", "linux"),
}


@dataclass(frozen=True, slots=True)
class VlcRuntime:
    root: Path
    lib_dir: Path
    plugin_dir: Path

    def loader_env(self) -> dict[str, str]:
        return {
            "PYTHON_VLC_MODULE_PATH": str(self.lib_dir),
            "VLC_PLUGIN_PATH": str(self.plugin_dir),
        }


def _platform_dirs() -> tuple[str, ...]:
    if sys.platform.startswith("linux"):
        return _PLATFORM_DIRS["linux"]
    return _PLATFORM_DIRS.get(sys.platform, ())


def _bundle_dirs(root: Path) -> Iterator[Path]:
    for name in _platform_dirs():
        yield root / name
    yield root


def _library_path_var() -> str:
    if sys.platform.startswith("win"):
        return "PATH"
    if sys.platform == "darwin":
        return "DYLD_LIBRARY_PATH"
    return "LD_LIBRARY_PATH"


def _export(runtime: VlcRuntime) -> None:
    os.environ.update(runtime.loader_env())
    var = _library_path_var()
    current = os.environ.get(var, "")
    lib_dir = str(runtime.lib_dir)
    if lib_dir not in current.split(os.pathsep):
        os.environ[var] = os.pathsep.join(part for part in (lib_dir, current) if part)


def resolve_vlc_runtime(explicit_root: Optional[str] = None) -> Optional[VlcRuntime]:
    """Find a bundled runtime and export its loader variables.

    Returns ``None`` when nothing usable is bundled.
    """

    roots = [Path(explicit_root)] if explicit_root else []
    configured = settings.get_vlc_runtime_root()
    if configured:
        roots.append(Path(configured))

    for root in roots:
        if not root.is_dir():
            continue
        for candidate in _bundle_dirs(root):
            lib_dir, plugin_dir = candidate / "lib", candidate / "plugins"
            if lib_dir.is_dir() and plugin_dir.is_dir():
                runtime = VlcRuntime(candidate, lib_dir, plugin_dir)
                _export(runtime)
                log.debug("vlc_runtime_found", extra={"root": str(candidate)})
                return runtime

    log.debug("vlc_runtime_not_found", extra={"searched": [str(root) for root in roots]})
    return None
