"""Administrative CLI for inspecting JustPlay settings, history and subtitles."""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

from justplay.backend.common.errors import PersistenceError
from justplay.backend.persistence import RecentEntryStore
from justplay.backend.player.exceptions import SubtitleError
from justplay.backend.player.subtitles import srt
from justplay.backend.player.subtitles.service import find_sidecar_subtitle, search_query_for
from justplay.backend.player.subtitles.timeline import CueTimeline
from justplay.config import settings
from justplay.config.settings import paths as path_settings

from ._utils import (
    build_subparser,
    exit_with_error,
    print_json,
    require_subcommand,
    to_serializable,
)


def _load_raw_config_paths() -> Dict[str, Any]:
    config_file = Path(path_settings.__file__).resolve().parent.parent / "config_paths.json"
    if not config_file.exists():
        return {}
    try:
        with config_file.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        exit_with_error(f"Failed to parse config_paths.json: {exc}")
    return {}


def _recent_store() -> RecentEntryStore:
    current = settings.get_settings()
    store = RecentEntryStore(
        settings.get_recent_entries_path(),
        max_entries=current.max_recent_entries,
        finished_ratio=current.resume_finished_ratio,
    )
    store.load()
    return store


def _load_cues(path: str) -> list:
    try:
        return srt.parse_file(path)
    except SubtitleError as exc:
        exit_with_error(str(exc))
    return []


def _handle_settings_show(args: argparse.Namespace) -> None:
    print_json(to_serializable(settings.get_settings(reload=args.reload)))


def _handle_settings_subtitles(args: argparse.Namespace) -> None:
    current = settings.get_settings()
    updates: Dict[str, Any] = {}
    if args.api_key is not None:
        updates["subtitle_api_key"] = args.api_key.strip()
    if args.language is not None:
        updates["subtitle_language"] = settings.normalize_language_code(args.language)
    if not updates:
        exit_with_error("Nothing to update; pass --api-key and/or --language")
        return
    updated = settings.save_subtitle_preferences(replace(current, **updates))
    print_json(to_serializable(updated))


def _handle_paths_show(args: argparse.Namespace) -> None:
    if args.raw:
        payload = _load_raw_config_paths()
    else:
        payload = path_settings.PATHS
    print_json(to_serializable(payload))


def _handle_recent_list(_: argparse.Namespace) -> None:
    store = _recent_store()
    payload = []
    for entry in store.entries:
        item = entry.model_dump(mode="json")
        item["display_name"] = entry.display_name
        item["progress"] = entry.progress
        item["progress_detail"] = entry.progress_detail()
        item["resume_position"] = store.resume_position_for(entry.file_path_key)
        payload.append(item)
    print_json(payload)


def _handle_recent_remove(args: argparse.Namespace) -> None:
    store = _recent_store()
    try:
        removed = store.remove(args.key)
    except PersistenceError as exc:
        exit_with_error(str(exc))
        return
    if not removed:
        exit_with_error(f"No recent entry for '{args.key}'")
    print_json({"removed": args.key})


def _handle_recent_clear(_: argparse.Namespace) -> None:
    store = _recent_store()
    try:
        store.clear()
    except PersistenceError as exc:
        exit_with_error(str(exc))
    print_json({"cleared": True})


def _handle_subtitles_parse(args: argparse.Namespace) -> None:
    cues = _load_cues(args.file)
    if args.format == "srt":
        print(srt.format_srt(cues), end="")
        return
    print_json(to_serializable(cues))


def _handle_subtitles_at(args: argparse.Namespace) -> None:
    timeline = CueTimeline(_load_cues(args.file))
    index = timeline.active_index(args.seconds)
    cue = timeline.cues[index] if index is not None else None
    print_json({"seconds": args.seconds, "index": index, "text": cue.text if cue else None})


def _handle_subtitles_sidecar(args: argparse.Namespace) -> None:
    video = Path(args.video).expanduser()
    sidecar = find_sidecar_subtitle(video)
    print_json({"video": str(video), "sidecar": to_serializable(sidecar), "query": search_query_for(video)})


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="justplay-admin",
        description="Inspect JustPlay settings, playback history and subtitle files.",
    )
    subparsers = parser.add_subparsers(dest="command")
    require_subcommand(subparsers)

    # Settings -----------------------------------------------------------
    settings_parser = build_subparser(subparsers, "settings", help="Inspect and update runtime settings.")
    settings_sub = settings_parser.add_subparsers(dest="settings_command")
    require_subcommand(settings_sub)

    show_settings = build_subparser(settings_sub, "show", help="Display the effective runtime settings.")
    show_settings.add_argument("--reload", action="store_true", help="Reload configuration files before displaying the settings.")
    show_settings.set_defaults(func=_handle_settings_show)

    subtitle_settings = build_subparser(settings_sub, "subtitles", help="Update online subtitle search preferences.")
    subtitle_settings.add_argument("--api-key", help="OpenSubtitles API key; pass an empty string to remove it.")
    subtitle_settings.add_argument("--language", help="Preferred subtitle language code (e.g. en, any).")
    subtitle_settings.set_defaults(func=_handle_settings_subtitles)

    # Paths --------------------------------------------------------------
    paths_parser = build_subparser(subparsers, "paths", help="Inspect configuration file locations.")
    paths_sub = paths_parser.add_subparsers(dest="paths_command")
    require_subcommand(paths_sub)

    config_show = build_subparser(paths_sub, "show", help="Display configuration file locations.")
    config_show.add_argument("--raw", action="store_true", help="Show the raw config_paths.json payload instead of resolved paths.")
    config_show.set_defaults(func=_handle_paths_show)

    # Recent -------------------------------------------------------------
    recent_parser = build_subparser(subparsers, "recent", help="Manage recently played entries.")
    recent_sub = recent_parser.add_subparsers(dest="recent_command")
    require_subcommand(recent_sub)

    recent_list = build_subparser(recent_sub, "list", help="List recent entries, most recent first.")
    recent_list.set_defaults(func=_handle_recent_list)

    recent_remove = build_subparser(recent_sub, "remove", help="Remove one recent entry.")
    recent_remove.add_argument("key", help="Normalized file path key of the entry.")
    recent_remove.set_defaults(func=_handle_recent_remove)

    recent_clear = build_subparser(recent_sub, "clear", help="Remove every recent entry.")
    recent_clear.set_defaults(func=_handle_recent_clear)

    # Subtitles ----------------------------------------------------------
    subtitles_parser = build_subparser(subparsers, "subtitles", help="Work with SubRip files.")
    subtitles_sub = subtitles_parser.add_subparsers(dest="subtitles_command")
    require_subcommand(subtitles_sub)

    subtitles_parse = build_subparser(subtitles_sub, "parse", help="Parse a SubRip file and print its cues.")
    subtitles_parse.add_argument("file", help="Path to a .srt file.")
    subtitles_parse.add_argument("--format", choices=["json", "srt"], default="json", help="Output format.")
    subtitles_parse.set_defaults(func=_handle_subtitles_parse)

    subtitles_at = build_subparser(subtitles_sub, "at", help="Show the cue active at a playback time.")
    subtitles_at.add_argument("file", help="Path to a .srt file.")
    subtitles_at.add_argument("seconds", type=float, help="Playback time in seconds.")
    subtitles_at.set_defaults(func=_handle_subtitles_at)

    subtitles_sidecar = build_subparser(subtitles_sub, "sidecar", help="Show the sidecar subtitle and search query for a video.")
    subtitles_sidecar.add_argument("video", help="Path to a video file.")
    subtitles_sidecar.set_defaults(func=_handle_subtitles_sidecar)

    return parser


def main(argv: Optional[Any] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == "__main__":  # pragma: no cover
    main()
