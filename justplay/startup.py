from __future__ import annotations
import sys
from typing import Optional, Sequence

import justplay
from justplay.backend.common.errors import JustPlayError
from justplay.backend.common.logging import get_logger, init_logging
from justplay.backend.common.tasks import SerialDispatcher
from justplay.backend.common.types import HealthReport
from justplay.backend.persistence import RecentEntryStore
from justplay.backend.player.controller import PlaybackSessionController
from justplay.backend.player.engine import PlaybackEngine, make_engine
from justplay.config.settings import (
    Settings,
    get_recent_entries_path,
    get_settings,
    save_subtitle_preferences,
)


def quick_self_check(settings: Settings) -> HealthReport:
    components = {
        "python": "ok" if sys.version_info >= (3, 10) else "degraded",
        "logging": "ok",
        "config": "ok",
        "subtitle_search": "ok" if settings.is_subtitle_api_configured else "degraded",
    }

    status = "ok" if all(v == "ok" for v in components.values()) else "degraded"

    return {"status": status, "components": components}


def build_controller(
    settings: Settings,
    *,
    engine: Optional[PlaybackEngine] = None,
    dispatcher: Optional[SerialDispatcher] = None,
) -> PlaybackSessionController:
    store = RecentEntryStore(
        get_recent_entries_path(),
        max_entries=settings.max_recent_entries,
        finished_ratio=settings.resume_finished_ratio,
    )
    return PlaybackSessionController(
        engine or make_engine(settings.engine),
        store,
        settings,
        dispatcher=dispatcher,
        preferences_saver=save_subtitle_preferences,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    settings = get_settings()

    init_logging(settings.log_level)
    log = get_logger("justplay.startup")

    log.info("boot_begin", extra={"app": settings.app_name, "env": settings.env, "log_level": settings.log_level})

    health = quick_self_check(settings)
    log.info("health_report", extra=dict(health))

    dispatcher = SerialDispatcher("main")
    try:
        controller = build_controller(settings, dispatcher=dispatcher)
    except JustPlayError as exc:
        log.error("boot_failed", extra={"error": str(exc)})
        return 1

    log.info("boot_ready", extra={"version": justplay.__version__})

    with controller:
        if args and not controller.open(args[0]):
            log.error("open_failed", extra={"status": controller.status_message})
            return 1
        controller.start()
        try:
            dispatcher.run()
        except KeyboardInterrupt:
            log.info("shutdown_requested")
            dispatcher.stop()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
