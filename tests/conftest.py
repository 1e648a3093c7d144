# tests/conftest.py
from pathlib import Path

import pytest

from justplay.backend.common.tasks import SerialDispatcher
from justplay.backend.persistence import RecentEntryStore
from justplay.backend.player.controller import PlaybackSessionController
from justplay.backend.player.subtitles.providers.stub import UnconfiguredProvider
from justplay.backend.player.subtitles.service import SubtitleService
from justplay.config.settings.core import Settings

from fakes import FakeEngine, FakeProvider, ManualTaskRunner, TickingClock


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def video(media_dir: Path) -> Path:
    """A playable-looking file; engines are faked so content is irrelevant."""
    path = media_dir / "Show.Name.S01E02.mkv"
    path.write_bytes(b"\x00" * 16)
    return path


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "recent_entries.json"


@pytest.fixture
def store(store_path: Path) -> RecentEntryStore:
    return RecentEntryStore(store_path)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def task_runner() -> ManualTaskRunner:
    return ManualTaskRunner(auto=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(subtitle_api_key="test-key")


@pytest.fixture
def saved_preferences():
    return []


@pytest.fixture
def make_controller(engine, store, settings, provider, task_runner, saved_preferences, tmp_path):
    def _make(**overrides) -> PlaybackSessionController:
        use_engine = overrides.pop("engine", engine)
        use_store = overrides.pop("store", store)
        use_settings = overrides.pop("settings", settings)
        kwargs = dict(
            subtitle_service=SubtitleService(provider, tmp_path / "downloads", task_runner),
            provider_factory=lambda key: provider if key else UnconfiguredProvider(),
            dispatcher=SerialDispatcher("test"),
            preferences_saver=saved_preferences.append,
            clock=TickingClock(),
        )
        kwargs.update(overrides)
        return PlaybackSessionController(use_engine, use_store, use_settings, **kwargs)

    return _make


@pytest.fixture
def controller(make_controller) -> PlaybackSessionController:
    return make_controller()
