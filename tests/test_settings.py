# tests/test_settings.py
import json

import pytest

from justplay.config.settings import core, paths, user


@pytest.fixture
def user_settings_file(tmp_path, monkeypatch):
    target = tmp_path / "user_settings.json"
    monkeypatch.setitem(paths.PATHS, "user_settings", str(target))
    for var in (
        "OPEN_SUBTITLES_API_KEY",
        "JUSTPLAY_APP_NAME",
        "JUSTPLAY_LOG_LEVEL",
        "JUSTPLAY_TASK_WORKERS",
        "JUSTPLAY_SUPPORTED_EXTENSIONS",
        "JUSTPLAY_ENGINE",
        "JUSTPLAY_ENV",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(core, "_SETTINGS_SINGLETON", None)
    return target


def test_defaults_without_user_file(user_settings_file):
    settings = core.get_settings(reload=True)

    assert settings.supported_extensions == frozenset({"mp4", "m4v", "mkv"})
    assert settings.max_recent_entries == 50
    assert settings.progress_interval == 5.0
    assert settings.skip_interval == 10.0
    assert settings.subtitle_language == "any"
    assert not settings.is_subtitle_api_configured


def test_user_file_and_env_overrides(user_settings_file, monkeypatch):
    user_settings_file.write_text(json.dumps({
        "log_level": "debug",
        "task_workers": "3",
        "subtitles": {"language": "FR"},
    }))
    monkeypatch.setenv("JUSTPLAY_SUPPORTED_EXTENSIONS", ".MKV, webm")
    monkeypatch.setenv("OPEN_SUBTITLES_API_KEY", "env-key")

    settings = core.get_settings(reload=True)

    assert settings.log_level == "DEBUG"
    assert settings.task_workers == 3
    assert settings.subtitle_language == "fr"
    assert settings.supported_extensions == frozenset({"mkv", "webm"})
    assert settings.subtitle_api_key == "env-key"


def test_env_api_key_overrides_user_file(user_settings_file, monkeypatch):
    user_settings_file.write_text(json.dumps({"subtitles": {"api_key": "file-key"}}))
    monkeypatch.setenv("OPEN_SUBTITLES_API_KEY", "env-key")

    assert core.get_settings(reload=True).subtitle_api_key == "env-key"

    monkeypatch.delenv("OPEN_SUBTITLES_API_KEY")
    assert core.get_settings(reload=True).subtitle_api_key == "file-key"


def test_corrupt_user_file_is_ignored(user_settings_file):
    user_settings_file.write_text("{broken")

    assert user.load_user_settings() == {}
    assert core.get_settings(reload=True).app_name == "JustPlay"


def test_save_subtitle_preferences_round_trip(user_settings_file):
    current = core.Settings(subtitle_api_key="stored-key", subtitle_language="de")

    reloaded = core.save_subtitle_preferences(current)

    stored = json.loads(user_settings_file.read_text())
    assert stored["subtitles"] == {"api_key": "stored-key", "language": "de"}
    assert reloaded.subtitle_api_key == "stored-key"
    assert reloaded.subtitle_language == "de"
    assert not user_settings_file.with_name(user_settings_file.name + ".tmp").exists()


def test_clearing_api_key_removes_it(user_settings_file):
    core.save_subtitle_preferences(core.Settings(subtitle_api_key="k"))
    core.save_subtitle_preferences(core.Settings(subtitle_api_key=""))

    assert "api_key" not in json.loads(user_settings_file.read_text())["subtitles"]


@pytest.mark.parametrize("raw,expected", [("EN", "en"), (" ja ", "ja"), ("klingon", "any"), (None, "any")])
def test_normalize_language_code(raw, expected):
    assert core.normalize_language_code(raw) == expected


def test_expand_env_in_config_paths(monkeypatch):
    monkeypatch.setenv("JUSTPLAY_TEST_ROOT", "/srv/media")

    assert paths.expand_env_in_str("${JUSTPLAY_TEST_ROOT}/cache") == "/srv/media/cache"
