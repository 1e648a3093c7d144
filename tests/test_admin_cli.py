# tests/test_admin_cli.py
import json

import pytest

from justplay.backend.persistence import RecentEntryStore
from justplay.cli import admin
from justplay.config.settings import core, paths

from fakes import SAMPLE_SRT, TickingClock


@pytest.fixture
def isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setitem(paths.PATHS, "recent_entries", str(tmp_path / "recent.json"))
    monkeypatch.setitem(paths.PATHS, "user_settings", str(tmp_path / "user_settings.json"))
    monkeypatch.setattr(core, "_SETTINGS_SINGLETON", None)
    return tmp_path


def _run(capsys, *argv):
    admin.main(list(argv))
    return capsys.readouterr().out


def test_subtitles_parse_json(capsys, tmp_path):
    source = tmp_path / "a.srt"
    source.write_text(SAMPLE_SRT)

    cues = json.loads(_run(capsys, "subtitles", "parse", str(source)))

    assert [c["lines"] for c in cues] == [["Hello"], ["World", "second line"]]


def test_subtitles_at(capsys, tmp_path):
    source = tmp_path / "a.srt"
    source.write_text(SAMPLE_SRT)

    payload = json.loads(_run(capsys, "subtitles", "at", str(source), "6"))

    assert payload["text"] == "World\nsecond line"
    assert payload["index"] == 1


def test_subtitles_parse_invalid_file_exits(tmp_path):
    source = tmp_path / "bad.srt"
    source.write_text("nothing here")

    with pytest.raises(SystemExit):
        admin.main(["subtitles", "parse", str(source)])


def test_recent_list_and_remove(capsys, isolated_paths):
    store = RecentEntryStore(paths.get_recent_entries_path())
    clock = TickingClock()
    store.upsert("/v/a.mkv", 30, 100, clock(), location_handle="/v/a.mkv")
    store.upsert("/v/b.mkv", 0, 0, clock(), location_handle="/v/b.mkv")

    listed = json.loads(_run(capsys, "recent", "list"))
    assert [e["file_path_key"] for e in listed] == ["/v/b.mkv", "/v/a.mkv"]
    assert listed[1]["resume_position"] == 30
    assert listed[1]["progress_detail"] == "Resume at 00:30 of 01:40"

    _run(capsys, "recent", "remove", "/v/a.mkv")
    assert [e.file_path_key for e in RecentEntryStore(paths.get_recent_entries_path()).load()] == ["/v/b.mkv"]

    with pytest.raises(SystemExit):
        admin.main(["recent", "remove", "/v/a.mkv"])


def test_settings_subtitles_update(capsys, isolated_paths, monkeypatch):
    monkeypatch.delenv("OPEN_SUBTITLES_API_KEY", raising=False)

    payload = json.loads(_run(capsys, "settings", "subtitles", "--api-key", "k", "--language", "es"))

    assert payload["subtitle_api_configured"] is True
    assert payload["subtitle_language"] == "es"
