# tests/test_recent_store.py
import json
from datetime import datetime, timedelta, timezone

import pytest

from justplay.backend.common.errors import PersistenceError
from justplay.backend.persistence import (
    MAX_ENTRIES,
    RecentEntryStore,
    SubtitleSelection,
    format_timestamp,
    normalize_path_key,
)
from justplay.backend.player.subtitles.models import SubtitleSourceKind

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _at(minutes):
    return T0 + timedelta(minutes=minutes)


def test_upsert_persists_and_reloads(store, store_path):
    store.upsert("/v/a.mkv", 12.5, 100.0, _at(1), location_handle="/v/a.mkv")

    reloaded = RecentEntryStore(store_path)
    entries = reloaded.load()

    assert len(entries) == 1
    assert entries[0].file_path_key == "/v/a.mkv"
    assert entries[0].last_playback_position == 12.5
    assert entries[0].duration == 100.0
    assert entries[0].last_opened_at == _at(1)


def test_entries_ordered_most_recent_first(store):
    store.upsert("/v/a.mkv", 0, 10, _at(1))
    store.upsert("/v/b.mkv", 0, 10, _at(3))
    store.upsert("/v/c.mkv", 0, 10, _at(2))

    assert [e.file_path_key for e in store.entries] == ["/v/b.mkv", "/v/c.mkv", "/v/a.mkv"]


def test_capacity_evicts_oldest(store, store_path):
    for i in range(MAX_ENTRIES + 1):
        store.upsert(f"/v/{i:02d}.mkv", 0, 10, _at(i))

    keys = [e.file_path_key for e in store.entries]
    assert len(keys) == MAX_ENTRIES
    assert "/v/00.mkv" not in keys
    assert keys[0] == f"/v/{MAX_ENTRIES:02d}.mkv"
    assert len(json.loads(store_path.read_text())["entries"]) == MAX_ENTRIES


def test_duration_never_regresses_and_position_is_clamped(store):
    store.upsert("/v/a.mkv", 10, 120, _at(1))
    entry = store.upsert("/v/a.mkv", 500, 60, _at(2))

    assert entry.duration == 120
    assert entry.last_playback_position == 120


def test_negative_position_is_clamped_to_zero(store):
    assert store.upsert("/v/a.mkv", -3, 10, _at(1)).last_playback_position == 0


@pytest.mark.parametrize(
    "position,duration,expected",
    [
        (97, 100, 97),
        (98, 100, None),
        (99, 100, None),
        (0, 100, None),
        (30, 0, None),
    ],
)
def test_resume_position_threshold(store, position, duration, expected):
    store.upsert("/v/a.mkv", position, duration, _at(1))

    assert store.resume_position_for("/v/a.mkv") == expected


def test_resume_position_unknown_key(store):
    assert store.resume_position_for("/nope.mkv") is None


def test_subtitle_selection_is_overwritten_including_with_none(store, store_path):
    selection = SubtitleSelection(
        file_path_key="/v/a.srt",
        location_handle="/v/a.srt",
        display_name="a.srt",
        source_kind=SubtitleSourceKind.MANUAL,
    )
    store.upsert("/v/a.mkv", 1, 10, _at(1), subtitle_selection=selection)
    assert RecentEntryStore(store_path).load()[0].selected_subtitle == selection

    store.upsert("/v/a.mkv", 2, 10, _at(2), subtitle_selection=None)
    assert store.get("/v/a.mkv").selected_subtitle is None


def test_file_hints_are_kept_when_not_supplied(store):
    mtime = _at(-60)
    store.upsert("/v/a.mkv", 1, 10, _at(1), size_hint=2048, mtime_hint=mtime)
    entry = store.upsert("/v/a.mkv", 2, 10, _at(2))

    assert entry.file_size == 2048
    assert entry.content_modification_date == mtime


def test_remove_and_clear(store, store_path):
    store.upsert("/v/a.mkv", 1, 10, _at(1))
    store.upsert("/v/b.mkv", 1, 10, _at(2))

    assert store.remove("/v/a.mkv") is True
    assert store.remove("/v/a.mkv") is False
    assert [e.file_path_key for e in RecentEntryStore(store_path).load()] == ["/v/b.mkv"]

    store.clear()
    assert RecentEntryStore(store_path).load() == []


def test_missing_document_loads_empty(store):
    assert store.load() == []


@pytest.mark.parametrize("content", ["{not json", "[]", '{"entries": "nope"}', ""])
def test_corrupt_document_loads_empty(store, store_path, content):
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(content)

    assert store.load() == []


def test_bad_records_are_dropped_and_bad_optional_fields_reset(store, store_path):
    good = {
        "file_path_key": "/v/good.mkv",
        "location_handle": "/v/good.mkv",
        "last_playback_position": 5,
        "duration": 50,
        "last_opened_at": "2024-01-01T00:05:00Z",
    }
    bad_optional = dict(good, file_path_key="/v/partial.mkv", file_size="huge",
                        last_opened_at="2024-01-01T00:04:00Z")
    missing_required = {"file_path_key": "/v/broken.mkv"}
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(json.dumps({"version": 1, "entries": [good, bad_optional, missing_required, 42]}))

    entries = store.load()

    assert [e.file_path_key for e in entries] == ["/v/good.mkv", "/v/partial.mkv"]
    assert entries[1].file_size is None
    assert entries[1].last_playback_position == 5


def test_duplicate_keys_keep_first_record(store, store_path):
    record = {
        "file_path_key": "/v/a.mkv",
        "location_handle": "/v/a.mkv",
        "last_playback_position": 1,
        "duration": 10,
        "last_opened_at": "2024-01-01T00:00:00Z",
    }
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(json.dumps({"entries": [record, dict(record, last_playback_position=9)]}))

    assert [e.last_playback_position for e in store.load()] == [1]


def test_failed_write_keeps_previous_snapshot(store, store_path, monkeypatch):
    store.upsert("/v/a.mkv", 1, 10, _at(1))
    before = store_path.read_text()

    def _boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("justplay.backend.persistence.recent.json.dump", _boom)
    with pytest.raises(PersistenceError):
        store.upsert("/v/b.mkv", 1, 10, _at(2))

    assert store_path.read_text() == before
    assert not store_path.with_name(store_path.name + ".tmp").exists()
    # the in-memory list still carries the update for the next successful write
    assert store.get("/v/b.mkv") is not None


def test_entry_display_helpers(store):
    entry = store.upsert("/v/Movie.mkv", 3725, 7200, _at(1), location_handle="/v/Movie.mkv")

    assert entry.display_name == "Movie.mkv"
    assert entry.progress == pytest.approx(3725 / 7200)
    assert entry.progress_detail() == "Resume at 1:02:05 of 2:00:00"


def test_format_timestamp():
    assert format_timestamp(65) == "01:05"
    assert format_timestamp(3600) == "1:00:00"
    assert format_timestamp(float("nan")) == "00:00"


def test_normalize_path_key_is_stable(tmp_path):
    assert normalize_path_key(tmp_path / "a" / ".." / "b.mkv") == normalize_path_key(tmp_path / "b.mkv")


def test_unknown_duration_then_known_then_unknown(store):
    store.upsert("/v/a.mkv", 0, 0, _at(1))
    store.upsert("/v/a.mkv", 10, 120, _at(2))
    entry = store.upsert("/v/a.mkv", 20, 0, _at(3))

    assert entry.duration == 120
    assert entry.last_playback_position == 20
