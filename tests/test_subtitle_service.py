# tests/test_subtitle_service.py
import pytest

from justplay.backend.player.exceptions import NotConfigured
from justplay.backend.player.subtitles.models import SubtitleSourceKind, SubtitleTrack
from justplay.backend.player.subtitles.providers.stub import UnconfiguredProvider
from justplay.backend.player.subtitles.service import (
    SubtitleService,
    find_sidecar_subtitle,
    sanitize_file_name,
    search_query_for,
)

from fakes import ManualTaskRunner, remote_result


def test_find_sidecar_ignores_hidden_and_other_names(media_dir, video):
    (media_dir / ".Show.Name.S01E02.srt").write_text("x")
    (media_dir / "Other.srt").write_text("x")
    assert find_sidecar_subtitle(video) is None

    sidecar = media_dir / "Show.Name.S01E02.Srt"
    sidecar.write_text("x")
    assert find_sidecar_subtitle(video) == sidecar


def test_find_sidecar_skips_directories(media_dir, video):
    (media_dir / "Show.Name.S01E02.srt").mkdir()

    assert find_sidecar_subtitle(video) is None


def test_search_query_for_movie_and_episode(tmp_path):
    assert search_query_for(tmp_path / "The.Matrix.1999.1080p.BluRay.x264.mkv") == "The Matrix 1999"
    assert search_query_for(tmp_path / "Show.Name.S01E02.720p.mkv") == "Show Name S01E02"


@pytest.mark.parametrize(
    "raw,expected",
    [("a/b:c\\d.srt", "a_b_c_d.srt"), ("   ", "subtitle.srt"), (" plain.srt ", "plain.srt")],
)
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


def test_downloads_are_grouped_per_video(tmp_path, video):
    service = SubtitleService(UnconfiguredProvider(), tmp_path / "dl", ManualTaskRunner())

    first = service.save_download("1\n00:00:01,000 --> 00:00:02,000\nx\n", "a.srt", video)
    second = service.save_download("y", "a.srt", video)
    other = service.save_download("z", "a.srt", video.with_name("Other.mkv"))

    assert first.parent == second.parent == service.downloads_dir_for(video)
    assert first != second
    assert other.parent != first.parent
    assert "=" not in first.parent.name
    assert first.read_text(encoding="utf-8").endswith("x\n")


def test_unconfigured_provider_fails_search_with_not_configured(tmp_path, video):
    service = SubtitleService(UnconfiguredProvider(), tmp_path / "dl", ManualTaskRunner())

    with pytest.raises(NotConfigured):
        service.submit_search("anything", None).result()
    with pytest.raises(NotConfigured):
        service.submit_download(remote_result(1), video).result()


def test_track_identity_and_labels(tmp_path):
    track = SubtitleTrack(SubtitleSourceKind.REMOTE_DOWNLOADED, tmp_path / "x.srt", ())

    assert track.id == f"remoteDownloaded::{tmp_path / 'x.srt'}"
    assert track.display_name == "x.srt"
    assert track.source_kind.label == "Downloaded"
