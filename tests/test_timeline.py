# tests/test_timeline.py
from justplay.backend.player.subtitles.models import Cue
from justplay.backend.player.subtitles.timeline import CueTimeline, active_cue


def _cues(*spans):
    return [Cue(index=i + 1, start=s, end=e, lines=(text,)) for i, (s, e, text) in enumerate(spans)]


def test_boundaries_are_half_open():
    timeline = CueTimeline(_cues((0, 5, "a"), (5, 10, "b")))

    assert timeline.active_cue(0).text == "a"
    assert timeline.active_cue(4.999).text == "a"
    assert timeline.active_cue(5).text == "b"
    assert timeline.active_cue(10) is None


def test_gaps_and_before_first_cue_have_no_match():
    timeline = CueTimeline(_cues((1, 2, "a"), (4, 6, "b")))

    assert timeline.active_index(0.5) is None
    assert timeline.active_index(3) is None
    assert timeline.active_index(100) is None


def test_empty_timeline():
    timeline = CueTimeline([])

    assert len(timeline) == 0
    assert timeline.active_cue(1.0) is None


def test_forward_playback_then_backward_seek():
    timeline = CueTimeline(_cues((0, 1, "a"), (1, 2, "b"), (2, 3, "c"), (10, 12, "d")))

    seen = [timeline.active_index(t / 2) for t in range(0, 7)]
    assert seen == [0, 0, 1, 1, 2, 2, None]
    assert timeline.active_cue(11).text == "d"
    assert timeline.active_cue(0.5).text == "a"


def test_overlapping_cues_prefer_earliest_start():
    timeline = CueTimeline(_cues((0, 10, "long"), (2, 3, "short"), (4, 5, "other")))

    assert timeline.active_cue(2.5).text == "long"
    assert timeline.active_cue(9).text == "long"
    assert timeline.active_cue(10) is None


def test_unsorted_input_is_ordered_by_start():
    timeline = CueTimeline(_cues((5, 6, "late"), (1, 2, "early")))

    assert [cue.text for cue in timeline.cues] == ["early", "late"]
    assert timeline.active_cue(5.5).text == "late"


def test_module_level_lookup():
    assert active_cue(_cues((0, 1, "a")), 0.5).text == "a"
