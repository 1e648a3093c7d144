# tests/test_engine.py
import pytest

from justplay.backend.player.engine import ENGINE_FACTORIES, PlaybackEngine, make_engine
from justplay.backend.player.exceptions import PlayerError

from fakes import FakeEngine


def test_unknown_engine_name_is_rejected():
    with pytest.raises(PlayerError):
        make_engine("quicktime")


def test_engine_names_are_case_insensitive(monkeypatch):
    monkeypatch.setitem(ENGINE_FACTORIES, "fake", FakeEngine)

    assert isinstance(make_engine(" FAKE "), FakeEngine)


def test_fake_engine_satisfies_contract():
    assert isinstance(FakeEngine(), PlaybackEngine)
