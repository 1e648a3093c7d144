from __future__ import annotations

"""Placeholder used until a real remote subtitle client is wired in."""

from typing import List, Optional

from justplay.backend.common.logging import get_logger
from justplay.backend.player.exceptions import NotConfigured
from justplay.backend.player.subtitles.models import RemoteSubtitleDownload, RemoteSubtitleResult
from justplay.backend.player.subtitles.providers.base import SubtitleProvider

log = get_logger(__name__)


class UnconfiguredProvider(SubtitleProvider):
    name = "unconfigured"

    def __init__(self, reason: str = "No remote subtitle service configured") -> None:
        self.reason = reason

    @property
    def is_configured(self) -> bool:  # type: ignore[override]
        return False

    def search(self, query: str, language: Optional[str] = None) -> List[RemoteSubtitleResult]:  # type: ignore[override]
        log.debug("subtitle_provider_unconfigured", extra={"provider": self.name, "reason": self.reason})
        raise NotConfigured(self.reason)

    def download(self, file_id: int) -> RemoteSubtitleDownload:  # type: ignore[override]
        raise NotConfigured(self.reason)


def unconfigured_provider_factory(api_key: str) -> SubtitleProvider:
    return UnconfiguredProvider()
