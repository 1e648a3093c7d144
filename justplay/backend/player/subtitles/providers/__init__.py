from justplay.backend.player.subtitles.providers.base import SubtitleProvider
from justplay.backend.player.subtitles.providers.stub import (
    UnconfiguredProvider,
    unconfigured_provider_factory,
)

__all__ = [
    "SubtitleProvider",
    "UnconfiguredProvider",
    "unconfigured_provider_factory",
]
