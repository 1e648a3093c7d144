from __future__ import annotations

"""Remote subtitle service contract."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import RemoteSubtitleDownload, RemoteSubtitleResult


class SubtitleProvider(ABC):
    """Search/download client for a remote subtitle catalogue.

    Implementations raise :class:`NotConfigured` when their access credential
    is missing and :class:`RemoteServiceError` for network, auth or rate-limit
    failures.
    """

    name: str = "provider"
    retries: int = 0
    backoff_sec: float = 1.0

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def search(self, query: str, language: Optional[str] = None) -> List[RemoteSubtitleResult]:
        raise NotImplementedError

    @abstractmethod
    def download(self, file_id: int) -> RemoteSubtitleDownload:
        raise NotImplementedError

