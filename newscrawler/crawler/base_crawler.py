"""
Abstract base class for news search collaborators.

Concrete clients implement ``search`` and share one aiohttp session per
process through the ``get_session``/``close_session`` classmethods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import aiohttp

from newscrawler.crawler.types import SearchHit
from newscrawler.utils.config import get_settings
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# 모듈 레벨 상수
# ---------------------------------------------------------------------------

_CRAWLER_TIMEOUT_CONNECT: float = 10.0


class BaseSearchClient(ABC):
    """Abstract base for keyword news search clients.

    Attributes:
        name: Human-readable source name used in log lines.
    """

    name: str = "search"

    # Shared aiohttp session across all client instances
    _shared_session: aiohttp.ClientSession | None = None

    @abstractmethod
    async def search(self, keyword: str) -> list[SearchHit]:
        """Return raw hits for ``keyword``, newest first.

        No date or relevance filtering is applied here; callers filter.

        Raises:
            ConfigurationError: Credentials are missing.
            SearchError: Non-success HTTP status, timeout or network failure.
        """

    @classmethod
    async def get_session(cls) -> aiohttp.ClientSession:
        """Return shared aiohttp session, creating one if needed."""
        if BaseSearchClient._shared_session is None or BaseSearchClient._shared_session.closed:
            timeout = aiohttp.ClientTimeout(
                total=get_settings().external_call_timeout,
                connect=_CRAWLER_TIMEOUT_CONNECT,
            )
            BaseSearchClient._shared_session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": "NewsCrawler/1.0 (Keyword News Aggregator)"},
            )
        return BaseSearchClient._shared_session

    @classmethod
    async def close_session(cls) -> None:
        """Close the shared aiohttp session."""
        session = BaseSearchClient._shared_session
        if session is not None and not session.closed:
            await session.close()
        BaseSearchClient._shared_session = None
