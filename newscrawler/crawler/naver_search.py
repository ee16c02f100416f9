"""
네이버 뉴스 검색 API 클라이언트.

키워드당 최신순 100건을 조회하여 SearchHit 목록으로 변환한다.
날짜/관련성 필터링은 호출자가 수행한다. 요청 직전 50ms 대기로
API 호출 속도를 제한한다.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

import aiohttp

from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.types import SearchHit
from newscrawler.utils.config import get_settings
from newscrawler.utils.errors import ConfigurationError, SearchError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_NAVER_NEWS_URL = "https://openapi.naver.com/v1/search/news.json"

# 한 번에 가져오는 기사 수 (API 최대값)
_DISPLAY = 100

# 요청 전 대기 시간 (초)
_DEFAULT_REQUEST_DELAY = 0.05


def parse_pub_date(value: str | None) -> datetime | None:
    """RFC 822 형식 pubDate를 aware datetime으로 변환한다. 실패 시 None."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None or parsed.tzinfo is None:
        return None
    return parsed


def parse_items(payload: dict[str, Any]) -> list[SearchHit]:
    """검색 API 응답 본문을 SearchHit 목록으로 변환한다.

    원문 링크(originallink)가 있으면 우선 사용하고, 없으면 네이버 링크를 사용한다.
    """
    hits: list[SearchHit] = []
    for item in payload.get("items") or []:
        if not isinstance(item, dict):
            continue
        hits.append(
            SearchHit(
                title=item.get("title") or "",
                body=item.get("description") or "",
                url=item.get("originallink") or item.get("link") or "",
                published_at=parse_pub_date(item.get("pubDate")),
            )
        )
    return hits


class NaverNewsSearchClient(BaseSearchClient):
    """네이버 뉴스 검색 API 래퍼."""

    name = "naver_news"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        request_delay: float | None = None,
    ) -> None:
        settings = get_settings()
        self._client_id = client_id if client_id is not None else settings.naver_client_id
        self._client_secret = client_secret if client_secret is not None else settings.naver_client_secret
        self._request_delay = (
            request_delay if request_delay is not None else settings.search_request_delay
        )

    def _headers(self) -> dict[str, str]:
        if not self._client_id or not self._client_secret:
            raise ConfigurationError(
                "NAVER_CLIENT_ID 또는 NAVER_CLIENT_SECRET이 설정되지 않았습니다."
            )
        return {
            "X-Naver-Client-Id": self._client_id,
            "X-Naver-Client-Secret": self._client_secret,
        }

    async def search(self, keyword: str) -> list[SearchHit]:
        """키워드로 뉴스를 검색한다.

        Args:
            keyword: 검색어.

        Returns:
            최신순 SearchHit 목록.

        Raises:
            ConfigurationError: 인증 정보가 없는 경우.
            SearchError: HTTP 오류, 타임아웃, 네트워크 실패.
        """
        headers = self._headers()
        params = {"query": keyword, "display": str(_DISPLAY), "sort": "date"}

        if self._request_delay > 0:
            await asyncio.sleep(self._request_delay)

        session = await self.get_session()
        try:
            async with session.get(_NAVER_NEWS_URL, params=params, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.error(
                        "[%s] 검색 실패: keyword=%s status=%d body=%s",
                        self.name, keyword, resp.status, body[:200],
                    )
                    raise SearchError(
                        f"Naver API error: {resp.status} {resp.reason}",
                        status=resp.status,
                        details={"keyword": keyword},
                    )
                try:
                    payload = await resp.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as exc:
                    raise SearchError(
                        "Naver API returned malformed body", details={"keyword": keyword}
                    ) from exc
        except asyncio.TimeoutError as exc:
            raise SearchError(f"Naver API timeout: {keyword}", details={"keyword": keyword}) from exc
        except aiohttp.ClientError as exc:
            raise SearchError(f"Naver API request failed: {exc}", details={"keyword": keyword}) from exc

        if not isinstance(payload, dict):
            raise SearchError("Naver API returned malformed body", details={"keyword": keyword})
        hits = parse_items(payload)
        logger.debug("[%s] keyword=%s 결과 %d건", self.name, keyword, len(hits))
        return hits
