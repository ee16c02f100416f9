"""
검색 결과 최신성 및 키워드 관련성 검사
- 야간 크롤: 하한만 검사하는 열린 기간 (늦게 들어오거나 미래 날짜인 기사도 통과)
- 백필: 기준 시각에서 닫힌 기간, 양 끝 포함
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from newscrawler.crawler.text_normalizer import strip_highlight_markup
from newscrawler.utils.kst import ensure_aware


def is_within_window(
    published_at: datetime | None,
    reference: datetime,
    window_days: float,
    bounded_above: bool = False,
) -> bool:
    """``published_at >= reference - window_days`` 이면 True.

    ``bounded_above`` 이면 ``published_at <= reference`` 도 만족해야 한다.
    날짜를 해석하지 못한 기사는 항상 제외한다.
    """
    if published_at is None:
        return False
    published = ensure_aware(published_at)
    ref = ensure_aware(reference)
    if published < ref - timedelta(days=window_days):
        return False
    if bounded_above and published > ref:
        return False
    return True


def matches_keyword(title: str, keyword: str) -> bool:
    """강조 태그를 제거한 제목에 키워드가 포함되는지 대소문자 구분 없이 검사한다."""
    return keyword.lower() in strip_highlight_markup(title).lower()


@dataclass(frozen=True)
class RecencyWindow:
    """``reference`` 기준 수집 대상 기간."""

    reference: datetime
    days: float
    bounded_above: bool = False

    def admits(self, published_at: datetime | None) -> bool:
        return is_within_window(published_at, self.reference, self.days, self.bounded_above)

    @property
    def start(self) -> datetime:
        return ensure_aware(self.reference) - timedelta(days=self.days)
