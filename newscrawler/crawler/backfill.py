"""
과거 날짜 백필.

오늘(KST) 기준 days_back일 전부터 어제까지 날짜별로 BACKFILL 프로필 크롤을
오래된 날짜부터 순서대로 실행한다. 실패한 날짜는 로그만 남기고 다음 날짜로 진행한다.
"""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

from newscrawler.crawler.crawl_engine import BACKFILL, CrawlEngine
from newscrawler.crawler.types import CrawlResult
from newscrawler.utils.kst import today_kst
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_DAYS_BACK = 90
_DATE_DELAY = 2.0  # 초


def backfill_dates(days_back: int, today: date) -> list[date]:
    """today - days_back 부터 today - 1 까지 오름차순 날짜 목록."""
    return [today - timedelta(days=offset) for offset in range(days_back, 0, -1)]


async def backfill_news(
    engine: CrawlEngine,
    days_back: int = _DEFAULT_DAYS_BACK,
    date_delay: float = _DATE_DELAY,
    today: date | None = None,
) -> list[CrawlResult]:
    """과거 날짜들을 순서대로 백필하고 성공한 날짜의 결과를 반환한다."""
    dates = backfill_dates(days_back, today or today_kst())
    if not dates:
        return []

    logger.info("백필 시작 | %d일 (%s ~ %s)", len(dates), dates[0].isoformat(), dates[-1].isoformat())
    results: list[CrawlResult] = []

    for i, day in enumerate(dates):
        logger.info("=== 백필 진행: %d/%d (%s) ===", i + 1, len(dates), day.isoformat())
        try:
            result = await engine.run(BACKFILL, target_date=day)
            results.append(result)
        except Exception as exc:
            logger.error("백필 실패 (%s): %s", day.isoformat(), exc, exc_info=True)

        if i < len(dates) - 1 and date_delay > 0:
            await asyncio.sleep(date_delay)

    logger.info("백필 완료 | 기사 %d건", sum(r.total_articles for r in results))
    return results
