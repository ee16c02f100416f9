#!/usr/bin/env python3
"""
과거 뉴스 백필 스크립트.

오늘(KST) 기준 N일 전부터 어제까지 날짜별로 백필 크롤을 실행한다.
진행 이벤트와 알림은 보내지 않는다.

사용법:
    python scripts/run_backfill.py            # 기본 90일
    python scripts/run_backfill.py --days 30
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가한다.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv()

from newscrawler.crawler.backfill import backfill_news
from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.db.connection import close_db, init_db
from newscrawler.main import build_components
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)


async def main(days_back: int) -> int:
    components = build_components()
    try:
        await init_db()
        results = await backfill_news(components.engine, days_back=days_back)
        logger.info(
            "백필 종료: %d일 처리, 기사 %d건",
            len(results), sum(r.total_articles for r in results),
        )
        return 0
    except Exception as exc:
        logger.error("백필 실패: %s", exc, exc_info=True)
        return 1
    finally:
        await BaseSearchClient.close_session()
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="과거 뉴스 백필")
    parser.add_argument("--days", type=int, default=90, help="백필할 일수 (기본 90)")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.days)))
