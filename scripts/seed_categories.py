#!/usr/bin/env python3
"""
초기 카테고리/키워드 시드 스크립트.

테이블이 없으면 생성하고, 카테고리가 하나도 없을 때만
``newscrawler/db/seed_categories.json`` 의 데이터를 넣는다.

사용법:
    python scripts/seed_categories.py
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가한다.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv()

from newscrawler.db.connection import close_db, init_db
from newscrawler.db.storage import ArticleStorage
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_SEED_PATH = _PROJECT_ROOT / "newscrawler" / "db" / "seed_categories.json"


async def main() -> int:
    with open(_SEED_PATH, encoding="utf-8") as f:
        data = json.load(f)
    try:
        await init_db()
        created = await ArticleStorage().seed_categories(data)
        logger.info("시드 결과: 카테고리 %d개 생성", created)
        return 0
    except Exception as exc:
        logger.error("시드 실패: %s", exc, exc_info=True)
        return 1
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
