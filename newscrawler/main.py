"""
News Crawler - Main Entry Point

구성 요소를 조립하고 FastAPI 서버를 실행한다.
- 검색/LLM/저장/알림 협력자 생성
- 진행 이벤트: WebSocket 브로드캐스터 (+ 선택적 Redis 발행)
- 매일 정해진 KST 시각에 야간 크롤을 실행하는 스케줄러
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from dotenv import load_dotenv

# .env 값을 os.environ에 로드
load_dotenv()

import uvicorn

from newscrawler.analysis.article_ranker import ArticleRanker
from newscrawler.analysis.llm_client import LLMClient
from newscrawler.analysis.summarizer import ArticleSummarizer
from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.crawl_engine import NIGHTLY, CrawlAlreadyRunningError, CrawlEngine
from newscrawler.crawler.crawl_scheduler import SchedulerHandle
from newscrawler.crawler.naver_search import NaverNewsSearchClient
from newscrawler.db.connection import get_redis
from newscrawler.db.storage import ArticleStorage
from newscrawler.monitoring.api_server import app as api_app
from newscrawler.monitoring.api_server import set_dependencies
from newscrawler.monitoring.notifier import CrawlNotifier
from newscrawler.monitoring.progress import (
    CompositeProgressSink,
    ProgressBroadcaster,
    ProgressSink,
    RedisProgressPublisher,
)
from newscrawler.utils.config import get_settings
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Components:
    engine: CrawlEngine
    storage: ArticleStorage
    broadcaster: ProgressBroadcaster
    llm: LLMClient


def build_components() -> Components:
    """설정값으로 파이프라인 협력자를 조립한다."""
    settings = get_settings()

    llm = LLMClient()
    storage = ArticleStorage()
    broadcaster = ProgressBroadcaster()

    sink: ProgressSink = broadcaster
    if settings.redis_enabled:
        sink = CompositeProgressSink([broadcaster, RedisProgressPublisher(get_redis())])

    engine = CrawlEngine(
        search_client=NaverNewsSearchClient(),
        ranker=ArticleRanker(llm),
        summarizer=ArticleSummarizer(llm),
        storage=storage,
        notifier=CrawlNotifier(),
        sink=sink,
        batch_size=settings.crawl_batch_size,
        batch_delay=settings.crawl_batch_delay,
        category_delay=settings.crawl_category_delay,
    )
    return Components(engine=engine, storage=storage, broadcaster=broadcaster, llm=llm)


async def main() -> None:
    """API 서버를 실행하고 종료 신호를 기다린다."""
    settings = get_settings()
    components = build_components()

    async def scheduled_crawl() -> None:
        try:
            result = await components.engine.run(NIGHTLY)
            logger.info("예약 크롤 결과: %s", result.summary())
        except CrawlAlreadyRunningError:
            logger.warning("이미 크롤이 진행 중이어서 예약 실행을 건너뜀")

    scheduler = SchedulerHandle(scheduled_crawl, run_at=settings.scheduler_run_at) if settings.scheduler_enabled else None

    set_dependencies(
        crawl_engine=components.engine,
        broadcaster=components.broadcaster,
        scheduler=scheduler,
        storage=components.storage,
    )

    config = uvicorn.Config(api_app, host=settings.api_host, port=settings.api_port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("News Crawler API 서버 시작 (port=%d)", settings.api_port)
    try:
        await server.serve()
    finally:
        await BaseSearchClient.close_session()
        logger.info("LLM 사용량: %s", components.llm.get_usage_stats())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
