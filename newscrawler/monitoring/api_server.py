"""
크롤 트리거/관찰용 FastAPI 서버.

수동 크롤 실행, 실시간 검색, 대체 후보 조회, 스케줄러 설정, 진행 상황
WebSocket을 제공한다. 의존성은 ``set_dependencies()`` 로 주입한다.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from newscrawler.crawler.crawl_engine import NIGHTLY, CrawlAlreadyRunningError
from newscrawler.db.connection import close_db, init_db
from newscrawler.monitoring.schemas import (
    CandidateArticle,
    CrawlRequest,
    CrawlSummary,
    ErrorResponse,
    RankedArticleResponse,
    SchedulerStatus,
    SchedulerUpdate,
    StoredArticleResponse,
)
from newscrawler.utils.errors import ConfigurationError, SearchError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# 의존성 레지스트리 -- set_dependencies() 호출로 주입된다.
# ---------------------------------------------------------------------------

_deps: dict[str, Any] = {}

_startup_time: float = 0.0


def set_dependencies(
    crawl_engine: Any = None,
    broadcaster: Any = None,
    scheduler: Any = None,
    storage: Any = None,
    init_database: bool = True,
) -> None:
    """엔드포인트가 사용할 의존성을 주입한다.

    Args:
        crawl_engine: CrawlEngine 인스턴스.
        broadcaster: ProgressBroadcaster 인스턴스 (WebSocket 관찰자 등록).
        scheduler: SchedulerHandle 인스턴스.
        storage: ArticleStorage 인스턴스.
        init_database: lifespan 시작 시 DB 초기화 여부.
    """
    _deps.update({
        "crawl_engine": crawl_engine,
        "broadcaster": broadcaster,
        "scheduler": scheduler,
        "storage": storage,
        "init_database": init_database,
    })


def _require(name: str) -> Any:
    dep = _deps.get(name)
    if dep is None:
        raise HTTPException(status_code=503, detail=f"{name} 미초기화")
    return dep


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    """시작 시 DB 초기화와 스케줄러 시작, 종료 시 역순 정리."""
    global _startup_time
    _startup_time = time.monotonic()
    logger.info("Crawl API server starting up")

    if _deps.get("init_database", True):
        try:
            await init_db()
            logger.info("Database connection verified")
        except Exception as exc:
            logger.error("Database init failed: %s", exc)

    scheduler = _deps.get("scheduler")
    if scheduler is not None:
        await scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    broadcaster = _deps.get("broadcaster")
    if broadcaster is not None:
        await broadcaster.close()

    logger.info("Crawl API server shutting down")
    if _deps.get("init_database", True):
        await close_db()


app = FastAPI(title="News Crawler API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a unified error response."""
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="내부 서버 오류가 발생했습니다.").model_dump(),
    )


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health() -> dict[str, Any]:
    engine = _deps.get("crawl_engine")
    return {
        "status": "ok",
        "uptime_seconds": round(time.monotonic() - _startup_time, 1) if _startup_time else 0.0,
        "crawl_running": bool(engine is not None and engine.is_running),
    }


@app.post("/api/crawl", response_model=CrawlSummary)
async def trigger_crawl(request: CrawlRequest | None = None) -> CrawlSummary:
    """야간 크롤을 즉시 실행한다. 진행 중인 실행이 있으면 409."""
    engine = _require("crawl_engine")
    delete_existing = request.delete_existing if request is not None else None
    try:
        result = await engine.run(NIGHTLY, delete_existing=delete_existing)
    except CrawlAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return CrawlSummary(**result.summary())


@app.get("/api/search/live", response_model=list[RankedArticleResponse])
async def live_search(
    q: str = Query(default=""),
    days: int = Query(default=7, ge=1, le=365),
) -> list[RankedArticleResponse]:
    engine = _require("crawl_engine")
    if not q.strip():
        raise HTTPException(status_code=400, detail="검색어(q)가 필요합니다.")
    try:
        ranked = await engine.search_live(q, days_back=days)
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except SearchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [RankedArticleResponse(**r.to_dict()) for r in ranked]


async def _alternatives_for(keyword: str) -> list[CandidateArticle]:
    engine = _require("crawl_engine")
    try:
        hits = await engine.find_alternatives(keyword)
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except SearchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [
        CandidateArticle(title=h.title, description=h.body, url=h.url, published_at=h.published_at)
        for h in hits
    ]


@app.get("/api/keywords/{keyword}/alternatives", response_model=list[CandidateArticle])
async def keyword_alternatives(keyword: str) -> list[CandidateArticle]:
    return await _alternatives_for(keyword)


@app.get("/api/articles/{article_id}/alternatives", response_model=list[CandidateArticle])
async def article_alternatives(article_id: str) -> list[CandidateArticle]:
    """저장된 기사의 키워드로 교체 후보를 조회한다. 기사나 키워드가 없으면 404."""
    storage = _require("storage")
    article = await storage.get_article(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="기사를 찾을 수 없습니다.")
    if not article.keyword:
        raise HTTPException(status_code=404, detail="키워드가 없는 기사입니다.")
    return await _alternatives_for(article.keyword)


@app.get("/api/articles", response_model=list[StoredArticleResponse])
async def articles_for_date(day: date = Query(alias="date")) -> list[StoredArticleResponse]:
    storage = _require("storage")
    articles = await storage.list_articles_for_date(day)
    return [
        StoredArticleResponse(
            id=a.id,
            category_id=a.category_id,
            keyword=a.keyword,
            title=a.title,
            summary=a.summary,
            url=a.url,
            published_at=a.published_at,
            crawled_at=a.crawled_at,
        )
        for a in articles
    ]


@app.get("/api/scheduler", response_model=SchedulerStatus)
async def scheduler_status() -> SchedulerStatus:
    scheduler = _require("scheduler")
    return SchedulerStatus(enabled=scheduler.running, run_at=scheduler.run_at, next_run=scheduler.next_run)


@app.put("/api/scheduler", response_model=SchedulerStatus)
async def update_scheduler(update: SchedulerUpdate) -> SchedulerStatus:
    scheduler = _require("scheduler")
    if update.run_at is not None:
        await scheduler.replace(update.run_at)
        if update.enabled is False:
            await scheduler.stop()
    elif update.enabled is True:
        await scheduler.start()
    elif update.enabled is False:
        await scheduler.stop()
    logger.info("스케줄러 설정 변경 | enabled=%s | run_at=%s", scheduler.running, scheduler.run_at)
    return SchedulerStatus(enabled=scheduler.running, run_at=scheduler.run_at, next_run=scheduler.next_run)


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------

@app.websocket("/ws/crawl-progress")
async def ws_crawl_progress(websocket: WebSocket) -> None:
    """연결 시점 이후의 크롤 진행 이벤트를 JSON 텍스트로 전달한다."""
    broadcaster = _deps.get("broadcaster")
    await websocket.accept()
    if broadcaster is None:
        await websocket.close(code=1011)
        return

    observer_id = broadcaster.register(websocket.send_text)
    try:
        while True:
            # 클라이언트 메시지는 사용하지 않고 연결 종료 감지에만 쓴다
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.debug("WebSocket /ws/crawl-progress error: %s", exc)
    finally:
        await broadcaster.unregister(observer_id)
