"""
크롤 오케스트레이터
- 카테고리는 순차 실행하고 사이에 고정 지연을 둔다. 동시성은 카테고리 안의
  키워드 배치에만 있다
- CrawlProfile 로 실행을 매개변수화해 야간 크롤과 과거 날짜 백필이 한
  파이프라인을 공유한다
- 저장소를 건드리지 않는 실시간 검색과 대체 후보 조회 진입점도 여기 있다
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Mapping, Protocol, Sequence

from newscrawler.analysis.article_ranker import ArticleRanker
from newscrawler.analysis.representative_selector import RepresentativeSelector
from newscrawler.analysis.summarizer import ArticleSummarizer
from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.category_processor import CategoryProcessor
from newscrawler.crawler.keyword_processor import (
    ArticleStore,
    KeywordProcessor,
    RunContext,
    emit,
    prepare_candidates,
)
from newscrawler.crawler.text_normalizer import normalize_hit
from newscrawler.crawler.types import (
    Category,
    CategoryResult,
    CategoryStatus,
    CrawlResult,
    RankedArticle,
    SearchHit,
    StoredArticle,
)
from newscrawler.filter.promotional_filter import ExhaustionPolicy, PromotionalFilter
from newscrawler.filter.recency_filter import RecencyWindow
from newscrawler.monitoring.progress import NullProgressSink, ProgressEventType, ProgressSink
from newscrawler.utils.errors import NewsCrawlerError
from newscrawler.utils.kst import kst_midnight, today_kst
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# 모듈 레벨 상수
# ---------------------------------------------------------------------------

_DEFAULT_CATEGORY_DELAY = 1.0  # 초
_DEFAULT_LIVE_SEARCH_DAYS = 7


class CrawlAlreadyRunningError(NewsCrawlerError):
    """이 프로세스에서 이미 크롤이 실행 중이다."""


class CrawlStorage(ArticleStore, Protocol):
    async def delete_articles_for_date(self, day: date) -> int: ...

    async def load_categories_with_keywords(self) -> list[Category]: ...


class CrawlNotifierProtocol(Protocol):
    async def notify(self, articles: Sequence[StoredArticle]) -> None: ...


@dataclass(frozen=True)
class CrawlProfile:
    """실행 매개변수.

    Attributes:
        name: 로그와 결과에 쓰는 프로필 이름
        window_days: 최신성 기간 길이 (일)
        bounded_above: True이면 기간은 대상 날짜 KST 자정 기준
            ``[target - days, target]``. False이면 현재 시각 기준 하한만 본다.
        exhaustion_policy: 모든 후보가 홍보성일 때의 처리 방식
        promotional_terms: 홍보성 JSON 설정에서 사용할 용어 목록 이름
        broadcast_progress: 진행 이벤트를 sink 로 발행할지 여부
        delete_existing: 같은 논리 날짜의 기사를 먼저 삭제할지 여부
        notify: 실행 후 알림을 보낼지 여부
    """

    name: str
    window_days: float
    bounded_above: bool
    exhaustion_policy: ExhaustionPolicy
    promotional_terms: str
    broadcast_progress: bool
    delete_existing: bool
    notify: bool


NIGHTLY = CrawlProfile(
    name="nightly",
    window_days=3,
    bounded_above=False,
    exhaustion_policy=ExhaustionPolicy.DROP_KEYWORD,
    promotional_terms="crawl_terms",
    broadcast_progress=True,
    delete_existing=True,
    notify=True,
)

BACKFILL = CrawlProfile(
    name="backfill",
    window_days=3,
    bounded_above=True,
    exhaustion_policy=ExhaustionPolicy.FALLBACK_TO_MOST_SIMILAR,
    promotional_terms="backfill_terms",
    broadcast_progress=False,
    delete_existing=False,
    notify=False,
)


class CrawlEngine:
    """크롤 실행과 실시간 검색 경로를 조율한다.

    엔진 하나에서 두 실행이 동시에 돌지 않는다. 다른 실행이 잠금을 쥐고
    있으면 ``run`` 은 CrawlAlreadyRunningError 를 던진다.
    """

    def __init__(
        self,
        search_client: BaseSearchClient,
        ranker: ArticleRanker,
        summarizer: ArticleSummarizer,
        storage: CrawlStorage,
        notifier: CrawlNotifierProtocol | None = None,
        sink: ProgressSink | None = None,
        promotional_filters: Mapping[str, PromotionalFilter] | None = None,
        batch_size: int = 5,
        batch_delay: float = 0.5,
        category_delay: float = _DEFAULT_CATEGORY_DELAY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._search = search_client
        self._ranker = ranker
        self._storage = storage
        self._notifier = notifier
        self._sink = sink or NullProgressSink()
        self._promotional_filters: dict[str, PromotionalFilter] = dict(promotional_filters or {})
        self._category_delay = category_delay
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._category_processor = CategoryProcessor(
            KeywordProcessor(search_client, summarizer, storage),
            batch_size=batch_size,
            batch_delay=batch_delay,
        )
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _promotional_filter(self, list_name: str) -> PromotionalFilter:
        if list_name not in self._promotional_filters:
            self._promotional_filters[list_name] = PromotionalFilter.from_config(list_name)
        return self._promotional_filters[list_name]

    def _build_window(self, profile: CrawlProfile, crawl_date: date, now: datetime) -> RecencyWindow:
        reference = kst_midnight(crawl_date) if profile.bounded_above else now
        return RecencyWindow(reference=reference, days=profile.window_days, bounded_above=profile.bounded_above)

    # ------------------------------------------------------------------
    # 실행
    # ------------------------------------------------------------------

    async def run(
        self,
        profile: CrawlProfile = NIGHTLY,
        target_date: date | None = None,
        sink: ProgressSink | None = None,
        delete_existing: bool | None = None,
    ) -> CrawlResult:
        """크롤을 한 번 실행한다.

        Args:
            profile: 실행 프로필 (NIGHTLY 또는 BACKFILL).
            target_date: 논리 날짜. None이면 KST 기준 오늘.
            sink: 이번 실행의 진행 이벤트 sink. None이면 엔진 기본값.
            delete_existing: 프로필의 삭제 여부를 덮어쓴다.

        Returns:
            카테고리별 결과를 담은 CrawlResult.

        Raises:
            CrawlAlreadyRunningError: 다른 실행이 진행 중인 경우.
            PersistenceError: 기존 기사 삭제나 카테고리 조회에 실패한 경우.
        """
        if self._run_lock.locked():
            raise CrawlAlreadyRunningError("이미 크롤이 진행 중입니다.")
        async with self._run_lock:
            return await self._run(profile, target_date, sink, delete_existing)

    async def _run(
        self,
        profile: CrawlProfile,
        target_date: date | None,
        sink: ProgressSink | None,
        delete_existing: bool | None,
    ) -> CrawlResult:
        started = time.monotonic()
        now = self._clock()
        crawl_date = target_date or today_kst(now)
        crawled_at = kst_midnight(crawl_date)
        run_sink: ProgressSink = (sink or self._sink) if profile.broadcast_progress else NullProgressSink()

        logger.info("크롤 시작 | profile=%s | date=%s", profile.name, crawl_date.isoformat())

        should_delete = profile.delete_existing if delete_existing is None else delete_existing
        if should_delete:
            deleted = await self._storage.delete_articles_for_date(crawl_date)
            logger.info("기존 기사 삭제 | date=%s | %d건", crawl_date.isoformat(), deleted)

        categories = await self._storage.load_categories_with_keywords()

        emit(
            run_sink,
            ProgressEventType.CRAWL_STARTED,
            total_categories=len(categories),
            categories=[{"id": c.id, "name": c.name} for c in categories],
            crawl_date=crawl_date.isoformat(),
            profile=profile.name,
        )

        selector = RepresentativeSelector(
            self._ranker,
            self._promotional_filter(profile.promotional_terms),
            exhaustion_policy=profile.exhaustion_policy,
        )
        ctx = RunContext(
            window=self._build_window(profile, crawl_date, now),
            crawled_at=crawled_at,
            selector=selector,
            sink=run_sink,
        )
        result = CrawlResult(profile=profile.name, crawled_at=crawled_at)

        for i, category in enumerate(categories):
            logger.info("[%d/%d] 카테고리 시작: %s", i + 1, len(categories), category.name)
            try:
                category_result = await self._category_processor.process(category, ctx)
            except Exception as exc:
                logger.error("카테고리 [%s] 처리 실패: %s", category.name, exc, exc_info=True)
                emit(
                    run_sink,
                    ProgressEventType.CATEGORY_ERROR,
                    category_id=category.id,
                    category_name=category.name,
                    error=str(exc) or type(exc).__name__,
                )
                category_result = CategoryResult(
                    category_id=category.id,
                    category_name=category.name,
                    status=CategoryStatus.ERROR,
                    total_keywords=len(category.keywords),
                    error=str(exc),
                )
            result.categories.append(category_result)

            if i < len(categories) - 1 and self._category_delay > 0:
                await asyncio.sleep(self._category_delay)

        result.duration_seconds = time.monotonic() - started
        articles = result.articles

        if profile.notify and articles and self._notifier is not None:
            try:
                await self._notifier.notify(articles)
            except Exception as exc:
                logger.error("알림 발송 실패: %s", exc, exc_info=True)

        emit(
            run_sink,
            ProgressEventType.CRAWL_COMPLETED,
            total_articles=len(articles),
            duration=int(result.duration_seconds * 1000),
            crawl_date=crawl_date.isoformat(),
        )
        logger.info(
            "크롤 완료 | profile=%s | date=%s | 기사 %d건 | %.1fs",
            profile.name, crawl_date.isoformat(), len(articles), result.duration_seconds,
        )
        return result

    # ------------------------------------------------------------------
    # 저장 없는 조회 경로
    # ------------------------------------------------------------------

    async def search_live(self, query: str, days_back: int = _DEFAULT_LIVE_SEARCH_DAYS) -> list[RankedArticle]:
        """실시간 검색: 1회 검색 후 기간 필터, 정규화, 중복 제거 + 중요도 정렬.

        Raises:
            ValueError: 검색어가 비어 있는 경우.
            ConfigurationError: 검색 API 인증 정보가 없는 경우.
            SearchError: 검색 요청이 실패한 경우.
        """
        query = query.strip()
        if not query:
            raise ValueError("검색어가 비어 있습니다.")

        hits = await self._search.search(query)
        window = RecencyWindow(reference=self._clock(), days=days_back)
        recent = [normalize_hit(h) for h in hits if window.admits(h.published_at)]
        logger.info("실시간 검색 | query=%s | %d일 이내 %d건", query, days_back, len(recent))
        return await self._ranker.analyze_and_rank(recent)

    async def find_alternatives(self, keyword: str) -> list[SearchHit]:
        """키워드의 현재 후보 기사 목록 (대표 기사 교체용)."""
        hits = await self._search.search(keyword)
        window = RecencyWindow(reference=self._clock(), days=NIGHTLY.window_days)
        return prepare_candidates(hits, keyword, window)
