"""
키워드 단위 처리기.

검색 -> 기간/관련성 필터 -> 정규화 -> 대표 기사 선택 -> 요약 -> 저장 순으로
진행하며 단계마다 진행 이벤트를 발행한다. 어떤 단계가 실패해도 예외를
호출자에게 전달하지 않고 KeywordOutcome(기사 또는 Absent)으로 끝난다.
요약 실패는 빈 요약으로 저장을 계속한다.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Protocol

from newscrawler.analysis.representative_selector import (
    REASON_NO_ARTICLES,
    REASON_SELECTION_FAILED,
    RepresentativeSelector,
)
from newscrawler.analysis.summarizer import ArticleSummarizer
from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.text_normalizer import normalize_hit
from newscrawler.crawler.types import (
    ArticleFields,
    Category,
    KeywordOutcome,
    KeywordSpec,
    SearchHit,
    StoredArticle,
)
from newscrawler.filter.recency_filter import RecencyWindow, matches_keyword
from newscrawler.monitoring.progress import (
    NullProgressSink,
    ProgressEvent,
    ProgressEventType,
    ProgressSink,
)
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)


class ArticleStore(Protocol):
    async def create_article(self, fields: ArticleFields, crawled_at: datetime) -> StoredArticle: ...


@dataclass
class RunContext:
    """한 번의 실행(run) 동안 모든 키워드가 공유하는 값."""

    window: RecencyWindow
    crawled_at: datetime
    selector: RepresentativeSelector
    sink: ProgressSink = field(default_factory=NullProgressSink)


def emit(sink: ProgressSink, event_type: ProgressEventType, **payload: Any) -> None:
    """진행 이벤트를 발행한다. sink 오류는 로그만 남긴다."""
    try:
        sink.publish(ProgressEvent(event_type, payload))
    except Exception as exc:
        logger.warning("진행 이벤트 발행 실패 (%s): %s", event_type.value, exc)


def prepare_candidates(
    hits: Iterable[SearchHit],
    keyword: str,
    window: RecencyWindow,
) -> list[SearchHit]:
    """기간 안에 있고 제목에 키워드가 들어 있는 결과만 남기고 정규화한다."""
    return [
        normalize_hit(hit)
        for hit in hits
        if window.admits(hit.published_at) and matches_keyword(hit.title, keyword)
    ]


class KeywordProcessor:
    """키워드 하나를 처리하는 상태 기계."""

    def __init__(
        self,
        search_client: BaseSearchClient,
        summarizer: ArticleSummarizer,
        storage: ArticleStore,
    ) -> None:
        self._search = search_client
        self._summarizer = summarizer
        self._storage = storage

    async def process(
        self,
        category: Category,
        keyword: KeywordSpec,
        index: int,
        total: int,
        ctx: RunContext,
    ) -> KeywordOutcome:
        """키워드를 처리하고 결과를 반환한다. 예외를 발생시키지 않는다.

        Args:
            category: 키워드가 속한 카테고리.
            keyword: 처리할 키워드.
            index: 카테고리 안에서의 0-based 순번.
            total: 카테고리의 전체 키워드 수.
            ctx: 실행 공유 값.
        """
        base = {
            "category_id": category.id,
            "category_name": category.name,
            "keyword": keyword.text,
        }
        sink = ctx.sink
        emit(sink, ProgressEventType.KEYWORD_STARTED, **base, keyword_index=index + 1, total_keywords=total)

        try:
            hits = await self._search.search(keyword.text)
            candidates = prepare_candidates(hits, keyword.text, ctx.window)
            emit(sink, ProgressEventType.KEYWORD_ARTICLES_FOUND, **base, article_count=len(candidates))
            logger.info("  [%s] 후보 %d건 (검색 %d건)", keyword.text, len(candidates), len(hits))

            if not candidates:
                return self._absent(ctx, base, keyword.text, REASON_NO_ARTICLES)

            chosen, reason = await ctx.selector.select_with_reason(candidates)
            if chosen is None:
                return self._absent(ctx, base, keyword.text, reason or REASON_SELECTION_FAILED)

            emit(sink, ProgressEventType.KEYWORD_ARTICLE_SELECTED, **base, article_title=chosen.title)
            emit(sink, ProgressEventType.KEYWORD_SUMMARIZING, **base)
            summary = await self._summarize(keyword.text, chosen)

            article = await self._storage.create_article(
                ArticleFields(
                    category_id=category.id,
                    keyword=keyword.text,
                    title=chosen.title,
                    summary=summary,
                    url=chosen.url,
                    published_at=chosen.published_at,
                ),
                ctx.crawled_at,
            )
            article = dataclasses.replace(article, category_name=category.name)

            emit(sink, ProgressEventType.KEYWORD_COMPLETED, **base, success=True, article_title=article.title)
            logger.info("  [%s] 저장 완료: %s", keyword.text, article.title)
            return KeywordOutcome.saved(keyword.text, article)

        except Exception as exc:
            logger.error("  [%s] 키워드 처리 실패: %s", keyword.text, exc, exc_info=True)
            emit(sink, ProgressEventType.KEYWORD_ERROR, **base, error=str(exc) or type(exc).__name__)
            return KeywordOutcome.absent(keyword.text, str(exc) or type(exc).__name__)

    async def _summarize(self, keyword: str, hit: SearchHit) -> str:
        try:
            return await self._summarizer.summarize(hit.body or hit.title)
        except Exception as exc:
            logger.warning("  [%s] 요약 실패, 빈 요약으로 저장: %s", keyword, exc)
            return ""

    @staticmethod
    def _absent(ctx: RunContext, base: dict[str, Any], keyword: str, reason: str) -> KeywordOutcome:
        emit(ctx.sink, ProgressEventType.KEYWORD_COMPLETED, **base, success=False, reason=reason)
        logger.info("  [%s] 기사 없음: %s", keyword, reason)
        return KeywordOutcome.absent(keyword, reason)
