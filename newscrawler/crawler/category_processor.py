"""
카테고리 단위 처리기.

키워드를 5개씩 배치로 나눠 배치 안에서는 동시에 처리하고, 배치 사이에는
고정 지연을 둔다. 한 키워드의 실패가 같은 배치의 다른 키워드를 취소하지 않는다.
"""

from __future__ import annotations

import asyncio

from newscrawler.crawler.keyword_processor import KeywordProcessor, RunContext, emit
from newscrawler.crawler.types import Category, CategoryResult, CategoryStatus, KeywordOutcome
from newscrawler.monitoring.progress import ProgressEventType
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_BATCH_SIZE = 5
_DEFAULT_BATCH_DELAY = 0.5  # 초

REASON_NO_KEYWORDS = "no keywords"

_STATUS_REASONS = {
    CategoryStatus.COMPLETE: "full completion",
    CategoryStatus.PARTIAL: "partial completion",
    CategoryStatus.NO_NEWS: "no news",
}


def classify(succeeded: int, total: int) -> CategoryStatus:
    if succeeded == 0:
        return CategoryStatus.NO_NEWS
    if succeeded < total:
        return CategoryStatus.PARTIAL
    return CategoryStatus.COMPLETE


class CategoryProcessor:
    def __init__(
        self,
        keyword_processor: KeywordProcessor,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        batch_delay: float = _DEFAULT_BATCH_DELAY,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._keyword_processor = keyword_processor
        self._batch_size = batch_size
        self._batch_delay = batch_delay

    async def process(self, category: Category, ctx: RunContext) -> CategoryResult:
        """카테고리의 모든 키워드를 처리하고 결과를 분류한다."""
        keywords = category.keywords
        total = len(keywords)
        base = {"category_id": category.id, "category_name": category.name}

        emit(ctx.sink, ProgressEventType.CATEGORY_STARTED, **base, keyword_count=total)

        if total == 0:
            logger.info("카테고리 [%s] 키워드 없음, 건너뜀", category.name)
            emit(ctx.sink, ProgressEventType.CATEGORY_SKIPPED, **base, reason=REASON_NO_KEYWORDS)
            return CategoryResult(
                category_id=category.id,
                category_name=category.name,
                status=CategoryStatus.SKIPPED,
            )

        total_batches = (total + self._batch_size - 1) // self._batch_size
        outcomes: list[KeywordOutcome] = []

        for start in range(0, total, self._batch_size):
            batch = keywords[start : start + self._batch_size]
            batch_number = start // self._batch_size + 1
            logger.info(
                "카테고리 [%s] 배치 %d/%d: 키워드 %d개",
                category.name, batch_number, total_batches, len(batch),
            )

            results = await asyncio.gather(
                *(
                    self._keyword_processor.process(category, kw, start + offset, total, ctx)
                    for offset, kw in enumerate(batch)
                ),
                return_exceptions=True,
            )
            for kw, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error("키워드 [%s] 예외: %s", kw.text, result)
                    outcomes.append(KeywordOutcome.absent(kw.text, str(result)))
                else:
                    outcomes.append(result)

            if start + self._batch_size < total and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

        result = CategoryResult(
            category_id=category.id,
            category_name=category.name,
            status=classify(sum(1 for o in outcomes if o.succeeded), total),
            total_keywords=total,
            outcomes=outcomes,
        )

        emit(
            ctx.sink,
            ProgressEventType.CATEGORY_COMPLETED,
            **base,
            success=result.succeeded_keywords > 0,
            total_success=result.failed_keywords == 0,
            articles_count=result.succeeded_keywords,
            total_keywords=total,
            failed_keywords=result.failed_keywords,
            reason=_STATUS_REASONS[result.status],
        )
        logger.info(
            "카테고리 [%s] 완료: %d/%d 기사 저장 (%s)",
            category.name, result.succeeded_keywords, total, result.status.value,
        )
        return result
