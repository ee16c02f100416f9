"""
대표 기사 선택
- 홍보성 필터를 통과한 후보 중 LLM이 비즈니스 관련 기사 최대 3건을 고르고
  그중 본문이 가장 긴 기사를 대표로 삼는다
- 순위 평가가 실패하면 필터 전 후보 전체에서 ``제목 + 본문`` 평균 유사도가
  가장 높은 기사로 대체한다
"""

from __future__ import annotations

from typing import Callable, Sequence

from newscrawler.analysis.article_ranker import ArticleRanker
from newscrawler.crawler.types import SearchHit
from newscrawler.filter.promotional_filter import ExhaustionPolicy, PromotionalFilter
from newscrawler.filter.similarity_checker import most_representative_index
from newscrawler.utils.errors import ParseError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

REASON_NO_ARTICLES = "no articles"
REASON_SELECTION_FAILED = "selection failed"
REASON_ALL_PROMOTIONAL = "all candidates promotional"

_DEFAULT_TOP_N = 3


def pick_longest_body(ranked: Sequence[SearchHit]) -> SearchHit:
    """본문이 가장 긴 기사를 고른다. 길이가 같으면 앞선 기사."""
    best = ranked[0]
    for hit in ranked[1:]:
        if len(hit.body) > len(best.body):
            best = hit
    return best


def most_similar(candidates: Sequence[SearchHit]) -> SearchHit | None:
    index = most_representative_index([c.text for c in candidates])
    return None if index is None else candidates[index]


class RepresentativeSelector:
    """키워드마다 기사 한 건을 고른다.

    Args:
        ranker: LLM 순위 평가 협력자
        promotional_filter: 순위 평가 전에 적용하는 홍보성 차단 목록
        exhaustion_policy: 모든 후보가 홍보성일 때의 처리 방식
        top_n: 순위 평가에서 요청할 기사 수
        pick: 순위 평가 결과 중 최종 기사를 고르는 함수 (기본: 최장 본문)
    """

    def __init__(
        self,
        ranker: ArticleRanker,
        promotional_filter: PromotionalFilter,
        exhaustion_policy: ExhaustionPolicy = ExhaustionPolicy.DROP_KEYWORD,
        top_n: int = _DEFAULT_TOP_N,
        pick: Callable[[Sequence[SearchHit]], SearchHit] = pick_longest_body,
    ) -> None:
        self._ranker = ranker
        self._promotional_filter = promotional_filter
        self.exhaustion_policy = exhaustion_policy
        self._top_n = top_n
        self._pick = pick

    async def select(self, candidates: Sequence[SearchHit]) -> SearchHit | None:
        hit, _ = await self.select_with_reason(candidates)
        return hit

    async def select_with_reason(self, candidates: Sequence[SearchHit]) -> tuple[SearchHit | None, str]:
        """성공하면 ``(hit, "")``, 실패하면 ``(None, 사유)`` 를 반환한다.

        제목과 본문이 모두 있는 순위 결과만 최종 선택 대상이 된다.
        """
        if not candidates:
            return None, REASON_NO_ARTICLES
        if len(candidates) == 1:
            return candidates[0], ""

        filtered = self._promotional_filter.exclude(candidates)
        if not filtered:
            if self.exhaustion_policy is ExhaustionPolicy.DROP_KEYWORD:
                logger.info("후보 %d건 모두 홍보성 기사: 키워드 제외", len(candidates))
                return None, REASON_ALL_PROMOTIONAL
            logger.info("후보 %d건 모두 홍보성 기사: 유사도 기준 대체 선택", len(candidates))
            return self._fallback(candidates)

        try:
            indices = await self._ranker.rank_important(filtered, min(self._top_n, len(filtered)))
            ranked = [filtered[i] for i in indices if filtered[i].title and filtered[i].body]
            if not ranked:
                raise ParseError("선택된 후보가 없습니다.")
            return self._pick(ranked), ""
        except Exception as exc:
            logger.warning("순위 평가 실패, 유사도 기반 대체 선택: %s", exc)
            return self._fallback(candidates)

    @staticmethod
    def _fallback(candidates: Sequence[SearchHit]) -> tuple[SearchHit | None, str]:
        hit = most_similar(candidates)
        if hit is None:
            return None, REASON_SELECTION_FAILED
        return hit, ""
