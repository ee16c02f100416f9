"""
LLM 기반 기사 중요도 평가
- rank_important: 대표 기사 선택용 상위 N개 번호 선택
- analyze_and_rank: 실시간 검색용 중복 제거 + 중요도(1-10) + 요약
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from newscrawler.analysis.llm_client import LLMClient
from newscrawler.analysis.prompts import build_analyze_prompt, build_rank_important_prompt
from newscrawler.crawler.types import RankedArticle, SearchHit
from newscrawler.filter.similarity_checker import DEFAULT_DUPLICATE_THRESHOLD, dedupe_by_title
from newscrawler.utils.errors import ConfigurationError, LLMError, NewsCrawlerError, ParseError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_BRACKETED_INDICES = re.compile(r"\[([0-9,\s]+)\]")
_BARE_INDICES = re.compile(r"^([0-9,\s]+)$")

_MAX_RANKED_RESULTS = 20
_PLACEHOLDER_SUMMARY_CHARS = 150
_NEUTRAL_IMPORTANCE = 5
_MIN_IMPORTANCE = 1
_MAX_IMPORTANCE = 10


def parse_indices(content: str, count: int, limit: int) -> list[int]:
    """응답 텍스트에서 후보 번호 목록을 추출한다.

    ``[0, 3, 5]`` 또는 ``0, 3, 5`` 형식을 허용한다. 범위를 벗어난 번호와
    중복 번호는 버리고 최대 ``limit`` 개까지 반환한다.

    Raises:
        ParseError: 번호 목록을 찾지 못했거나 유효한 번호가 하나도 없는 경우.
    """
    text = content.strip()
    match = _BRACKETED_INDICES.search(text) or _BARE_INDICES.match(text)
    if not match:
        raise ParseError(f"번호 목록을 찾을 수 없습니다: {text[:100]}")

    indices: list[int] = []
    for token in match.group(1).split(","):
        token = token.strip()
        if not token.isdigit():
            continue
        index = int(token)
        if 0 <= index < count and index not in indices:
            indices.append(index)

    if not indices:
        raise ParseError(f"유효한 번호가 없습니다: {text[:100]}")
    return indices[:limit]


def _clamp_importance(value: Any) -> int:
    try:
        score = int(value)
    except (TypeError, ValueError):
        return _NEUTRAL_IMPORTANCE
    return max(_MIN_IMPORTANCE, min(_MAX_IMPORTANCE, score))


def _placeholder(hit: SearchHit) -> RankedArticle:
    return RankedArticle(
        title=hit.title,
        body=hit.body,
        url=hit.url,
        published_at=hit.published_at,
        summary=hit.body[:_PLACEHOLDER_SUMMARY_CHARS],
        importance=_NEUTRAL_IMPORTANCE,
    )


class ArticleRanker:
    """LLM 순위 평가 협력자."""

    def __init__(
        self,
        llm: LLMClient,
        duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        max_results: int = _MAX_RANKED_RESULTS,
    ) -> None:
        self._llm = llm
        self._duplicate_threshold = duplicate_threshold
        self._max_results = max_results

    async def rank_important(self, candidates: Sequence[SearchHit], top_n: int = 3) -> list[int]:
        """비즈니스 변화가 큰 기사 최대 ``top_n`` 개의 번호를 반환한다.

        후보 수가 ``top_n`` 이하이면 LLM을 호출하지 않고 전체 번호를 반환한다.

        Raises:
            LLMError: API 키 누락, 호출 실패, 빈 응답.
            ParseError: 응답에서 유효한 번호를 찾지 못한 경우.
        """
        try:
            self._llm.ensure_configured()
        except ConfigurationError as exc:
            raise LLMError(str(exc)) from exc

        if not candidates:
            return []
        if len(candidates) <= top_n:
            return list(range(len(candidates)))

        result = await self._llm.call(
            prompt=build_rank_important_prompt(candidates, top_n),
            task_type="representative_selection",
            max_tokens=100,
            temperature=0.1,
        )
        content = result["content"].strip()
        if not content:
            raise LLMError("순위 평가 응답이 비어있습니다.")

        indices = parse_indices(content, len(candidates), top_n)
        logger.info("상위 기사 선택 | 후보 %d건 -> %s", len(candidates), indices)
        return indices

    async def analyze_and_rank(self, articles: Sequence[SearchHit]) -> list[RankedArticle]:
        """중복 제목을 제거하고 LLM으로 중요도와 요약을 매긴 목록을 반환한다.

        결과는 중요도 내림차순이며 최대 ``max_results`` 건이다. API 키가 없으면
        입력 기사 전체를, 분석이 실패하면 입력 앞쪽 ``max_results`` 건을 본문
        앞부분 요약과 중립 점수(5)로 반환한다. 대체 경로는 중복 제거를 하지 않는다.
        """
        if not articles:
            return []

        unique = dedupe_by_title(articles, lambda h: h.title, self._duplicate_threshold)

        if not self._llm.configured:
            logger.warning("ANTHROPIC_API_KEY 미설정: 중요도 분석을 건너뛴다")
            return [_placeholder(hit) for hit in articles]

        try:
            parsed = await self._llm.call_json(
                prompt=build_analyze_prompt(unique, self._max_results),
                task_type="live_search_ranking",
                max_tokens=3000,
            )
            ranked = self._map_analysis(parsed, unique)
        except NewsCrawlerError as exc:
            logger.error("기사 분석 실패, 기본 요약으로 대체: %s", exc)
            return [_placeholder(hit) for hit in articles[: self._max_results]]

        logger.info("기사 분석 완료 | 입력 %d건 -> 결과 %d건", len(articles), len(ranked))
        return ranked

    def _map_analysis(self, parsed: dict | list, articles: Sequence[SearchHit]) -> list[RankedArticle]:
        if not isinstance(parsed, list):
            raise ParseError("분석 응답이 JSON 배열이 아닙니다.")

        seen: set[int] = set()
        ranked: list[RankedArticle] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            index = item.get("index")
            if not isinstance(index, int) or isinstance(index, bool):
                continue
            if not 0 <= index < len(articles) or index in seen:
                continue
            seen.add(index)
            hit = articles[index]
            summary = item.get("summary")
            ranked.append(
                RankedArticle(
                    title=hit.title,
                    body=hit.body,
                    url=hit.url,
                    published_at=hit.published_at,
                    summary=summary if isinstance(summary, str) and summary.strip()
                    else hit.body[:_PLACEHOLDER_SUMMARY_CHARS],
                    importance=_clamp_importance(item.get("importance")),
                )
            )

        if not ranked:
            raise ParseError("분석 응답에 유효한 기사가 없습니다.")

        # sort는 안정 정렬이므로 동점은 응답 순서를 유지한다
        ranked.sort(key=lambda r: r.importance, reverse=True)
        return ranked[: self._max_results]
