"""LLM 프롬프트 템플릿."""

from __future__ import annotations

from typing import Sequence

from newscrawler.crawler.types import SearchHit

# 후보 목록에 넣는 제목/본문 최대 길이
_RANK_TITLE_CHARS = 100
_RANK_BODY_CHARS = 150
_ANALYZE_BODY_CHARS = 200


def build_rank_important_prompt(candidates: Sequence[SearchHit], top_n: int) -> str:
    """비즈니스 변화가 있는 기사 top_n개의 번호를 고르게 하는 프롬프트."""
    article_list = "\n\n".join(
        f"{i}. [제목] {hit.title[:_RANK_TITLE_CHARS]} [본문] {hit.body[:_RANK_BODY_CHARS]}"
        for i, hit in enumerate(candidates)
    )
    return f"""다음 {len(candidates)}개 뉴스 중 기업 실적·계약·투자·인사·소송 같은 비즈니스 변화가 있는 {top_n}개를 선택하세요.

선택 기준:
- 실적/공시, 계약/수주, 투자/M&A, 임원인사, 소송/제재, 특허/기술개발
- 제외: 전시·행사·캠페인·후원·기부·CSR·인기·호평·주목

기사:
{article_list}

비즈니스 변화 있는 {top_n}개 번호를 [0, 1, 2] 형식으로만 답하세요."""


def build_analyze_prompt(articles: Sequence[SearchHit], max_results: int) -> str:
    """실시간 검색 결과의 중요도 평가 + 요약을 JSON 배열로 요청하는 프롬프트."""
    article_list = "\n\n".join(
        f"{i}. [제목] {hit.title}\n[설명] {hit.body[:_ANALYZE_BODY_CHARS]}"
        for i, hit in enumerate(articles)
    )
    return f"""다음 뉴스 기사들을 분석해주세요.

기사 목록:
{article_list}

다음 작업을 수행하고 JSON 형식으로 응답해주세요:
1. 중복/유사한 기사는 하나만 남기고 제외 (같은 사건을 다룬 기사)
2. 남은 기사들의 중요도를 1-10으로 평가 (실적/계약/투자/인사/소송 등 비즈니스 변화가 큰 기사일수록 높은 점수)
3. 각 기사를 2-3줄로 요약

응답 형식 (JSON 배열):
[
  {{"index": 0, "importance": 8, "summary": "2-3줄 요약"}}
]

중요: 중복 제거 후 최대 {max_results}개 기사만 반환하세요."""


def build_summary_prompt(text: str) -> str:
    return f"다음 뉴스를 2-3줄로 요약: {text}"
