"""
기사 요약기.

LLM 응답이 비었거나, 잘렸는데 내용이 없거나, "본문이 없어 요약할 수 없다"는
식의 거부 메시지인 경우 SummarizationError를 발생시킨다. 잘렸지만 내용이 있는
응답은 경고만 남기고 사용한다.
"""

from __future__ import annotations

from typing import Iterable

from newscrawler.analysis.llm_client import LLMClient
from newscrawler.analysis.prompts import build_summary_prompt
from newscrawler.utils.errors import SummarizationError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# 스니펫만 보고 요약을 거부할 때 모델이 쓰는 표현
DEFAULT_REFUSAL_PATTERNS: tuple[str, ...] = (
    "기사 본문",
    "링크를 보내주시면",
    "제목만으로",
    "정확한 요약이 어렵",
    "더 자세한 내용",
    "전체 내용을",
)

_MAX_INPUT_CHARS = 3000
_MAX_OUTPUT_TOKENS = 1000


class ArticleSummarizer:
    def __init__(
        self,
        llm: LLMClient,
        refusal_patterns: Iterable[str] | None = None,
        max_input_chars: int = _MAX_INPUT_CHARS,
    ) -> None:
        self._llm = llm
        self._refusal_patterns = tuple(
            refusal_patterns if refusal_patterns is not None else DEFAULT_REFUSAL_PATTERNS
        )
        self._max_input_chars = max_input_chars

    def is_refusal(self, text: str) -> bool:
        return any(pattern in text for pattern in self._refusal_patterns)

    async def summarize(self, body: str) -> str:
        """본문을 2-3줄로 요약한다.

        Raises:
            SummarizationError: LLM 호출 실패, 빈 응답, 거부 응답.
        """
        text = body
        if len(text) > self._max_input_chars:
            text = text[: self._max_input_chars] + "..."

        try:
            result = await self._llm.call(
                prompt=build_summary_prompt(text),
                task_type="article_summary",
                max_tokens=_MAX_OUTPUT_TOKENS,
            )
        except Exception as exc:
            raise SummarizationError(f"기사 요약 실패: {exc}") from exc

        summary = (result.get("content") or "").strip()
        truncated = result.get("stop_reason") == "max_tokens"

        if not summary:
            reason = "잘린 응답에 요약 내용이 없습니다." if truncated else "응답에 요약 내용이 없습니다."
            raise SummarizationError(reason, details={"stop_reason": result.get("stop_reason")})

        if self.is_refusal(summary):
            logger.warning("요약 거부 응답 감지: %s", summary[:80])
            raise SummarizationError("모델이 요약을 거부했습니다 (메타 메시지 감지)")

        if truncated:
            logger.warning("요약 응답이 잘렸으나 내용이 있어 사용한다 (%d자)", len(summary))

        return summary
