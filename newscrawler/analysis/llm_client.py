"""
Claude 클라이언트
- 태스크별 모델 라우팅: Haiku(빠름) vs Sonnet(정확)
- 비동기 호출 (async/await), 호출당 타임아웃
- 에러 핸들링 + 지수 백오프 재시도
- 토큰 사용량 추적 (모델별 분리)
- JSON 응답 파싱
"""
from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any

import anthropic

from newscrawler.utils.config import get_settings
from newscrawler.utils.errors import ConfigurationError, LLMError, ParseError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)


class ModelType(Enum):
    """사용 가능한 Claude 모델."""

    HAIKU = "claude-haiku-4-5-20251001"
    SONNET = "claude-sonnet-4-5-20250929"


# 태스크별 모델 라우팅 매핑
MODEL_ROUTING: dict[str, ModelType] = {
    # Haiku (대량 호출, 키워드마다 실행)
    "representative_selection": ModelType.HAIKU,
    "article_summary": ModelType.HAIKU,
    # Sonnet (사용자 요청 1회, 중복 판단 + 요약을 한 번에)
    "live_search_ranking": ModelType.SONNET,
}

# 재시도 대상 HTTP 상태 코드
_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 529}

_DEFAULT_MAX_TOKENS: int = 1024
_DEFAULT_BASE_DELAY = 1.0  # 초

# JSON 코드블록 패턴: ```json ... ``` 또는 ``` ... ```
_JSON_BLOCK_PATTERN = re.compile(
    r"```(?:json)?\s*\n?([\s\S]*?)\n?```",
    re.DOTALL,
)


class LLMClient:
    """Anthropic 비동기 클라이언트 래퍼.

    SDK 클라이언트는 첫 호출 시점에 생성한다. API 키가 없으면 그때
    ``ConfigurationError`` 를 발생시키므로, 키 없이도 파이프라인 객체 조립과
    LLM을 쓰지 않는 경로(단일 후보 선택 등)는 정상 동작한다.

    SDK 자체 재시도는 끄고(max_retries=0) 이 클래스에서 지수 백오프로 재시도한다.
    모든 실패는 ``LLMError`` 로 변환되어 호출자에게 전달된다.
    """

    def __init__(
        self,
        api_key: str | None = None,
        max_retries: int | None = None,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        """LLMClient를 초기화한다.

        Args:
            api_key: Anthropic API 키. None이면 설정에서 읽는다.
            max_retries: 재시도 가능한 오류에 대한 최대 재시도 횟수.
            timeout: 호출 1회당 타임아웃 (초).
            client: 미리 만든 SDK 클라이언트 (테스트 주입용).
        """
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.anthropic_api_key
        self._max_retries = max_retries if max_retries is not None else settings.llm_max_retries
        self._timeout = timeout if timeout is not None else settings.external_call_timeout
        self._client = client

        self._usage: dict[str, dict[str, int]] = {
            model.value: {"input_tokens": 0, "output_tokens": 0, "calls": 0}
            for model in ModelType
        }

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def ensure_configured(self) -> None:
        """API 키가 없으면 ConfigurationError를 발생시킨다."""
        if not self.configured:
            raise ConfigurationError("ANTHROPIC_API_KEY가 설정되지 않았습니다.")

    def _get_client(self) -> Any:
        if self._client is None:
            self.ensure_configured()
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key, max_retries=0)
            logger.info(
                "Anthropic 클라이언트 생성 | max_retries=%d | timeout=%.0fs",
                self._max_retries,
                self._timeout,
            )
        return self._client

    async def call(
        self,
        prompt: str,
        task_type: str,
        system_prompt: str | None = None,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
        temperature: float = 0.3,
    ) -> dict:
        """Claude를 호출하고 결과를 반환한다.

        Args:
            prompt: 사용자 프롬프트.
            task_type: MODEL_ROUTING 키. 등록되지 않은 키는 Haiku로 폴백한다.
            system_prompt: 시스템 프롬프트 (선택).
            max_tokens: 최대 출력 토큰 수.
            temperature: 샘플링 온도.

        Returns:
            ``{"content", "model", "input_tokens", "output_tokens", "stop_reason"}`` 딕셔너리.

        Raises:
            ConfigurationError: API 키가 없는 경우.
            LLMError: 재시도 후에도 실패했거나 타임아웃된 경우.
        """
        client = self._get_client()
        model = MODEL_ROUTING.get(task_type, ModelType.HAIKU)

        kwargs: dict = {
            "model": model.value,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        logger.debug("Claude 호출 시작 | task=%s | model=%s", task_type, model.value)
        response = await self._call_with_retry(client, kwargs, task_type)

        content = "".join(
            getattr(block, "text", "")
            for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        usage = self._usage[model.value]
        usage["input_tokens"] += input_tokens
        usage["output_tokens"] += output_tokens
        usage["calls"] += 1

        logger.info(
            "Claude 호출 완료 | task=%s | in=%d out=%d tokens | stop=%s",
            task_type,
            input_tokens,
            output_tokens,
            response.stop_reason,
        )

        return {
            "content": content,
            "model": model.value,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "stop_reason": response.stop_reason,
        }

    async def call_json(
        self,
        prompt: str,
        task_type: str,
        system_prompt: str | None = None,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
    ) -> dict | list:
        """JSON 응답을 기대하는 Claude 호출.

        Raises:
            ParseError: 응답에서 유효한 JSON을 찾지 못한 경우.
        """
        result = await self.call(
            prompt=prompt,
            task_type=task_type,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=0.1,
        )
        return self.extract_json(result["content"])

    async def _call_with_retry(self, client: Any, kwargs: dict, task_type: str) -> Any:
        """지수 백오프로 Messages API를 호출한다.

        rate limit(429), 서버 에러(500/502/503), overloaded(529), 연결 실패에 대해 재시도한다.
        타임아웃은 재시도하지 않는다.
        """
        last_exception: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                return await asyncio.wait_for(
                    client.messages.create(**kwargs), timeout=self._timeout
                )
            except asyncio.TimeoutError as exc:
                logger.error("Claude API 타임아웃 | task=%s | timeout=%.0fs", task_type, self._timeout)
                raise LLMError(f"LLM 호출 타임아웃 ({self._timeout:.0f}s)") from exc
            except anthropic.APIStatusError as exc:
                last_exception = exc
                if exc.status_code not in _RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Claude API 비재시도 에러 | task=%s | status=%d | %s",
                        task_type,
                        exc.status_code,
                        exc.message,
                    )
                    raise LLMError(
                        f"LLM API 오류 (status={exc.status_code}): {exc.message}",
                        details={"status": exc.status_code},
                    ) from exc

                if attempt >= self._max_retries:
                    break

                delay = _DEFAULT_BASE_DELAY * (2 ** attempt)
                if exc.status_code == 429:
                    retry_after = exc.response.headers.get("retry-after") if exc.response is not None else None
                    if retry_after:
                        try:
                            delay = max(delay, float(retry_after))
                        except (ValueError, TypeError):
                            pass

                logger.warning(
                    "Claude API 재시도 예정 | task=%s | attempt=%d/%d | status=%d | delay=%.1fs",
                    task_type,
                    attempt + 1,
                    self._max_retries,
                    exc.status_code,
                    delay,
                )
                await asyncio.sleep(delay)

            except anthropic.APIConnectionError as exc:
                last_exception = exc
                if attempt >= self._max_retries:
                    break

                delay = _DEFAULT_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Claude API 연결 실패 재시도 | task=%s | attempt=%d/%d | delay=%.1fs | %s",
                    task_type,
                    attempt + 1,
                    self._max_retries,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)

        logger.error(
            "Claude API 최대 재시도 횟수 초과 | task=%s | retries=%d",
            task_type,
            self._max_retries,
        )
        raise LLMError(f"LLM 호출 실패: {last_exception}") from last_exception

    def get_usage_stats(self) -> dict:
        """모델별 토큰 사용량 통계를 반환한다."""
        return {
            "total_input_tokens": sum(u["input_tokens"] for u in self._usage.values()),
            "total_output_tokens": sum(u["output_tokens"] for u in self._usage.values()),
            "total_calls": sum(u["calls"] for u in self._usage.values()),
            "per_model": {model: dict(usage) for model, usage in self._usage.items()},
        }

    @staticmethod
    def extract_json(text: str) -> dict | list:
        """텍스트에서 JSON 객체 또는 배열을 추출한다.

        우선순위:
          1. ```json ... ``` 코드블록 내부
          2. 텍스트 전체를 직접 파싱
          3. 첫 번째 ``{`` 또는 ``[`` 부터 마지막 ``}`` 또는 ``]`` 까지 추출

        Raises:
            ParseError: 유효한 JSON을 찾지 못한 경우.
        """
        match = _JSON_BLOCK_PATTERN.search(text)
        if match:
            try:
                return json.loads(match.group(1).strip())
            except json.JSONDecodeError:
                logger.debug("JSON 코드블록 파싱 실패, 다음 단계 시도")

        stripped = text.strip()
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("전체 텍스트 JSON 파싱 실패, 다음 단계 시도")

        start_obj = stripped.find("{")
        start_arr = stripped.find("[")
        if start_obj == -1 and start_arr == -1:
            raise ParseError(f"JSON을 찾을 수 없습니다: {text[:200]}")

        if start_arr == -1 or (start_obj != -1 and start_obj < start_arr):
            start = start_obj
            end = stripped.rfind("}") + 1
        else:
            start = start_arr
            end = stripped.rfind("]") + 1

        if end <= start:
            raise ParseError(f"JSON을 찾을 수 없습니다: {text[:200]}")

        try:
            return json.loads(stripped[start:end])
        except json.JSONDecodeError as exc:
            raise ParseError(f"JSON 파싱 실패: {exc}. 원문: {text[:300]}") from exc
