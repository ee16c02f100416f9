from unittest.mock import AsyncMock

import pytest

from newscrawler.analysis.summarizer import ArticleSummarizer
from newscrawler.utils.errors import LLMError, SummarizationError


def reply(content, stop_reason="end_turn"):
    return {"content": content, "stop_reason": stop_reason}


@pytest.mark.asyncio
async def test_returns_summary(mock_llm):
    mock_llm.call.return_value = reply("  회사가 신규 공장을 착공했다.  ")
    summary = await ArticleSummarizer(mock_llm).summarize("본문")
    assert summary == "회사가 신규 공장을 착공했다."
    assert mock_llm.call.await_args.kwargs["task_type"] == "article_summary"


@pytest.mark.asyncio
async def test_long_input_truncated(mock_llm):
    mock_llm.call.return_value = reply("요약")
    await ArticleSummarizer(mock_llm, max_input_chars=10).summarize("가" * 50)
    prompt = mock_llm.call.await_args.kwargs["prompt"]
    assert "가" * 10 + "..." in prompt
    assert "가" * 11 not in prompt


@pytest.mark.asyncio
async def test_call_failure_wrapped(mock_llm):
    mock_llm.call = AsyncMock(side_effect=LLMError("unauthorized"))
    with pytest.raises(SummarizationError):
        await ArticleSummarizer(mock_llm).summarize("본문")


@pytest.mark.asyncio
@pytest.mark.parametrize("stop_reason", ["end_turn", "max_tokens"])
async def test_empty_response(mock_llm, stop_reason):
    mock_llm.call.return_value = reply("   ", stop_reason)
    with pytest.raises(SummarizationError):
        await ArticleSummarizer(mock_llm).summarize("본문")


@pytest.mark.asyncio
async def test_truncated_with_content_accepted(mock_llm):
    mock_llm.call.return_value = reply("부분 요약", "max_tokens")
    assert await ArticleSummarizer(mock_llm).summarize("본문") == "부분 요약"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "기사 본문을 제공해주시면 요약해드리겠습니다.",
        "제목만으로는 정확한 요약이 어렵습니다.",
        "링크를 보내주시면 확인하겠습니다.",
    ],
)
async def test_refusal_detected(mock_llm, content):
    mock_llm.call.return_value = reply(content)
    with pytest.raises(SummarizationError):
        await ArticleSummarizer(mock_llm).summarize("짧은 스니펫")


@pytest.mark.asyncio
async def test_custom_refusal_patterns(mock_llm):
    mock_llm.call.return_value = reply("I cannot summarize this")
    summarizer = ArticleSummarizer(mock_llm, refusal_patterns=["cannot summarize"])
    assert summarizer.is_refusal("I cannot summarize this")
    with pytest.raises(SummarizationError):
        await summarizer.summarize("body")
