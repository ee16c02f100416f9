from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from newscrawler.crawler.types import StoredArticle
from newscrawler.monitoring import notifier as notifier_module
from newscrawler.monitoring.notifier import CrawlNotifier, build_message
from newscrawler.utils.kst import kst_midnight


def article(title, category_name="테크", summary="요약"):
    return StoredArticle(
        id=title,
        category_id=f"cat-{category_name}",
        keyword="kw",
        title=title,
        summary=summary,
        url=f"https://example.com/{title}",
        published_at=datetime(2025, 3, 9, tzinfo=timezone.utc),
        crawled_at=kst_midnight(date(2025, 3, 10)),
        category_name=category_name,
    )


class FakeSlackResponse:
    def __init__(self, status):
        self.status = status

    async def text(self):
        return "error body"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSlackSession:
    posts = []
    status = 200

    def __init__(self, timeout=None):
        pass

    def post(self, url, json=None):
        FakeSlackSession.posts.append((url, json))
        return FakeSlackResponse(FakeSlackSession.status)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def slack(monkeypatch):
    FakeSlackSession.posts = []
    FakeSlackSession.status = 200
    monkeypatch.setattr(notifier_module.aiohttp, "ClientSession", FakeSlackSession)
    return FakeSlackSession


def test_build_message_groups_by_category():
    message = build_message([
        article("반도체 수출 급증"),
        article("금리 동결", category_name="금융"),
        article("AI 투자 확대"),
        article("분류 없음", category_name=None),
    ])

    assert message.subject == "[뉴스 크롤러] 4개의 새 기사가 수집되었습니다 (2025-03-10)"
    lines = message.text.splitlines()
    assert "━━━ 테크 (2개) ━━━" in lines
    assert "━━━ 금융 (1개) ━━━" in lines
    assert "━━━ 기타 (1개) ━━━" in lines
    assert lines.index("━━━ 테크 (2개) ━━━") < lines.index("━━━ 금융 (1개) ━━━")
    assert "2. AI 투자 확대" in lines
    assert "   요약: 요약" in lines
    assert "   링크: https://example.com/금리 동결" in lines


def test_build_message_explicit_day():
    assert "(2025-01-02)" in build_message([], day=date(2025, 1, 2)).subject


@pytest.mark.asyncio
async def test_telegram_delivery():
    bot = AsyncMock()
    notifier = CrawlNotifier(enabled=True, telegram_chat_id="42", slack_webhook_url="", bot=bot)

    await notifier.notify([article("반도체 수출 급증")])

    kwargs = bot.send_message.await_args.kwargs
    assert kwargs["chat_id"] == "42"
    assert "반도체 수출 급증" in kwargs["text"]


@pytest.mark.asyncio
async def test_long_telegram_message_truncated():
    bot = AsyncMock()
    notifier = CrawlNotifier(enabled=True, telegram_chat_id="42", slack_webhook_url="", bot=bot)

    await notifier.notify([article(f"기사 {i}", summary="가" * 200) for i in range(40)])

    text = bot.send_message.await_args.kwargs["text"]
    assert len(text) == 4000
    assert text.endswith("...")


@pytest.mark.asyncio
async def test_disabled_sends_nothing(slack):
    bot = AsyncMock()
    notifier = CrawlNotifier(enabled=False, telegram_chat_id="42", slack_webhook_url="https://hooks", bot=bot)

    await notifier.notify([article("a")])

    bot.send_message.assert_not_awaited()
    assert slack.posts == []


@pytest.mark.asyncio
async def test_no_articles_sends_nothing():
    bot = AsyncMock()
    await CrawlNotifier(enabled=True, telegram_chat_id="42", bot=bot).notify([])
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_slack_payload(slack):
    notifier = CrawlNotifier(
        enabled=True, telegram_bot_token="", telegram_chat_id="", slack_webhook_url="https://hooks.slack.test/x"
    )

    await notifier.notify([article("반도체 수출 급증")])

    url, payload = slack.posts[0]
    assert url == "https://hooks.slack.test/x"
    assert payload["blocks"][0]["type"] == "header"
    assert "반도체 수출 급증" in payload["blocks"][1]["text"]["text"]


@pytest.mark.asyncio
async def test_channel_failures_are_swallowed(slack):
    slack.status = 500
    bot = AsyncMock()
    bot.send_message.side_effect = RuntimeError("telegram down")
    notifier = CrawlNotifier(enabled=True, telegram_chat_id="42", slack_webhook_url="https://hooks", bot=bot)

    await notifier.notify([article("a")])

    bot.send_message.assert_awaited_once()
    assert len(slack.posts) == 1


@pytest.mark.asyncio
async def test_log_only_when_unconfigured(slack):
    notifier = CrawlNotifier(enabled=True, telegram_bot_token="", telegram_chat_id="", slack_webhook_url="")
    assert not notifier.telegram_configured
    assert not notifier.slack_configured
    await notifier.notify([article("a")])
    assert slack.posts == []
