"""
크롤 결과 알림.

새로 저장된 기사를 카테고리별로 묶은 메시지를 Telegram과 Slack Incoming
Webhook으로 발송한다. 채널이 하나도 설정되지 않았으면 로그만 남긴다
(graceful degradation). 채널별 실패는 로그로 남기고 호출자에게 전달하지 않는다.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

import aiohttp

from newscrawler.crawler.types import StoredArticle
from newscrawler.utils.config import get_settings
from newscrawler.utils.kst import KST, today_kst
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# Slack section 블록 텍스트 최대 길이
_SLACK_TEXT_LIMIT = 2900
# Telegram 메시지 최대 길이 (API 한도 4096)
_TELEGRAM_TEXT_LIMIT = 4000
_UNCATEGORIZED = "기타"


@dataclass(frozen=True)
class NotificationMessage:
    subject: str
    text: str


def build_message(articles: Sequence[StoredArticle], day: date | None = None) -> NotificationMessage:
    """카테고리별로 묶은 알림 메시지를 만든다. 카테고리 순서는 처음 등장한 순서를 따른다."""
    if day is None:
        day = articles[0].crawled_at.astimezone(KST).date() if articles else today_kst()
    subject = f"[뉴스 크롤러] {len(articles)}개의 새 기사가 수집되었습니다 ({day.isoformat()})"

    grouped: dict[str, list[StoredArticle]] = {}
    for article in articles:
        grouped.setdefault(article.category_name or _UNCATEGORIZED, []).append(article)

    lines = [subject, ""]
    for name, items in grouped.items():
        lines.append(f"━━━ {name} ({len(items)}개) ━━━")
        lines.append("")
        for idx, article in enumerate(items, start=1):
            lines.append(f"{idx}. {article.title}")
            lines.append(f"   요약: {article.summary}")
            lines.append(f"   링크: {article.url}")
            lines.append("")
    return NotificationMessage(subject=subject, text="\n".join(lines).rstrip() + "\n")


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class CrawlNotifier:
    """Telegram / Slack 알림 발송기."""

    def __init__(
        self,
        enabled: bool | None = None,
        telegram_bot_token: str | None = None,
        telegram_chat_id: str | None = None,
        slack_webhook_url: str | None = None,
        bot: Any = None,
    ) -> None:
        settings = get_settings()
        self._enabled = settings.notify_enabled if enabled is None else enabled
        self._telegram_token = telegram_bot_token if telegram_bot_token is not None else settings.telegram_bot_token
        self._telegram_chat_id = telegram_chat_id if telegram_chat_id is not None else settings.telegram_chat_id
        self._slack_webhook_url = slack_webhook_url if slack_webhook_url is not None else settings.slack_webhook_url
        self._bot = bot

        if not self.telegram_configured and not self.slack_configured:
            logger.warning("알림 채널 미설정: 로그 전용")

    @property
    def telegram_configured(self) -> bool:
        return bool(self._bot is not None or (self._telegram_token and self._telegram_chat_id))

    @property
    def slack_configured(self) -> bool:
        return bool(self._slack_webhook_url)

    def _get_bot(self) -> Any:
        if self._bot is None:
            from telegram import Bot

            self._bot = Bot(token=self._telegram_token)
        return self._bot

    async def notify(self, articles: Sequence[StoredArticle]) -> None:
        if not articles:
            return
        if not self._enabled:
            logger.info("알림 비활성화, 발송 건너뜀")
            return

        message = build_message(articles)
        senders = []
        if self.telegram_configured:
            senders.append(self._send_telegram(message))
        if self.slack_configured:
            senders.append(self._send_slack(message))

        if not senders:
            logger.info("알림 (로그 전용) | %s", message.subject)
            return

        results = await asyncio.gather(*senders, return_exceptions=True)
        delivered = sum(1 for r in results if r is True)
        logger.info("알림 발송 | %s | %d/%d 채널 성공", message.subject, delivered, len(senders))

    async def _send_telegram(self, message: NotificationMessage) -> bool:
        try:
            bot = self._get_bot()
            await bot.send_message(
                chat_id=self._telegram_chat_id,
                text=_truncate(message.text, _TELEGRAM_TEXT_LIMIT),
                disable_web_page_preview=True,
            )
            return True
        except Exception as exc:
            logger.error("Telegram 발송 실패 (chat_id=%s): %s", self._telegram_chat_id, exc)
            return False

    async def _send_slack(self, message: NotificationMessage) -> bool:
        payload = {
            "text": message.subject,
            "blocks": [
                {"type": "header", "text": {"type": "plain_text", "text": _truncate(message.subject, 150)}},
                {"type": "section", "text": {"type": "mrkdwn", "text": _truncate(message.text, _SLACK_TEXT_LIMIT)}},
            ],
        }
        timeout = aiohttp.ClientTimeout(total=get_settings().external_call_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self._slack_webhook_url, json=payload) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        logger.error("Slack 발송 실패: status=%d body=%s", resp.status, body[:200])
                        return False
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Slack 발송 실패: %s", exc)
            return False
