"""
크롤 진행 상황 이벤트와 전파
- ProgressEvent: 단계(run/category/keyword)별 구조화 이벤트
- ProgressBroadcaster: 연결된 관찰자(WebSocket 등)에게 fire-and-forget 전파
- RedisProgressPublisher: 다른 프로세스의 관찰자를 위한 Redis Pub/Sub 발행

sink의 publish()는 동기 함수이며 예외를 호출자에게 전달하지 않는다.
관찰자별 전송은 각자의 큐와 writer 태스크에서 처리되므로 느린 관찰자가
파이프라인이나 다른 관찰자를 지연시키지 않는다. 재전송/버퍼링은 없다.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Protocol

from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# 관찰자별 대기 메시지 최대 수. 가득 차면 새 이벤트는 버린다.
_OBSERVER_QUEUE_SIZE = 256

PROGRESS_CHANNEL = "crawl:progress"


class ProgressEventType(str, Enum):
    CRAWL_STARTED = "crawl_started"
    CRAWL_COMPLETED = "crawl_completed"
    CATEGORY_STARTED = "category_started"
    CATEGORY_SKIPPED = "category_skipped"
    CATEGORY_COMPLETED = "category_completed"
    CATEGORY_ERROR = "category_error"
    KEYWORD_STARTED = "keyword_started"
    KEYWORD_ARTICLES_FOUND = "keyword_articles_found"
    KEYWORD_ARTICLE_SELECTED = "keyword_article_selected"
    KEYWORD_SUMMARIZING = "keyword_summarizing"
    KEYWORD_COMPLETED = "keyword_completed"
    KEYWORD_ERROR = "keyword_error"


@dataclass(frozen=True)
class ProgressEvent:
    """진행 이벤트. payload만으로 UI 상태를 재구성할 수 있도록 식별 필드를 모두 담는다."""

    type: ProgressEventType
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.payload, "timestamp": self.timestamp.isoformat()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class ProgressSink(Protocol):
    def publish(self, event: ProgressEvent) -> None: ...


class NullProgressSink:
    """진행 상황을 전파하지 않는 sink (백필 등)."""

    def publish(self, event: ProgressEvent) -> None:
        return None


class CompositeProgressSink:
    """여러 sink에 같은 이벤트를 전달한다."""

    def __init__(self, sinks: Iterable[ProgressSink]) -> None:
        self._sinks = list(sinks)

    def publish(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            try:
                sink.publish(event)
            except Exception as exc:
                logger.warning("진행 이벤트 전파 실패 (%s): %s", type(sink).__name__, exc)


@dataclass(eq=False)
class _Observer:
    id: int
    send: Callable[[str], Awaitable[None]]
    queue: asyncio.Queue[str]
    task: asyncio.Task | None = None
    dropped: int = 0


class ProgressBroadcaster:
    """등록된 관찰자 전체에 진행 이벤트를 fan-out 한다."""

    def __init__(self, queue_size: int = _OBSERVER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._observers: dict[int, _Observer] = {}
        self._ids = itertools.count(1)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def register(self, send: Callable[[str], Awaitable[None]]) -> int:
        """관찰자를 등록하고 식별자를 반환한다. 실행 중인 이벤트 루프 안에서 호출해야 한다.

        Args:
            send: 직렬화된 이벤트(JSON 문자열)를 전송하는 코루틴 함수.
        """
        observer = _Observer(
            id=next(self._ids),
            send=send,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        observer.task = asyncio.create_task(
            self._writer(observer), name=f"progress_observer_{observer.id}"
        )
        self._observers[observer.id] = observer
        logger.info("진행 관찰자 연결 (id=%d, total=%d)", observer.id, len(self._observers))
        return observer.id

    async def unregister(self, observer_id: int) -> None:
        observer = self._observers.pop(observer_id, None)
        if observer is None:
            return
        if observer.task is not None and not observer.task.done():
            observer.task.cancel()
            try:
                await observer.task
            except asyncio.CancelledError:
                pass
        logger.info("진행 관찰자 해제 (id=%d, remaining=%d)", observer_id, len(self._observers))

    def publish(self, event: ProgressEvent) -> None:
        if not self._observers:
            return
        try:
            message = event.to_json()
        except (TypeError, ValueError) as exc:
            logger.warning("진행 이벤트 직렬화 실패 (%s): %s", event.type.value, exc)
            return
        for observer in list(self._observers.values()):
            try:
                observer.queue.put_nowait(message)
            except asyncio.QueueFull:
                observer.dropped += 1
                logger.warning(
                    "진행 관찰자 큐 가득 참, 이벤트 버림 (id=%d, dropped=%d)",
                    observer.id, observer.dropped,
                )

    async def close(self) -> None:
        for observer_id in list(self._observers):
            await self.unregister(observer_id)

    async def _writer(self, observer: _Observer) -> None:
        while True:
            message = await observer.queue.get()
            try:
                await observer.send(message)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # 전송이 한 번 실패한 관찰자는 끊긴 것으로 보고 제거한다
                logger.warning("진행 이벤트 전송 실패 (id=%d): %s", observer.id, exc)
                self._observers.pop(observer.id, None)
                return


class RedisProgressPublisher:
    """진행 이벤트를 Redis 채널로 발행한다. 실패는 debug 로그만 남긴다."""

    def __init__(self, redis: Any, channel: str = PROGRESS_CHANNEL) -> None:
        self._redis = redis
        self._channel = channel
        self._pending: set[asyncio.Task] = set()

    def publish(self, event: ProgressEvent) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._publish(event.to_json()))
        except RuntimeError:
            logger.debug("이벤트 루프 없음, Redis 진행 이벤트 생략")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, message: str) -> None:
        try:
            await self._redis.publish(self._channel, message)
        except Exception as e:
            logger.debug("Progress report failed: %s", e)
