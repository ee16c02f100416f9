"""
매일 정해진 KST 시각에 크롤을 실행하는 스케줄러.

SchedulerHandle은 백그라운드 asyncio 태스크 하나를 소유하며
start/replace/stop 으로 수명주기를 관리한다. 필요한 곳(API 서버, main)에
명시적으로 전달한다.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable

from newscrawler.utils.kst import KST
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_RUN_AT_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_run_at(value: str) -> time:
    """``HH:MM`` 문자열을 time으로 변환한다.

    Raises:
        ValueError: 형식이 잘못된 경우.
    """
    match = _RUN_AT_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"실행 시각 형식이 잘못되었습니다 (HH:MM): {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def next_run_after(now: datetime, run_at: time) -> datetime:
    """now 이후 처음 도래하는 KST run_at 시각을 반환한다."""
    local = now.astimezone(KST)
    candidate = local.replace(hour=run_at.hour, minute=run_at.minute, second=0, microsecond=0)
    if candidate <= local:
        candidate += timedelta(days=1)
    return candidate


class SchedulerHandle:
    """일일 크롤 작업 핸들."""

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        run_at: str = "09:00",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._job = job
        self._run_at = parse_run_at(run_at)
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def run_at(self) -> str:
        return self._run_at.strftime("%H:%M")

    @property
    def next_run(self) -> datetime | None:
        if not self.running:
            return None
        return next_run_after(self._clock(), self._run_at)

    async def start(self) -> None:
        """스케줄 루프를 시작한다. 이미 실행 중이면 아무 작업도 하지 않는다."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="crawl_scheduler")
        logger.info("크롤 스케줄러 시작 (매일 %s KST)", self.run_at)

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("크롤 스케줄러 중지")

    async def replace(self, run_at: str) -> None:
        """실행 시각을 바꾸고 루프를 다시 시작한다."""
        new_time = parse_run_at(run_at)
        await self.stop()
        self._run_at = new_time
        await self.start()

    async def _loop(self) -> None:
        while True:
            now = self._clock()
            target = next_run_after(now, self._run_at)
            delay = (target - now).total_seconds()
            logger.info("다음 크롤 예정: %s (%.0f초 후)", target.isoformat(), delay)
            await asyncio.sleep(max(delay, 0.0))
            try:
                await self._job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("예약 크롤 실패: %s", exc, exc_info=True)
