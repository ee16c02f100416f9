import asyncio
from datetime import datetime, time, timezone
from unittest.mock import AsyncMock

import pytest

from newscrawler.crawler.crawl_scheduler import SchedulerHandle, next_run_after, parse_run_at
from newscrawler.utils.kst import KST

NOW = datetime(2025, 3, 10, 0, 30, tzinfo=timezone.utc)  # 09:30 KST


@pytest.mark.parametrize("value, expected", [("09:00", time(9, 0)), ("7:05", time(7, 5)), (" 23:59 ", time(23, 59))])
def test_parse_run_at(value, expected):
    assert parse_run_at(value) == expected


@pytest.mark.parametrize("value", ["24:00", "9", "09:60", "nine"])
def test_parse_run_at_invalid(value):
    with pytest.raises(ValueError):
        parse_run_at(value)


def test_next_run_later_today():
    assert next_run_after(NOW, time(10, 0)) == datetime(2025, 3, 10, 10, 0, tzinfo=KST)


def test_next_run_tomorrow_when_passed():
    assert next_run_after(NOW, time(9, 0)) == datetime(2025, 3, 11, 9, 0, tzinfo=KST)


def test_next_run_exactly_now_rolls_over():
    assert next_run_after(NOW, time(9, 30)) == datetime(2025, 3, 11, 9, 30, tzinfo=KST)


@pytest.mark.asyncio
async def test_lifecycle():
    handle = SchedulerHandle(AsyncMock(), run_at="10:00", clock=lambda: NOW)
    assert not handle.running
    assert handle.next_run is None

    await handle.start()
    assert handle.running
    assert handle.next_run == datetime(2025, 3, 10, 10, 0, tzinfo=KST)

    await handle.replace("08:15")
    assert handle.running
    assert handle.run_at == "08:15"

    await handle.stop()
    assert not handle.running


@pytest.mark.asyncio
async def test_replace_rejects_bad_time_and_keeps_schedule():
    handle = SchedulerHandle(AsyncMock(), run_at="10:00", clock=lambda: NOW)
    await handle.start()
    with pytest.raises(ValueError):
        await handle.replace("25:00")
    assert handle.running
    assert handle.run_at == "10:00"
    await handle.stop()


@pytest.mark.asyncio
async def test_loop_runs_job_and_survives_failure(monkeypatch):
    job = AsyncMock(side_effect=[RuntimeError("crawl failed"), None, asyncio.CancelledError()])
    real_sleep = asyncio.sleep

    async def instant(delay):
        await real_sleep(0)

    monkeypatch.setattr("newscrawler.crawler.crawl_scheduler.asyncio.sleep", instant)
    handle = SchedulerHandle(job, run_at="10:00", clock=lambda: NOW)

    await handle.start()
    for _ in range(20):
        if not handle.running:
            break
        await real_sleep(0)

    assert job.await_count == 3
    assert not handle.running
