"""KST(UTC+9) 기준 날짜 계산 헬퍼.

크롤 실행의 논리 날짜는 서버 로컬 타임존과 무관하게 항상 KST로 계산한다.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

KST = timezone(timedelta(hours=9))


def today_kst(now: datetime | None = None) -> date:
    """KST 기준 오늘 날짜를 반환한다."""
    current = now or datetime.now(tz=timezone.utc)
    return current.astimezone(KST).date()


def kst_midnight(day: date) -> datetime:
    """해당 날짜의 KST 자정(aware datetime)을 반환한다."""
    return datetime.combine(day, time.min, tzinfo=KST)


def kst_day_range(day: date) -> tuple[datetime, datetime]:
    """해당 KST 날짜의 [시작, 다음날 시작) 구간을 반환한다."""
    start = kst_midnight(day)
    return start, start + timedelta(days=1)


def ensure_aware(value: datetime) -> datetime:
    """naive datetime은 UTC로 간주하여 tz 정보를 붙인다."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
