from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current moment as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def storage_now() -> datetime:
    """Current moment as naive UTC, the form timestamps are stored in."""
    return utcnow().replace(tzinfo=None)


def to_storage(value: datetime, tz: ZoneInfo) -> datetime:
    """Aware (or business-local naive) datetime -> naive UTC for the database."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime, tz: ZoneInfo) -> datetime:
    """Naive UTC from the database -> aware datetime in the business timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def local_today(tz: ZoneInfo, now: datetime) -> date:
    return now.astimezone(tz).date()


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Naive UTC [start, end) covering the local calendar day."""
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
    return to_storage(start, tz), to_storage(end, tz)
