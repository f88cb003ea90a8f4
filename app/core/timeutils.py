# app/core/timeutils.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

from app.core.config import settings

LOCAL_TZ = ZoneInfo(settings.CLINIC_TIMEZONE)

MINUTES_PER_DAY = 24 * 60

# 0=Sun .. 6=Sat, the weekday numbering used on the wire
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD")


def parse_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        hours, minutes = value.strip().split(":")[:2]
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")


def format_date(d: date) -> str:
    return d.isoformat()


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


def time_to_minutes(t: time | str) -> int:
    t = parse_time(t)
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def day_of_week(d: date) -> int:
    """Sunday-based weekday (0=Sunday .. 6=Saturday)."""
    return (d.weekday() + 1) % 7


def date_range(start: date, end: date) -> Iterator[date]:
    """Every calendar date from start to end, both inclusive."""
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def combine(d: date, t: time) -> datetime:
    """Naive clinic-local wall clock datetime."""
    return datetime.combine(d, t)


def today() -> date:
    return datetime.now(tz=LOCAL_TZ).date()
