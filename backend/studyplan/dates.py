"""Date arithmetic shared by every planner component.

All day counts go through :func:`days_between` so retention, productivity,
prediction and scheduling agree on rounding. Naive datetimes are interpreted
in the planner timezone (``STUDYPLAN_TIMEZONE``) whenever they have to be
compared with timezone-aware values.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional, Tuple, Union

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTimeBlockError

Clock = Callable[[], datetime]
DateLike = Union[date, datetime]

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MORNING_END_HOUR = 12
AFTERNOON_END_HOUR = 18


def resolve_timezone(name: Optional[str]) -> timezone | ZoneInfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        return timezone.utc


def system_clock() -> datetime:
    """Default clock: timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns ``moment`` (handy for reproducible runs)."""
    return lambda: moment


def ensure_timezone_aware(value: DateLike, tz: Optional[str] = None) -> datetime:
    """Return ``value`` as an aware datetime, localising naive values to ``tz``."""
    moment = as_datetime(value)
    if moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=resolve_timezone(tz))


def localize(value: DateLike, tz: Optional[tzinfo]) -> datetime:
    """Express ``value`` in ``tz`` before reading its calendar day or hour.

    Naive values are already planner-local wall-clock times and pass through
    unchanged, as does everything when ``tz`` is ``None``.
    """
    moment = as_datetime(value)
    if tz is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(tz)


def as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _align(later: datetime, earlier: datetime) -> Tuple[datetime, datetime]:
    # Mixed naive/aware inputs: naive side borrows the other side's tzinfo.
    if later.tzinfo is None and earlier.tzinfo is not None:
        later = later.replace(tzinfo=earlier.tzinfo)
    elif earlier.tzinfo is None and later.tzinfo is not None:
        earlier = earlier.replace(tzinfo=later.tzinfo)
    return later, earlier


def days_between(later: DateLike, earlier: DateLike) -> int:
    """Whole days from ``earlier`` to ``later``, truncated toward zero."""
    end, start = _align(as_datetime(later), as_datetime(earlier))
    return math.trunc((end - start) / timedelta(days=1))


def hours_between(later: DateLike, earlier: DateLike) -> float:
    end, start = _align(as_datetime(later), as_datetime(earlier))
    return (end - start) / timedelta(hours=1)


def add_days(value: DateLike, days: int) -> datetime:
    return as_datetime(value) + timedelta(days=days)


def add_minutes(value: DateLike, minutes: float) -> datetime:
    return as_datetime(value) + timedelta(minutes=minutes)


def start_of_day(value: DateLike) -> datetime:
    moment = as_datetime(value)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def same_day(left: DateLike, right: DateLike) -> bool:
    return as_datetime(left).date() == as_datetime(right).date()


def day_key(value: DateLike) -> str:
    return as_datetime(value).strftime("%Y-%m-%d")


def day_of_week_name(value: DateLike) -> str:
    return DAY_NAMES[as_datetime(value).weekday()]


def is_weekend(value: DateLike) -> bool:
    return as_datetime(value).weekday() >= 5


def time_of_day(hour: int) -> str:
    if hour < MORNING_END_HOUR:
        return "morning"
    if hour < AFTERNOON_END_HOUR:
        return "afternoon"
    return "evening"


def parse_hhmm(value: str) -> Tuple[int, int]:
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError) as exc:
        raise InvalidTimeBlockError(f"Expected HH:MM time, got {value!r}.") from exc
    if not (0 <= hour <= 24 and 0 <= minute < 60) or (hour == 24 and minute != 0):
        raise InvalidTimeBlockError(f"Time {value!r} is outside 00:00-24:00.")
    return hour, minute


def at_time(day: DateLike, hhmm: str) -> datetime:
    """Combine the calendar day of ``day`` with an ``HH:MM`` wall-clock time."""
    hour, minute = parse_hhmm(hhmm)
    return start_of_day(day) + timedelta(hours=hour, minutes=minute)


__all__ = [
    "Clock",
    "DAY_NAMES",
    "add_days",
    "add_minutes",
    "as_datetime",
    "at_time",
    "day_key",
    "day_of_week_name",
    "days_between",
    "ensure_timezone_aware",
    "fixed_clock",
    "hours_between",
    "is_weekend",
    "localize",
    "parse_hhmm",
    "resolve_timezone",
    "same_day",
    "start_of_day",
    "system_clock",
    "time_of_day",
]
