from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from studyplan.dates import (
    at_time,
    day_of_week_name,
    days_between,
    ensure_timezone_aware,
    is_weekend,
    localize,
    parse_hhmm,
    same_day,
    start_of_day,
    time_of_day,
)
from studyplan.errors import InvalidTimeBlockError, StudyPlanError
from studyplan.models import TimeBlock


def test_days_between_truncates_toward_zero() -> None:
    earlier = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)
    later = datetime(2024, 3, 5, 7, 0, tzinfo=timezone.utc)

    assert days_between(later, earlier) == 0
    assert days_between(earlier, later) == 0
    assert days_between(datetime(2024, 3, 7, 9, 0, tzinfo=timezone.utc), earlier) == 3


def test_days_between_accepts_mixed_naive_and_aware_values() -> None:
    aware = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)

    assert days_between(datetime(2024, 3, 6, 8, 0), aware) == 2
    assert days_between(date(2024, 3, 10), date(2024, 3, 4)) == 6


def test_parse_hhmm_accepts_end_of_day() -> None:
    assert parse_hhmm("9:30") == (9, 30)
    assert parse_hhmm(" 24:00 ") == (24, 0)


@pytest.mark.parametrize("value", ["24:30", "12:60", "noon", "12", "-1:00"])
def test_parse_hhmm_rejects_malformed_values(value: str) -> None:
    with pytest.raises(InvalidTimeBlockError):
        parse_hhmm(value)


def test_time_block_validation_surfaces_as_pydantic_error() -> None:
    with pytest.raises(ValidationError):
        TimeBlock(start="25:00", end="26:00")
    assert issubclass(InvalidTimeBlockError, StudyPlanError)


def test_at_time_supports_midnight_end() -> None:
    day = datetime(2024, 3, 4, 15, 45)

    assert at_time(day, "09:15") == datetime(2024, 3, 4, 9, 15)
    assert at_time(day, "24:00") == datetime(2024, 3, 5, 0, 0)


def test_calendar_helpers() -> None:
    monday = datetime(2024, 3, 4, 15, 45, tzinfo=timezone.utc)

    assert day_of_week_name(monday) == "monday"
    assert not is_weekend(monday)
    assert is_weekend(date(2024, 3, 9))
    assert start_of_day(monday) == datetime(2024, 3, 4, tzinfo=timezone.utc)
    assert same_day(monday, date(2024, 3, 4))
    assert [time_of_day(hour) for hour in (0, 11, 12, 17, 18, 23)] == [
        "morning",
        "morning",
        "afternoon",
        "afternoon",
        "evening",
        "evening",
    ]


def test_ensure_timezone_aware_only_touches_naive_values() -> None:
    aware = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)

    assert ensure_timezone_aware(aware, "Mars/Olympus") is aware
    assert ensure_timezone_aware(datetime(2024, 3, 4, 8, 0), "UTC") == aware
    assert ensure_timezone_aware(datetime(2024, 3, 4, 8, 0), "Mars/Olympus").tzinfo is timezone.utc
    assert ensure_timezone_aware(date(2024, 3, 4)) == datetime(2024, 3, 4, tzinfo=timezone.utc)


def test_localize_reads_aware_values_in_the_target_zone() -> None:
    eastern = timezone(timedelta(hours=-5))
    stored = datetime(2024, 3, 5, 1, 0, tzinfo=timezone.utc)

    local = localize(stored, eastern)

    assert local == stored
    assert (local.date(), local.hour) == (date(2024, 3, 4), 20)
    assert localize(stored, None) is stored
    assert localize(datetime(2024, 3, 5, 1, 0), eastern) == datetime(2024, 3, 5, 1, 0)
