"""
Wall-clock helpers shared by the engine.

Times are 24-hour ``HH:mm`` strings.  Zero-padded strings order the same
way as the times they represent, so comparisons stay on strings; only
durations are converted to minutes.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Callable
from zoneinfo import ZoneInfo

from stadium_booking.config import TIMEZONE
from stadium_booking.errors import InvalidTimeRange

_TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")

LOCAL_TZ = ZoneInfo(TIMEZONE)

# Returns the current aware datetime in the stadium's timezone.
Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ)


def to_minutes(value: str) -> int:
    match = _TIME_RE.match(value or "")
    if match is None:
        raise InvalidTimeRange(f"Invalid time {value!r}, expected HH:mm", time=value)
    return int(match.group(1)) * 60 + int(match.group(2))


def validate_range(start: str, end: str) -> None:
    """Raise InvalidTimeRange unless both times parse and end > start."""
    if to_minutes(end) <= to_minutes(start):
        raise InvalidTimeRange(
            f"End time {end} must be after start time {start}",
            start_time=start,
            end_time=end,
        )


def duration_hours(start: str, end: str) -> float:
    """Fractional hours between two times (10:00–11:30 → 1.5)."""
    validate_range(start, end)
    return (to_minutes(end) - to_minutes(start)) / 60


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Half-open interval overlap: [a) and [b) share at least one minute."""
    return start_a < end_b and end_a > start_b


def day_of_week(value: date) -> int:
    """Day index with 0 = Sunday … 6 = Saturday."""
    return (value.weekday() + 1) % 7


def local_start(value: date, start: str) -> datetime:
    """Aware datetime for a booking's start in the stadium's timezone."""
    minutes = to_minutes(start)
    return datetime.combine(value, time(minutes // 60, minutes % 60), tzinfo=LOCAL_TZ)


def hours_until(value: date, start: str, now: datetime) -> float:
    return (local_start(value, start) - now).total_seconds() / 3600
