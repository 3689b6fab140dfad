"""
Candidate dates for recurring (membership) series.

Monthly series are anchored on the first occurrence and clamp to the end
of shorter months: Jan 31 → Feb 28 → Mar 31.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from stadium_booking.config import MAX_OCCURRENCES
from stadium_booking.services.timeutil import day_of_week

_STEP_DAYS = {"weekly": 7, "biweekly": 14}


def _offset(pattern: str, steps: int) -> relativedelta | timedelta:
    if pattern == "monthly":
        return relativedelta(months=steps)
    try:
        return timedelta(days=_STEP_DAYS[pattern] * steps)
    except KeyError:
        raise ValueError(f"Unknown recurrence pattern: {pattern!r}") from None


def next_date(current: date, pattern: str) -> date:
    """The date one recurrence step after *current*."""
    return current + _offset(pattern, 1)


def first_on_or_after(start: date, weekday: int) -> date:
    """Earliest date ≥ *start* falling on *weekday* (0 = Sunday)."""
    return start + timedelta(days=(weekday - day_of_week(start)) % 7)


def generate(
    start_date: date,
    end_date: date | None,
    weekday: int,
    pattern: str,
    max_occurrences: int = MAX_OCCURRENCES,
) -> Iterator[date]:
    """
    Yield candidate dates for a series.

    Starts at the first *weekday* on or after *start_date* and stops at
    *end_date* (inclusive) or after *max_occurrences* dates, whichever
    comes first.  Without an end date the cap is what bounds the series.
    """
    first = first_on_or_after(start_date, weekday)
    for k in range(max(max_occurrences, 0)):
        candidate = first + _offset(pattern, k)
        if end_date is not None and candidate > end_date:
            return
        yield candidate
