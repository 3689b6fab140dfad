"""Referee matching against staff availability windows."""

from __future__ import annotations

import logging
from datetime import date

from stadium_booking.models import StaffMember
from stadium_booking.services.timeutil import day_of_week

logger = logging.getLogger(__name__)


def is_free(member: StaffMember, booking_date: date, start_time: str, end_time: str) -> bool:
    """Some window on the date's weekday fully contains the range."""
    weekday = day_of_week(booking_date)
    return any(
        window.is_available
        and window.day_of_week == weekday
        and window.start_time <= start_time
        and window.end_time >= end_time
        for window in member.availability
    )


def get_available_referees(
    staff: list[StaffMember],
    booking_date: date,
    start_time: str,
    end_time: str,
) -> list[StaffMember]:
    """Active referees free for the whole range, in directory order."""
    return [
        member
        for member in staff
        if member.role == "referee"
        and member.status == "active"
        and is_free(member, booking_date, start_time, end_time)
    ]


def pick_referee(
    staff: list[StaffMember],
    booking_date: date,
    start_time: str,
    end_time: str,
) -> StaffMember | None:
    # First match wins; no load balancing across referees.
    matches = get_available_referees(staff, booking_date, start_time, end_time)
    if not matches:
        logger.info("No referee free on %s %s-%s", booking_date, start_time, end_time)
        return None
    return matches[0]
