"""
Full-day slot enumeration for a field.

A date override replaces the weekday template outright; slots are never
merged across the two.  Each effective slot lands in exactly one bucket:
available, ``schedule_unavailable`` or ``booked``.
"""

from __future__ import annotations

import logging
from datetime import date

from stadium_booking.models import (
    ACTIVE_STATUSES,
    AvailabilitySummary,
    DayAvailability,
    SlotEntry,
    SportsField,
    TimeSlot,
)
from stadium_booking.services.repository import ReservationRepository
from stadium_booking.services.timeutil import day_of_week, overlaps

logger = logging.getLogger(__name__)


def effective_slots(field: SportsField, booking_date: date) -> tuple[list[TimeSlot], str]:
    """
    Return ``(slots, source)`` for a date.

    ``source`` is ``"override"`` when a special date applies, ``"template"``
    when the weekday has a schedule and ``"closed"`` otherwise.
    """
    for special in field.special_dates:
        if special.date == booking_date:
            return sorted(special.time_slots, key=lambda s: s.start_time), "override"

    weekday = day_of_week(booking_date)
    for day in field.availability_schedule:
        if day.day_of_week == weekday:
            return sorted(day.time_slots, key=lambda s: s.start_time), "template"

    return [], "closed"


def covers(slots: list[TimeSlot], start_time: str, end_time: str) -> bool:
    """
    True when ``[start_time, end_time)`` lies inside the union of the
    bookable slots.  Adjacent slots (10:00–11:00, 11:00–12:00) chain.
    """
    cursor = start_time
    for slot in sorted((s for s in slots if s.is_available), key=lambda s: s.start_time):
        if slot.start_time > cursor:
            # gap before the remaining part of the range
            if slot.start_time >= end_time:
                break
            return False
        if slot.end_time > cursor:
            cursor = slot.end_time
        if cursor >= end_time:
            return True
    return cursor >= end_time


class SlotEnumerator:
    """Builds the available/unavailable breakdown for one field and day."""

    def __init__(self, reservations: ReservationRepository) -> None:
        self._reservations = reservations

    async def get_availability(self, field: SportsField, booking_date: date) -> DayAvailability:
        slots, source = effective_slots(field, booking_date)
        weekday = day_of_week(booking_date)

        if source == "closed":
            return DayAvailability(
                field_id=field.id,
                date=booking_date,
                day_of_week=weekday,
                source=source,
                summary=AvailabilitySummary(total_slots=0, available_count=0, unavailable_count=0),
                message="No schedule available for this day",
            )

        booked = await self._reservations.find(field.id, booking_date, ACTIVE_STATUSES)

        available: list[SlotEntry] = []
        unavailable: list[SlotEntry] = []
        for slot in slots:
            rate = slot.special_rate if slot.special_rate is not None else field.base_hourly_rate
            entry = SlotEntry(
                start_time=slot.start_time,
                end_time=slot.end_time,
                rate=rate,
                currency=field.currency,
                status="available",
            )

            if not slot.is_available:
                entry.status = "schedule_unavailable"
                entry.reason = "Not available in schedule"
                unavailable.append(entry)
                continue

            conflict = next(
                (r for r in booked if overlaps(r.start_time, r.end_time, slot.start_time, slot.end_time)),
                None,
            )
            if conflict is not None:
                entry.status = "booked"
                entry.reason = f"Already booked ({conflict.status})"
                entry.booking_status = conflict.status
                unavailable.append(entry)
            else:
                available.append(entry)

        logger.debug(
            "Field %s on %s (%s): %d available, %d unavailable",
            field.id, booking_date, source, len(available), len(unavailable),
        )
        return DayAvailability(
            field_id=field.id,
            date=booking_date,
            day_of_week=weekday,
            source=source,
            available_slots=available,
            unavailable_slots=unavailable,
            summary=AvailabilitySummary(
                total_slots=len(slots),
                available_count=len(available),
                unavailable_count=len(unavailable),
            ),
        )
