"""
Interval-overlap conflict detection against active reservations.

Two ranges on the same field and date conflict when they share at least
one minute of ``[start, end)``; touching endpoints (10:00–11:00 and
11:00–12:00) do not conflict.  Only pending and confirmed reservations
occupy a slot.
"""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from stadium_booking.models import ACTIVE_STATUSES, Reservation
from stadium_booking.services.repository import ReservationRepository
from stadium_booking.services.timeutil import overlaps

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Read-only overlap checks.  Never writes."""

    def __init__(self, reservations: ReservationRepository) -> None:
        self._reservations = reservations

    async def find_conflict(
        self,
        field_id: UUID,
        booking_date: date,
        start_time: str,
        end_time: str,
        exclude_id: UUID | None = None,
    ) -> Reservation | None:
        """First active reservation overlapping the range, if any."""
        existing = await self._reservations.find(field_id, booking_date, ACTIVE_STATUSES)
        for reservation in existing:
            if reservation.id == exclude_id:
                continue
            if overlaps(reservation.start_time, reservation.end_time, start_time, end_time):
                logger.debug(
                    "Range %s-%s on %s/%s conflicts with %s",
                    start_time, end_time, field_id, booking_date, reservation.booking_number,
                )
                return reservation
        return None

    async def is_available(
        self,
        field_id: UUID,
        booking_date: date,
        start_time: str,
        end_time: str,
        exclude_id: UUID | None = None,
    ) -> bool:
        conflict = await self.find_conflict(field_id, booking_date, start_time, end_time, exclude_id)
        return conflict is None
