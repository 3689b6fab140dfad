"""
Membership (recurring) booking series.

A series is materialized as independent reservations, one per candidate
date.  Creation is best-effort: a date that is already taken, or whose
start time has already passed, is recorded as skipped and the rest of the
series goes ahead.  Dates that were created before a lookup or storage
failure stay created.
"""

from __future__ import annotations

import logging
from datetime import date
from uuid import NAMESPACE_URL, UUID, uuid5

from stadium_booking.config import MAX_OCCURRENCES
from stadium_booking.errors import NotFound, PastDate, ScheduleClosed, SlotConflict, Unauthorized
from stadium_booking.models import (
    Actor,
    MembershipDetails,
    MembershipRequest,
    MembershipSeriesResult,
    OccurrenceCreated,
    OccurrenceOutcome,
    OccurrenceSkipped,
    Reservation,
    SeriesCancellation,
)
from stadium_booking.services import pricing, recurrence
from stadium_booking.services.access import is_stadium_staff
from stadium_booking.services.conflicts import ConflictDetector
from stadium_booking.services.repository import ReservationRepository, ScheduleCatalog
from stadium_booking.services.reservations import history_entry, new_reservation
from stadium_booking.services.timeutil import Clock, local_now, local_start, validate_range

logger = logging.getLogger(__name__)

_SERIES_NS = uuid5(NAMESPACE_URL, "stadium-booking/membership-series")


def series_key(user_id: str, field_id: UUID, start_date: date) -> UUID:
    """Series identity: one user's series on one field starting on one date."""
    return uuid5(_SERIES_NS, f"{user_id}:{field_id}:{start_date.isoformat()}")


class MembershipBookingEngine:
    def __init__(
        self,
        catalog: ScheduleCatalog,
        reservations: ReservationRepository,
        conflicts: ConflictDetector,
        clock: Clock = local_now,
    ) -> None:
        self._catalog = catalog
        self._reservations = reservations
        self._conflicts = conflicts
        self._clock = clock

    # ── Creation ───────────────────────────────────────────────────────

    async def create_series(self, request: MembershipRequest, actor: Actor) -> MembershipSeriesResult:
        field = await self._catalog.get_field(request.field_id)
        if field is None:
            raise NotFound("Field not found", field_id=str(request.field_id))
        if field.status != "active":
            raise ScheduleClosed("Field is not available", field_id=str(field.id), status=field.status)
        validate_range(request.start_time, request.end_time)

        now = self._clock()
        if request.start_date < now.date():
            raise PastDate("Membership cannot start in the past", start_date=request.start_date.isoformat())

        series_id = series_key(actor.id, field.id, request.start_date)
        limit = request.total_occurrences or MAX_OCCURRENCES

        outcomes: list[OccurrenceOutcome] = []
        created = 0
        for candidate in recurrence.generate(
            request.start_date,
            request.end_date,
            request.day_of_week,
            request.recurrence_pattern,
            max_occurrences=limit,
        ):
            if local_start(candidate, request.start_time) <= now:
                outcomes.append(OccurrenceSkipped(booking_date=candidate, reason="past_date"))
                continue

            conflict = await self._conflicts.find_conflict(
                field.id, candidate, request.start_time, request.end_time
            )
            if conflict is not None:
                outcomes.append(
                    OccurrenceSkipped(booking_date=candidate, reason="booked", conflicting_booking_id=conflict.id)
                )
                continue

            reservation = new_reservation(
                field=field,
                user_id=actor.id,
                booking_date=candidate,
                start_time=request.start_time,
                end_time=request.end_time,
                pricing=pricing.build_pricing(field, request.start_time, request.end_time),
                now=now,
                status="confirmed",
                booking_type="membership",
                team_info=request.team_info,
                special_requests=request.special_requests,
                membership_details=MembershipDetails(
                    series_id=series_id,
                    membership_start_date=request.start_date,
                    membership_end_date=request.end_date,
                    recurrence_pattern=request.recurrence_pattern,
                    recurrence_day_of_week=request.day_of_week,
                    next_booking_date=recurrence.next_date(candidate, request.recurrence_pattern),
                    total_occurrences=request.total_occurrences,
                    completed_occurrences=created + 1,
                ),
            )
            try:
                await self._reservations.insert(reservation)
            except SlotConflict:
                # Lost a race with another writer after the pre-check.
                outcomes.append(OccurrenceSkipped(booking_date=candidate, reason="booked"))
                continue

            created += 1
            outcomes.append(OccurrenceCreated(booking_date=candidate, reservation=reservation))

        result = MembershipSeriesResult(series_id=series_id, outcomes=outcomes)
        logger.info(
            "Membership series %s for user %s: %d created, %d skipped",
            series_id, actor.id, result.created_count, result.skipped_count,
        )
        return result

    # ── Cancellation ───────────────────────────────────────────────────

    async def cancel_series(self, booking_id: UUID, actor: Actor) -> SeriesCancellation:
        """Cancel every upcoming active occurrence of the series *booking_id* belongs to."""
        reservation = await self._reservations.get(booking_id)
        if reservation is None or reservation.membership_details is None:
            raise NotFound("Membership booking not found", booking_id=str(booking_id))
        if reservation.user_id != actor.id and not await is_stadium_staff(
            self._catalog, actor, reservation.stadium_id
        ):
            raise Unauthorized("Not authorized to cancel this membership", booking_id=str(booking_id))

        now = self._clock()
        series_id = reservation.membership_details.series_id
        cancelled = await self._reservations.cancel_series(
            series_id,
            from_date=now.date(),
            entry=history_entry(
                "cancelled",
                actor.id,
                now,
                new_values={"status": "cancelled", "isActive": False},
                notes="Membership series cancelled",
            ),
            cancelled_at=now,
        )
        return SeriesCancellation(series_id=series_id, cancelled_count=len(cancelled), cancelled_ids=cancelled)

    async def list_user_memberships(self, user_id: str) -> list[Reservation]:
        return await self._reservations.list_for_user(user_id, booking_type="membership")
