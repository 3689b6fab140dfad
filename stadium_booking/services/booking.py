"""
Booking engine facade.

Every caller-facing operation goes through ``BookingEngine``.  The
components it wires together are plain objects taking their storage
collaborators as constructor arguments, so tests can run the whole engine
against in-memory doubles.

Single bookings start ``pending`` and are confirmed by staff; membership
occurrences are created ``confirmed``.  The repository is the authority on
overlap; the checks here only produce friendlier errors first.

Changes to an existing booking are read-modify-write cycles.  When another
request stores the same booking in between, the cycle starts over from a
fresh copy (up to ``WRITE_ATTEMPTS`` times) so neither write is lost.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from uuid import UUID, uuid4

from stadium_booking.config import AUTO_ASSIGN_REFEREE, STADIUM_OWNER_ROLE, WRITE_ATTEMPTS
from stadium_booking.errors import (
    CancellationWindowClosed,
    InvalidTransition,
    NotFound,
    PastDate,
    ScheduleClosed,
    SlotConflict,
    StaleReservation,
    Unauthorized,
)
from stadium_booking.models import (
    Actor,
    BookingFilters,
    BookingPayments,
    BookingRequest,
    CancellationDecision,
    CancellationRecord,
    CancellationResult,
    DayAvailability,
    Discount,
    DiscountRequest,
    MembershipRequest,
    MembershipSeriesResult,
    Payment,
    PaymentRequest,
    RefereeOption,
    Reservation,
    RescheduleRequest,
    SeriesCancellation,
    SlotCheck,
    SportsField,
    StaffAssignmentRequest,
)
from stadium_booking.services import pricing
from stadium_booking.services.access import is_stadium_staff
from stadium_booking.services.cancellation import CancellationPolicy
from stadium_booking.services.conflicts import ConflictDetector
from stadium_booking.services.membership import MembershipBookingEngine
from stadium_booking.services.referees import get_available_referees, pick_referee
from stadium_booking.services.repository import ReservationRepository, ScheduleCatalog, StaffDirectory
from stadium_booking.services.reservations import assign, history_entry, new_reservation
from stadium_booking.services.slots import SlotEnumerator, covers, effective_slots
from stadium_booking.services.timeutil import Clock, local_now, local_start, validate_range

logger = logging.getLogger(__name__)

_SLOT_MESSAGES = {
    "field_inactive": "Field is not available for booking",
    "past_date": "Cannot book a time in the past",
    "schedule_closed": "Field is closed on this day",
    "outside_schedule": "Requested time is outside the field's schedule",
    "booked": "Time slot is already booked",
}

Change = Callable[[Reservation], Awaitable[Reservation]]


def _details(reservation_id: UUID, **extra: object) -> dict:
    return {"booking_id": str(reservation_id), **extra}


class BookingEngine:
    def __init__(
        self,
        catalog: ScheduleCatalog,
        staff: StaffDirectory,
        reservations: ReservationRepository,
        clock: Clock = local_now,
        policy: CancellationPolicy | None = None,
    ) -> None:
        self._catalog = catalog
        self._staff = staff
        self._reservations = reservations
        self._clock = clock
        self._policy = policy or CancellationPolicy()
        self.conflicts = ConflictDetector(reservations)
        self.slots = SlotEnumerator(reservations)
        self.memberships = MembershipBookingEngine(catalog, reservations, self.conflicts, clock)

    # ── Helpers ────────────────────────────────────────────────────────

    async def _field(self, field_id: UUID) -> SportsField:
        field = await self._catalog.get_field(field_id)
        if field is None:
            raise NotFound("Field not found", field_id=str(field_id))
        return field

    async def _reservation(self, booking_id: UUID) -> Reservation:
        reservation = await self._reservations.get(booking_id)
        if reservation is None:
            raise NotFound("Booking not found", booking_id=str(booking_id))
        return reservation

    async def _require_owner(self, reservation: Reservation, actor: Actor) -> bool:
        """The booking's owner or its stadium's staff; returns whether *actor* is staff."""
        staff = await is_stadium_staff(self._catalog, actor, reservation.stadium_id)
        if reservation.user_id != actor.id and not staff:
            raise Unauthorized("Not authorized to access this booking", **_details(reservation.id))
        return staff

    async def _require_staff(self, actor: Actor, stadium_id: UUID) -> None:
        if not await is_stadium_staff(self._catalog, actor, stadium_id):
            raise Unauthorized(
                "Only stadium staff can perform this action", role=actor.role, stadium_id=str(stadium_id)
            )

    @staticmethod
    def _require_active(reservation: Reservation, action: str) -> None:
        if not reservation.is_active:
            raise InvalidTransition(
                f"Cannot {action} a {reservation.status} booking",
                **_details(reservation.id, status=reservation.status),
            )

    async def _write(self, booking_id: UUID, change: Change) -> Reservation:
        """
        Apply *change* to the stored booking and persist it.

        *change* receives a fresh copy on every attempt and runs its own
        checks against it, so a retry sees what the other writer stored.
        """
        attempt = 1
        while True:
            reservation = await self._reservation(booking_id)
            updated = await change(reservation)
            try:
                return await self._reservations.update(updated, expected_status=reservation.status)
            except StaleReservation:
                if attempt >= WRITE_ATTEMPTS:
                    raise
                logger.info(
                    "Booking %s was written concurrently, retrying (%d/%d)",
                    reservation.booking_number, attempt, WRITE_ATTEMPTS,
                )
                attempt += 1

    async def _vet(
        self,
        field: SportsField,
        booking_date: date,
        start_time: str,
        end_time: str,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> tuple[str | None, Reservation | None]:
        """
        Return ``(reason, conflict)`` for a requested range; ``reason`` is
        None when the range can be booked.
        """
        validate_range(start_time, end_time)
        if field.status != "active":
            return "field_inactive", None
        if local_start(booking_date, start_time) <= now:
            return "past_date", None

        slots, source = effective_slots(field, booking_date)
        if source == "closed" or not any(s.is_available for s in slots):
            return "schedule_closed", None
        if not covers(slots, start_time, end_time):
            return "outside_schedule", None

        conflict = await self.conflicts.find_conflict(field.id, booking_date, start_time, end_time, exclude_id)
        if conflict is not None:
            return "booked", conflict
        return None, None

    @staticmethod
    def _raise_for(reason: str, field: SportsField, booking_date: date, conflict: Reservation | None) -> None:
        message = _SLOT_MESSAGES[reason]
        details = {"field_id": str(field.id), "date": booking_date.isoformat(), "reason": reason}
        if reason == "past_date":
            raise PastDate(message, **details)
        if reason == "booked":
            raise SlotConflict(message, conflicting_booking_id=str(conflict.id) if conflict else None, **details)
        raise ScheduleClosed(message, **details)

    # ══════════════════════════════════════════════════════════════════
    #                    AVAILABILITY
    # ══════════════════════════════════════════════════════════════════

    async def check_slot(self, field_id: UUID, booking_date: date, start_time: str, end_time: str) -> SlotCheck:
        """Whether a range can be booked; non-availability is a result, not an error."""
        field = await self._field(field_id)
        reason, _ = await self._vet(field, booking_date, start_time, end_time, self._clock())
        if reason is not None:
            return SlotCheck(is_available=False, reason=reason, message=_SLOT_MESSAGES[reason])
        return SlotCheck(
            is_available=True,
            message="Time slot is available",
            pricing=pricing.quote(field, start_time, end_time),
        )

    async def get_availability(self, field_id: UUID, booking_date: date) -> DayAvailability:
        field = await self._field(field_id)
        if booking_date < self._clock().date():
            raise PastDate("Cannot check availability for past dates", date=booking_date.isoformat())
        return await self.slots.get_availability(field, booking_date)

    async def get_available_referees(
        self, field_id: UUID, booking_date: date, start_time: str, end_time: str
    ) -> list[RefereeOption]:
        field = await self._field(field_id)
        validate_range(start_time, end_time)
        staff = await self._staff.list_staff(field.stadium_id)
        return [
            RefereeOption(id=m.id, name=m.name, rate=m.hourly_rate, currency=m.currency)
            for m in get_available_referees(staff, booking_date, start_time, end_time)
        ]

    # ══════════════════════════════════════════════════════════════════
    #                    SINGLE BOOKINGS
    # ══════════════════════════════════════════════════════════════════

    async def create_booking(self, request: BookingRequest, actor: Actor) -> Reservation:
        field = await self._field(request.field_id)
        now = self._clock()
        reason, conflict = await self._vet(field, request.booking_date, request.start_time, request.end_time, now)
        if reason is not None:
            self._raise_for(reason, field, request.booking_date, conflict)

        needs_referee = AUTO_ASSIGN_REFEREE if request.needs_referee is None else request.needs_referee
        referee = None
        if needs_referee:
            staff = await self._staff.list_staff(field.stadium_id)
            referee = pick_referee(staff, request.booking_date, request.start_time, request.end_time)

        reservation = new_reservation(
            field=field,
            user_id=actor.id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            pricing=pricing.build_pricing(
                field, request.start_time, request.end_time, [referee] if referee else []
            ),
            now=now,
            booking_type=request.booking_type,
            team_info=request.team_info,
            special_requests=request.special_requests,
            notes=request.notes,
            assigned_staff=[assign(referee, now)] if referee else [],
        )
        await self._reservations.insert(reservation)
        logger.info(
            "Booking %s created by %s (referee: %s)",
            reservation.booking_number, actor.id, referee.name if referee else "none",
        )
        return reservation

    async def get_booking(self, booking_id: UUID, actor: Actor) -> Reservation:
        reservation = await self._reservation(booking_id)
        await self._require_owner(reservation, actor)
        return reservation

    async def list_user_bookings(self, actor: Actor, filters: BookingFilters | None = None) -> list[Reservation]:
        """The caller's own bookings, newest first; ``filters.user_id`` is ignored."""
        filters = (filters or BookingFilters()).model_copy(update={"user_id": actor.id})
        return await self._reservations.search(filters)

    async def list_bookings(self, actor: Actor, filters: BookingFilters | None = None) -> list[Reservation]:
        """
        Bookings across users for staff.

        Admin roles may list everything.  A stadium owner must narrow the
        listing to one stadium they own.
        """
        filters = filters or BookingFilters()
        if not actor.is_privileged:
            raise Unauthorized("Staff access required to list all bookings", role=actor.role)
        if filters.stadium_id is not None:
            await self._require_staff(actor, filters.stadium_id)
        elif actor.role == STADIUM_OWNER_ROLE:
            raise Unauthorized("Stadium owners must filter by one of their stadiums", role=actor.role)
        return await self._reservations.search(filters)

    async def cancel_booking(self, booking_id: UUID, actor: Actor, reason: str | None = None) -> CancellationResult:
        reason = reason or "Cancelled by user"
        decision: CancellationDecision | None = None

        async def change(reservation: Reservation) -> Reservation:
            nonlocal decision
            staff = await self._require_owner(reservation, actor)
            self._require_active(reservation, "cancel")

            now = self._clock()
            decision = self._policy.evaluate(reservation, now, actor.role if staff else "customer")
            if not decision.allowed:
                raise CancellationWindowClosed(
                    decision.reason or "Cancellation window has closed",
                    **_details(reservation.id, hours_until_start=round(decision.hours_until_start, 2)),
                )

            return reservation.model_copy(
                update={
                    "status": "cancelled",
                    "cancellation": CancellationRecord(
                        cancelled_at=now,
                        cancelled_by=actor.id,
                        reason=reason,
                        refund_amount=decision.refund_amount,
                        refund_status=decision.refund_status,
                    ),
                    "history": [
                        *reservation.history,
                        history_entry(
                            "cancelled",
                            actor.id,
                            now,
                            old_values={"status": reservation.status},
                            new_values={"status": "cancelled", "refundAmount": decision.refund_amount},
                            notes=reason,
                        ),
                    ],
                    "updated_at": now,
                }
            )

        stored = await self._write(booking_id, change)
        logger.info(
            "Booking %s cancelled by %s, refund %.2f (%s)",
            stored.booking_number, actor.id, decision.refund_amount, decision.refund_status,
        )
        return CancellationResult(reservation=stored, refund_amount=decision.refund_amount)

    async def confirm_booking(self, booking_id: UUID, actor: Actor) -> Reservation:
        async def change(reservation: Reservation) -> Reservation:
            await self._require_staff(actor, reservation.stadium_id)
            if reservation.status != "pending":
                raise InvalidTransition(
                    f"Only pending bookings can be confirmed (status is {reservation.status})",
                    **_details(reservation.id),
                )

            now = self._clock()
            return reservation.model_copy(
                update={
                    "status": "confirmed",
                    "history": [
                        *reservation.history,
                        history_entry(
                            "confirmed",
                            actor.id,
                            now,
                            old_values={"status": "pending"},
                            new_values={"status": "confirmed"},
                        ),
                    ],
                    "updated_at": now,
                }
            )

        return await self._write(booking_id, change)

    # ══════════════════════════════════════════════════════════════════
    #                    PAYMENTS, DISCOUNTS & STAFF
    # ══════════════════════════════════════════════════════════════════

    async def add_payment(self, booking_id: UUID, payment: PaymentRequest, actor: Actor) -> Reservation:
        payment_id = uuid4()

        async def change(reservation: Reservation) -> Reservation:
            await self._require_owner(reservation, actor)
            self._require_active(reservation, "pay for")

            now = self._clock()
            payments = [
                *reservation.payments,
                Payment(
                    id=payment_id,
                    payment_method=payment.payment_method,
                    amount=payment.amount,
                    currency=reservation.pricing.currency,
                    transaction_id=payment.transaction_id,
                    processed_at=now,
                ),
            ]
            paid = sum(p.amount for p in payments if p.status == "completed")
            payment_status = "paid" if paid >= reservation.pricing.total_amount else reservation.payment_status

            return reservation.model_copy(
                update={
                    "payments": payments,
                    "payment_status": payment_status,
                    "history": [
                        *reservation.history,
                        history_entry(
                            "updated",
                            actor.id,
                            now,
                            old_values={"paymentStatus": reservation.payment_status},
                            new_values={"paymentStatus": payment_status, "paid": paid},
                            notes=f"Payment via {payment.payment_method}",
                        ),
                    ],
                    "updated_at": now,
                }
            )

        return await self._write(booking_id, change)

    async def get_booking_payments(self, booking_id: UUID, actor: Actor) -> BookingPayments:
        reservation = await self._reservation(booking_id)
        await self._require_owner(reservation, actor)
        return BookingPayments(
            booking_id=reservation.id,
            payments=reservation.payments,
            total_paid=sum(p.amount for p in reservation.payments if p.status == "completed"),
            total_amount=reservation.pricing.total_amount,
            currency=reservation.pricing.currency,
        )

    async def apply_discount(self, booking_id: UUID, discount: DiscountRequest, actor: Actor) -> Reservation:
        async def change(reservation: Reservation) -> Reservation:
            await self._require_staff(actor, reservation.stadium_id)
            self._require_active(reservation, "discount")

            now = self._clock()
            new_pricing = pricing.add_discount(reservation.pricing, discount)
            return reservation.model_copy(
                update={
                    "pricing": new_pricing,
                    "history": [
                        *reservation.history,
                        history_entry(
                            "updated",
                            actor.id,
                            now,
                            old_values={"totalAmount": reservation.pricing.total_amount},
                            new_values={"totalAmount": new_pricing.total_amount},
                            notes=discount.description or f"{discount.type} discount",
                        ),
                    ],
                    "updated_at": now,
                }
            )

        return await self._write(booking_id, change)

    async def assign_staff(self, booking_id: UUID, request: StaffAssignmentRequest, actor: Actor) -> Reservation:
        """
        Put staff members on a booking by hand.

        Members already on the booking are left as they are.  Pricing is not
        touched; referee charges are only added by automatic matching.
        """

        async def change(reservation: Reservation) -> Reservation:
            await self._require_staff(actor, reservation.stadium_id)
            self._require_active(reservation, "staff")

            now = self._clock()
            on_booking = {a.staff_id for a in reservation.assigned_staff}
            assigned = list(reservation.assigned_staff)
            history = list(reservation.history)
            for staff_id in request.staff_ids:
                if staff_id in on_booking:
                    continue
                member = await self._staff.get_staff(reservation.stadium_id, staff_id)
                if member is None:
                    raise NotFound("Staff member not found", staff_id=str(staff_id))
                if member.status != "active":
                    raise InvalidTransition(
                        f"Staff member {member.name} is {member.status}",
                        **_details(reservation.id, staff_id=str(staff_id)),
                    )
                assigned.append(assign(member, now))
                on_booking.add(staff_id)
                history.append(
                    history_entry(
                        "updated",
                        actor.id,
                        now,
                        new_values={"assignedStaff": member.name, "role": member.role},
                        notes=f"Staff assigned: {member.name} as {member.role}",
                    )
                )

            return reservation.model_copy(
                update={"assigned_staff": assigned, "history": history, "updated_at": now}
            )

        return await self._write(booking_id, change)

    # ══════════════════════════════════════════════════════════════════
    #                    RESCHEDULING
    # ══════════════════════════════════════════════════════════════════

    async def reschedule_booking(self, booking_id: UUID, request: RescheduleRequest, actor: Actor) -> Reservation:
        """
        Move a booking to another date or time on the same field.

        Referees are re-matched for the new range and the pricing is
        rebuilt; discounts already granted carry over as fixed amounts.
        """

        async def change(reservation: Reservation) -> Reservation:
            await self._require_owner(reservation, actor)
            self._require_active(reservation, "reschedule")

            field = await self._field(reservation.field_id)
            now = self._clock()
            reason, conflict = await self._vet(
                field, request.booking_date, request.start_time, request.end_time, now, exclude_id=reservation.id
            )
            if reason is not None:
                self._raise_for(reason, field, request.booking_date, conflict)

            referee = None
            if reservation.assigned_staff:
                staff = await self._staff.list_staff(field.stadium_id)
                referee = pick_referee(staff, request.booking_date, request.start_time, request.end_time)

            carried = [
                DiscountRequest(type="fixed", value=d.amount, description=d.description)
                for d in reservation.pricing.discounts
            ]
            new_pricing = pricing.build_pricing(
                field, request.start_time, request.end_time, [referee] if referee else [], carried
            )
            # keep the original discount types on the snapshot
            new_pricing.discounts = [
                Discount(type=old.type, amount=new.amount, description=old.description)
                for old, new in zip(reservation.pricing.discounts, new_pricing.discounts)
            ]

            return reservation.model_copy(
                update={
                    "booking_date": request.booking_date,
                    "start_time": request.start_time,
                    "end_time": request.end_time,
                    "duration_hours": new_pricing.duration_hours,
                    "pricing": new_pricing,
                    "assigned_staff": [assign(referee, now)] if referee else [],
                    "history": [
                        *reservation.history,
                        history_entry(
                            "updated",
                            actor.id,
                            now,
                            old_values={
                                "bookingDate": reservation.booking_date.isoformat(),
                                "startTime": reservation.start_time,
                                "endTime": reservation.end_time,
                            },
                            new_values={
                                "bookingDate": request.booking_date.isoformat(),
                                "startTime": request.start_time,
                                "endTime": request.end_time,
                            },
                            notes="Rescheduled",
                        ),
                    ],
                    "updated_at": now,
                }
            )

        return await self._write(booking_id, change)

    # ══════════════════════════════════════════════════════════════════
    #                    MEMBERSHIPS
    # ══════════════════════════════════════════════════════════════════

    async def create_membership_series(self, request: MembershipRequest, actor: Actor) -> MembershipSeriesResult:
        return await self.memberships.create_series(request, actor)

    async def cancel_membership_series(self, booking_id: UUID, actor: Actor) -> SeriesCancellation:
        return await self.memberships.cancel_series(booking_id, actor)

    async def list_user_memberships(self, user_id: str) -> list[Reservation]:
        return await self.memberships.list_user_memberships(user_id)
