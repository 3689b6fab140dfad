"""
Booking endpoints – single reservations and their lifecycle.
"""

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from stadium_booking.dependencies import CurrentActor, Engine, PaginationParams, paginate
from stadium_booking.models import (
    BookingFilters,
    BookingPayments,
    BookingRequest,
    CancellationResult,
    CancelRequest,
    DiscountRequest,
    PaymentRequest,
    Reservation,
    ReservationList,
    ReservationStatus,
    RescheduleRequest,
    StaffAssignmentRequest,
)
from stadium_booking.rate_limit import DEFAULT, WRITE, limiter

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=Reservation,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBooking",
    summary="Book a time range on a field",
)
@limiter.limit(WRITE)
async def create_booking(
    request: Request, body: BookingRequest, actor: CurrentActor, engine: Engine
) -> Reservation:
    return await engine.create_booking(body, actor)


@router.get(
    "",
    response_model=ReservationList,
    operation_id="listMyBookings",
    summary="List the caller's bookings",
)
@limiter.limit(DEFAULT)
async def list_my_bookings(
    request: Request,
    actor: CurrentActor,
    engine: Engine,
    booking_status: ReservationStatus | None = Query(None, alias="status", description="Only this status"),
    field_id: UUID | None = Query(None, description="Only this field"),
    date_from: dt.date | None = Query(None, description="Earliest booking date (YYYY-MM-DD)"),
    date_to: dt.date | None = Query(None, description="Latest booking date (YYYY-MM-DD)"),
    pagination: PaginationParams = Depends(PaginationParams),
) -> ReservationList:
    filters = BookingFilters(status=booking_status, field_id=field_id, date_from=date_from, date_to=date_to)
    items = await engine.list_user_bookings(actor, filters)
    return paginate(items, pagination, ReservationList)


@router.get(
    "/all",
    response_model=ReservationList,
    operation_id="listBookings",
    summary="List bookings across users (stadium staff only)",
)
@limiter.limit(DEFAULT)
async def list_bookings(
    request: Request,
    actor: CurrentActor,
    engine: Engine,
    stadium_id: UUID | None = Query(None, description="Only this stadium; required for stadium owners"),
    field_id: UUID | None = Query(None, description="Only this field"),
    user_id: str | None = Query(None, description="Only this customer"),
    booking_status: ReservationStatus | None = Query(None, alias="status", description="Only this status"),
    date_from: dt.date | None = Query(None, description="Earliest booking date (YYYY-MM-DD)"),
    date_to: dt.date | None = Query(None, description="Latest booking date (YYYY-MM-DD)"),
    pagination: PaginationParams = Depends(PaginationParams),
) -> ReservationList:
    filters = BookingFilters(
        user_id=user_id,
        stadium_id=stadium_id,
        field_id=field_id,
        status=booking_status,
        date_from=date_from,
        date_to=date_to,
    )
    items = await engine.list_bookings(actor, filters)
    return paginate(items, pagination, ReservationList)


@router.get(
    "/{booking_id}",
    response_model=Reservation,
    operation_id="getBooking",
    summary="Get a booking",
)
@limiter.limit(DEFAULT)
async def get_booking(request: Request, booking_id: UUID, actor: CurrentActor, engine: Engine) -> Reservation:
    return await engine.get_booking(booking_id, actor)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResult,
    operation_id="cancelBooking",
    summary="Cancel a booking and compute its refund",
)
@limiter.limit(WRITE)
async def cancel_booking(
    request: Request,
    booking_id: UUID,
    actor: CurrentActor,
    engine: Engine,
    body: CancelRequest | None = None,
) -> CancellationResult:
    reason = body.reason if body else None
    return await engine.cancel_booking(booking_id, actor, reason)


@router.post(
    "/{booking_id}/confirm",
    response_model=Reservation,
    operation_id="confirmBooking",
    summary="Confirm a pending booking (staff only)",
)
@limiter.limit(WRITE)
async def confirm_booking(request: Request, booking_id: UUID, actor: CurrentActor, engine: Engine) -> Reservation:
    return await engine.confirm_booking(booking_id, actor)


@router.post(
    "/{booking_id}/payments",
    response_model=Reservation,
    operation_id="addPayment",
    summary="Record a payment against a booking",
)
@limiter.limit(WRITE)
async def add_payment(
    request: Request, booking_id: UUID, body: PaymentRequest, actor: CurrentActor, engine: Engine
) -> Reservation:
    return await engine.add_payment(booking_id, body, actor)


@router.get(
    "/{booking_id}/payments",
    response_model=BookingPayments,
    operation_id="getBookingPayments",
    summary="Payments recorded against a booking and the amount paid so far",
)
@limiter.limit(DEFAULT)
async def get_booking_payments(
    request: Request, booking_id: UUID, actor: CurrentActor, engine: Engine
) -> BookingPayments:
    return await engine.get_booking_payments(booking_id, actor)


@router.post(
    "/{booking_id}/discounts",
    response_model=Reservation,
    operation_id="applyDiscount",
    summary="Apply a discount to a booking (staff only)",
)
@limiter.limit(WRITE)
async def apply_discount(
    request: Request, booking_id: UUID, body: DiscountRequest, actor: CurrentActor, engine: Engine
) -> Reservation:
    return await engine.apply_discount(booking_id, body, actor)


@router.post(
    "/{booking_id}/reschedule",
    response_model=Reservation,
    operation_id="rescheduleBooking",
    summary="Move a booking to another date or time",
)
@limiter.limit(WRITE)
async def reschedule_booking(
    request: Request, booking_id: UUID, body: RescheduleRequest, actor: CurrentActor, engine: Engine
) -> Reservation:
    return await engine.reschedule_booking(booking_id, body, actor)


@router.post(
    "/{booking_id}/staff",
    response_model=Reservation,
    operation_id="assignStaff",
    summary="Put staff members on a booking (staff only)",
)
@limiter.limit(WRITE)
async def assign_staff(
    request: Request, booking_id: UUID, body: StaffAssignmentRequest, actor: CurrentActor, engine: Engine
) -> Reservation:
    return await engine.assign_staff(booking_id, body, actor)
