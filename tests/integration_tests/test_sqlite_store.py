"""
End-to-end tests for the booking engine against the real SQLite store.

These exercise the write paths that the in-memory doubles only imitate:
the conditional insert, conditional updates, JSON round-trips and the
bulk series cancellation.
"""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from stadium_booking import db
from stadium_booking.errors import InvalidTransition, SlotConflict, StaleReservation
from stadium_booking.models import (
    BookingFilters,
    BookingRequest,
    DiscountRequest,
    MembershipRequest,
    PaymentRequest,
)
from stadium_booking.services.booking import BookingEngine
from stadium_booking.services.store import (
    SqliteReservationRepository,
    SqliteScheduleCatalog,
    SqliteStaffDirectory,
)
from tests.mocks.models import (
    CUSTOMER,
    MOCK_FIELD,
    MOCK_REFEREE,
    MOCK_STADIUM,
    OTHER_CUSTOMER,
    OWNER,
    TOMORROW,
    FixedClock,
    make_reservation,
    make_slot,
    make_special_date,
    make_staff,
)


@pytest.fixture()
async def _init_db(tmp_path, monkeypatch):
    import stadium_booking.db as db_mod

    monkeypatch.setattr(db_mod, "DB_PATH", str(tmp_path / "store_test.db"))
    await db.init_db()
    yield
    await db.close_db()


@pytest.fixture()
async def store(_init_db):
    catalog = SqliteScheduleCatalog()
    staff = SqliteStaffDirectory()
    await catalog.save_stadium(MOCK_STADIUM)
    await catalog.save_field(MOCK_FIELD)
    await staff.save_staff(MOCK_REFEREE)
    return catalog, staff, SqliteReservationRepository()


@pytest.fixture()
def sqlite_engine(store) -> BookingEngine:
    catalog, staff, reservations = store
    return BookingEngine(catalog, staff, reservations, clock=FixedClock())


def _booking(start: str = "10:00", end: str = "12:00", booking_date: date = TOMORROW) -> BookingRequest:
    return BookingRequest(field_id=MOCK_FIELD.id, booking_date=booking_date, start_time=start, end_time=end)


# ── Catalog & staff ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_field_round_trip(store):
    catalog, _, _ = store
    override = make_special_date(TOMORROW, [make_slot("18:00", "20:00", special_rate=20000)])
    await catalog.save_field(MOCK_FIELD.model_copy(update={"special_dates": [override]}))

    field = await catalog.get_field(MOCK_FIELD.id)
    assert field.base_hourly_rate == 10000
    assert len(field.availability_schedule) == 7
    assert field.special_dates[0].date == TOMORROW
    assert field.special_dates[0].time_slots[0].special_rate == 20000
    assert (await catalog.get_stadium(MOCK_STADIUM.id)).owner_id == OWNER.id


@pytest.mark.asyncio
async def test_staff_keep_directory_order(store):
    _, staff, _ = store
    second = make_staff("Second")
    third = make_staff("Third")
    await staff.save_staff(second)
    await staff.save_staff(third)
    # re-saving does not move a member
    await staff.save_staff(MOCK_REFEREE.model_copy(update={"hourly_rate": 6000}))

    members = await staff.list_staff(MOCK_STADIUM.id)
    assert [m.name for m in members] == [MOCK_REFEREE.name, "Second", "Third"]
    assert members[0].hourly_rate == 6000
    assert (await staff.get_staff(MOCK_STADIUM.id, third.id)).name == "Third"


# ── Reservations ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_booking_round_trip(sqlite_engine, store):
    _, _, reservations = store
    booking = await sqlite_engine.create_booking(_booking(), CUSTOMER)

    stored = await reservations.get(booking.id)
    assert stored.booking_number == booking.booking_number
    assert stored.pricing.total_amount == 30000
    assert stored.assigned_staff[0].staff_id == MOCK_REFEREE.id
    assert [h.action for h in stored.history] == ["created"]


@pytest.mark.asyncio
async def test_insert_rejects_overlap(store):
    _, _, reservations = store
    await reservations.insert(make_reservation(TOMORROW, "10:00", "12:00", name="a"))
    with pytest.raises(SlotConflict):
        await reservations.insert(make_reservation(TOMORROW, "11:00", "13:00", name="b"))
    with pytest.raises(SlotConflict):
        await reservations.insert(make_reservation(TOMORROW, "10:00", "11:00", name="c"))
    # touching and inactive rows are fine
    await reservations.insert(make_reservation(TOMORROW, "12:00", "13:00", name="d"))
    await reservations.insert(make_reservation(TOMORROW, "10:00", "12:00", status="cancelled", name="e"))


@pytest.mark.asyncio
async def test_concurrent_bookings_for_same_slot(sqlite_engine, store):
    """Only one of many simultaneous requests for a slot can win."""
    _, _, reservations = store
    actors = [CUSTOMER.model_copy(update={"id": f"user-{i}"}) for i in range(8)]

    results = await asyncio.gather(
        *(sqlite_engine.create_booking(_booking(), actor) for actor in actors),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(e, SlotConflict) for e in losers)
    assert len(await reservations.find(MOCK_FIELD.id, TOMORROW, ("pending", "confirmed"))) == 1


@pytest.mark.asyncio
async def test_concurrent_overlapping_ranges(store):
    _, _, reservations = store
    candidates = [
        make_reservation(TOMORROW, f"{h:02d}:00", f"{h + 2:02d}:00", name=f"r{h}") for h in range(8, 16)
    ]
    await asyncio.gather(*(reservations.insert(r) for r in candidates), return_exceptions=True)

    active = await reservations.find(MOCK_FIELD.id, TOMORROW, ("pending", "confirmed"))
    for i, a in enumerate(active):
        for b in active[i + 1:]:
            assert not (a.start_time < b.end_time and a.end_time > b.start_time)


@pytest.mark.asyncio
async def test_update_is_conditional_on_status(sqlite_engine, store):
    _, _, reservations = store
    booking = await sqlite_engine.create_booking(_booking(), CUSTOMER)
    await sqlite_engine.confirm_booking(booking.id, OWNER)

    # a writer holding the stale pending copy loses
    stale = booking.model_copy(update={"status": "cancelled"})
    with pytest.raises(InvalidTransition):
        await reservations.update(stale, expected_status="pending")


@pytest.mark.asyncio
async def test_update_is_conditional_on_version(store):
    _, _, reservations = store
    booking = make_reservation(TOMORROW, "10:00", "12:00")
    await reservations.insert(booking)
    first = await reservations.get(booking.id)
    second = await reservations.get(booking.id)

    stored = await reservations.update(first.model_copy(update={"notes": "first"}), expected_status="confirmed")
    assert stored.version == 1
    with pytest.raises(StaleReservation):
        await reservations.update(second.model_copy(update={"notes": "second"}), expected_status="confirmed")

    current = await reservations.get(booking.id)
    assert current.notes == "first"
    assert current.version == 1


@pytest.mark.asyncio
async def test_concurrent_payments_are_all_kept(sqlite_engine, store):
    _, _, reservations = store
    booking = await sqlite_engine.create_booking(_booking(), CUSTOMER)

    await asyncio.gather(
        sqlite_engine.add_payment(booking.id, PaymentRequest(payment_method="cash", amount=15000), CUSTOMER),
        sqlite_engine.add_payment(booking.id, PaymentRequest(payment_method="qrcode", amount=15000), CUSTOMER),
    )

    stored = await reservations.get(booking.id)
    assert len(stored.payments) == 2
    assert stored.payment_status == "paid"
    assert [h.action for h in stored.history] == ["created", "updated", "updated"]
    assert stored.version == 2


@pytest.mark.asyncio
async def test_concurrent_payment_and_discount(sqlite_engine, store):
    _, _, reservations = store
    booking = await sqlite_engine.create_booking(_booking(), CUSTOMER)

    await asyncio.gather(
        sqlite_engine.add_payment(booking.id, PaymentRequest(payment_method="cash", amount=25000), CUSTOMER),
        sqlite_engine.apply_discount(booking.id, DiscountRequest(type="fixed", value=5000), OWNER),
    )

    stored = await reservations.get(booking.id)
    assert stored.pricing.total_amount == 25000
    assert len(stored.payments) == 1
    assert len(stored.history) == 3


@pytest.mark.asyncio
async def test_search_filters(sqlite_engine, store):
    _, _, reservations = store
    mine = await sqlite_engine.create_booking(_booking(), CUSTOMER)
    later = await sqlite_engine.create_booking(_booking(booking_date=date(2026, 3, 5)), CUSTOMER)
    await sqlite_engine.create_booking(_booking("14:00", "16:00"), OTHER_CUSTOMER)
    await sqlite_engine.confirm_booking(mine.id, OWNER)

    listed = await sqlite_engine.list_user_bookings(CUSTOMER)
    assert [r.id for r in listed] == [later.id, mine.id]

    confirmed = await reservations.search(BookingFilters(status="confirmed"))
    assert [r.id for r in confirmed] == [mine.id]

    ranged = await sqlite_engine.list_bookings(
        OWNER, BookingFilters(stadium_id=MOCK_STADIUM.id, date_from=TOMORROW, date_to=TOMORROW)
    )
    assert {r.start_time for r in ranged} == {"10:00", "14:00"}


@pytest.mark.asyncio
async def test_lifecycle_history(sqlite_engine, store):
    _, _, reservations = store
    booking = await sqlite_engine.create_booking(_booking(booking_date=date(2026, 3, 6)), CUSTOMER)
    await sqlite_engine.confirm_booking(booking.id, OWNER)
    await sqlite_engine.add_payment(booking.id, PaymentRequest(payment_method="cash", amount=30000), CUSTOMER)
    result = await sqlite_engine.cancel_booking(booking.id, CUSTOMER, "Rain")

    stored = await reservations.get(booking.id)
    assert [h.action for h in stored.history] == ["created", "confirmed", "updated", "cancelled"]
    assert stored.payment_status == "paid"
    assert stored.cancellation.refund_amount == result.refund_amount == 30000
    assert stored.cancellation.refund_status == "pending"


@pytest.mark.asyncio
async def test_membership_series_and_cancel(sqlite_engine, store):
    _, _, reservations = store
    await reservations.insert(
        make_reservation(date(2026, 3, 11), "18:00", "20:00", user_id=OTHER_CUSTOMER.id, name="blocker")
    )

    request = MembershipRequest(
        field_id=MOCK_FIELD.id,
        start_date=date(2026, 3, 2),
        day_of_week=3,
        start_time="18:00",
        end_time="20:00",
        total_occurrences=4,
    )
    series = await sqlite_engine.create_membership_series(request, CUSTOMER)
    assert series.created_count == 3

    listed = await sqlite_engine.list_user_memberships(CUSTOMER.id)
    assert [r.booking_date for r in listed] == [date(2026, 3, 4), date(2026, 3, 18), date(2026, 3, 25)]
    assert listed[0].membership_details.series_id == series.series_id

    cancellation = await sqlite_engine.cancel_membership_series(listed[0].id, CUSTOMER)
    assert cancellation.cancelled_count == 3

    for reservation in await sqlite_engine.list_user_memberships(CUSTOMER.id):
        assert reservation.status == "cancelled"
        assert reservation.membership_details.is_active is False
        assert reservation.history[-1].action == "cancelled"

    # the other customer's booking is untouched
    blocker = await reservations.find(MOCK_FIELD.id, date(2026, 3, 11), ("confirmed",))
    assert len(blocker) == 1
