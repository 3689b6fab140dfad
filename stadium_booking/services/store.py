"""
SQLite-backed implementations of the storage protocols.

Nested lists (schedules, pricing lines, payments) live in JSON columns;
everything the engine filters on is a real column.  Reservation writes are
single conditional statements, so the overlap rule is enforced by the
database at the moment of the write rather than by an earlier read.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import date, datetime
from uuid import UUID

import aiosqlite

from stadium_booking import db
from stadium_booking.errors import InvalidTransition, NotFound, SlotConflict, StaleReservation
from stadium_booking.models import (
    ACTIVE_STATUSES,
    AssignedStaff,
    AvailabilityWindow,
    BookingFilters,
    CancellationRecord,
    DaySchedule,
    HistoryEntry,
    MembershipDetails,
    Payment,
    Pricing,
    Reservation,
    SpecialDate,
    SportsField,
    Stadium,
    StaffMember,
    TeamInfo,
    TimeSlot,
)

logger = logging.getLogger(__name__)

_ACTIVE_SQL = ", ".join(f"'{s}'" for s in ACTIVE_STATUSES)

# Matches any *other* active reservation overlapping [:start_time, :end_time)
# on the same field and date.  Only applies when the row being written is
# itself active.
_OVERLAP_GUARD = f"""
    NOT EXISTS (
        SELECT 1 FROM reservations AS other
        WHERE :status IN ({_ACTIVE_SQL})
          AND other.field_id = :field_id
          AND other.booking_date = :booking_date
          AND other.status IN ({_ACTIVE_SQL})
          AND other.start_time < :end_time
          AND other.end_time > :start_time
          AND other.id != :id
    )
"""


# ══════════════════════════════════════════════════════════════════════════
#                    SCHEDULE CATALOG
# ══════════════════════════════════════════════════════════════════════════


def _row_to_stadium(row: aiosqlite.Row) -> Stadium:
    return Stadium(
        id=UUID(row["id"]),
        owner_id=row["owner_id"],
        name=row["name"],
        status=row["status"],
    )


class SqliteScheduleCatalog:
    """ScheduleCatalog over the ``stadiums``/``fields``/``special_dates`` tables."""

    async def get_stadium(self, stadium_id: UUID) -> Stadium | None:
        async with db.get_db().execute(
            "SELECT * FROM stadiums WHERE id = ?", (str(stadium_id),)
        ) as cur:
            row = await cur.fetchone()
        return _row_to_stadium(row) if row else None

    async def get_field(self, field_id: UUID) -> SportsField | None:
        conn = db.get_db()
        async with conn.execute("SELECT * FROM fields WHERE id = ?", (str(field_id),)) as cur:
            row = await cur.fetchone()
        if row is None:
            return None

        async with conn.execute(
            "SELECT * FROM special_dates WHERE field_id = ? ORDER BY date", (str(field_id),)
        ) as cur:
            special_rows = await cur.fetchall()

        return SportsField(
            id=UUID(row["id"]),
            stadium_id=UUID(row["stadium_id"]),
            name=row["name"],
            status=row["status"],
            base_hourly_rate=row["base_hourly_rate"],
            currency=row["currency"],
            availability_schedule=[
                DaySchedule.model_validate(d) for d in db.from_json(row["schedule_json"])
            ],
            special_dates=[
                SpecialDate(
                    id=UUID(s["id"]),
                    date=date.fromisoformat(s["date"]),
                    reason=s["reason"],
                    time_slots=[TimeSlot.model_validate(t) for t in db.from_json(s["time_slots_json"])],
                )
                for s in special_rows
            ],
        )

    # ── Writes (catalog administration / seeding) ────────────────────

    async def save_stadium(self, stadium: Stadium) -> Stadium:
        async with db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO stadiums (id, owner_id, name, status) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id = excluded.owner_id, name = excluded.name, status = excluded.status
                """,
                (str(stadium.id), stadium.owner_id, stadium.name, stadium.status),
            )
        return stadium

    async def save_field(self, field: SportsField) -> SportsField:
        """Insert or replace a field together with its date overrides."""
        schedule = [d.model_dump(mode="json") for d in field.availability_schedule]
        async with db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO fields (id, stadium_id, name, status, base_hourly_rate, currency, schedule_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    stadium_id = excluded.stadium_id, name = excluded.name,
                    status = excluded.status, base_hourly_rate = excluded.base_hourly_rate,
                    currency = excluded.currency, schedule_json = excluded.schedule_json
                """,
                (
                    str(field.id), str(field.stadium_id), field.name, field.status,
                    field.base_hourly_rate, field.currency, db.json_or_none(schedule),
                ),
            )
            await conn.execute("DELETE FROM special_dates WHERE field_id = ?", (str(field.id),))
            await conn.executemany(
                """
                INSERT INTO special_dates (id, field_id, date, reason, time_slots_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(s.id), str(field.id), s.date.isoformat(), s.reason,
                        db.json_or_none([t.model_dump(mode="json") for t in s.time_slots]),
                    )
                    for s in field.special_dates
                ],
            )
        logger.info("Saved field %s (%d overrides)", field.id, len(field.special_dates))
        return field


# ══════════════════════════════════════════════════════════════════════════
#                    STAFF DIRECTORY
# ══════════════════════════════════════════════════════════════════════════


def _row_to_staff(row: aiosqlite.Row) -> StaffMember:
    return StaffMember(
        id=UUID(row["id"]),
        stadium_id=UUID(row["stadium_id"]),
        name=row["name"],
        role=row["role"],
        status=row["status"],
        hourly_rate=row["hourly_rate"],
        currency=row["currency"],
        availability=[AvailabilityWindow.model_validate(w) for w in db.from_json(row["availability_json"])],
    )


class SqliteStaffDirectory:
    """StaffDirectory over the ``staff`` table."""

    async def list_staff(self, stadium_id: UUID) -> list[StaffMember]:
        async with db.get_db().execute(
            "SELECT * FROM staff WHERE stadium_id = ? ORDER BY position", (str(stadium_id),)
        ) as cur:
            rows = await cur.fetchall()
        return [_row_to_staff(r) for r in rows]

    async def get_staff(self, stadium_id: UUID, staff_id: UUID) -> StaffMember | None:
        async with db.get_db().execute(
            "SELECT * FROM staff WHERE stadium_id = ? AND id = ?",
            (str(stadium_id), str(staff_id)),
        ) as cur:
            row = await cur.fetchone()
        return _row_to_staff(row) if row else None

    async def save_staff(self, member: StaffMember) -> StaffMember:
        """Insert or update a staff member; new members go to the end of the directory."""
        availability = [w.model_dump(mode="json") for w in member.availability]
        async with db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO staff (
                    id, stadium_id, name, role, status, hourly_rate, currency,
                    position, availability_json
                ) VALUES (
                    ?, ?, ?, ?, ?, ?, ?,
                    (SELECT COALESCE(MAX(position), -1) + 1 FROM staff WHERE stadium_id = ?), ?
                )
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name, role = excluded.role, status = excluded.status,
                    hourly_rate = excluded.hourly_rate, currency = excluded.currency,
                    availability_json = excluded.availability_json
                """,
                (
                    str(member.id), str(member.stadium_id), member.name, member.role,
                    member.status, member.hourly_rate, member.currency,
                    str(member.stadium_id), db.json_or_none(availability),
                ),
            )
        return member


# ══════════════════════════════════════════════════════════════════════════
#                    RESERVATIONS
# ══════════════════════════════════════════════════════════════════════════


def _reservation_params(r: Reservation) -> dict:
    """Column values for a reservation (history is stored separately)."""
    membership = r.membership_details
    cancellation = r.cancellation
    return {
        "id": str(r.id),
        "booking_number": r.booking_number,
        "user_id": r.user_id,
        "stadium_id": str(r.stadium_id),
        "field_id": str(r.field_id),
        "booking_date": r.booking_date.isoformat(),
        "start_time": r.start_time,
        "end_time": r.end_time,
        "duration_hours": r.duration_hours,
        "status": r.status,
        "payment_status": r.payment_status,
        "booking_type": r.booking_type,
        "pricing_json": r.pricing.model_dump_json(),
        "team_info_json": r.team_info.model_dump_json() if r.team_info else None,
        "special_requests_json": db.json_or_none(r.special_requests),
        "notes": r.notes,
        "assigned_staff_json": db.json_or_none([a.model_dump(mode="json") for a in r.assigned_staff]),
        "payments_json": db.json_or_none([p.model_dump(mode="json") for p in r.payments]),
        "series_id": str(membership.series_id) if membership else None,
        "membership_json": membership.model_dump_json() if membership else None,
        "membership_active": int(membership.is_active) if membership else None,
        "cancelled_at": db.iso(cancellation.cancelled_at) if cancellation else None,
        "cancelled_by": cancellation.cancelled_by if cancellation else None,
        "cancel_reason": cancellation.reason if cancellation else None,
        "refund_amount": cancellation.refund_amount if cancellation else None,
        "refund_status": cancellation.refund_status if cancellation else None,
        "version": r.version,
        "created_at": db.iso(r.created_at),
        "updated_at": db.iso(r.updated_at),
    }


def _row_to_reservation(row: aiosqlite.Row, history: list[HistoryEntry]) -> Reservation:
    membership = None
    if row["membership_json"] is not None:
        membership = MembershipDetails.model_validate_json(row["membership_json"]).model_copy(
            update={"is_active": bool(row["membership_active"])}
        )

    cancellation = None
    if row["cancelled_at"] is not None:
        cancellation = CancellationRecord(
            cancelled_at=datetime.fromisoformat(row["cancelled_at"]),
            cancelled_by=row["cancelled_by"],
            reason=row["cancel_reason"],
            refund_amount=row["refund_amount"],
            refund_status=row["refund_status"],
        )

    return Reservation(
        id=UUID(row["id"]),
        booking_number=row["booking_number"],
        user_id=row["user_id"],
        stadium_id=UUID(row["stadium_id"]),
        field_id=UUID(row["field_id"]),
        booking_date=date.fromisoformat(row["booking_date"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration_hours=row["duration_hours"],
        status=row["status"],
        payment_status=row["payment_status"],
        booking_type=row["booking_type"],
        pricing=Pricing.model_validate_json(row["pricing_json"]),
        team_info=TeamInfo.model_validate_json(row["team_info_json"]) if row["team_info_json"] else None,
        special_requests=db.from_json(row["special_requests_json"]),
        notes=row["notes"],
        assigned_staff=[AssignedStaff.model_validate(a) for a in db.from_json(row["assigned_staff_json"])],
        payments=[Payment.model_validate(p) for p in db.from_json(row["payments_json"])],
        membership_details=membership,
        cancellation=cancellation,
        history=history,
        version=row["version"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _history_params(reservation_id: UUID, entry: HistoryEntry) -> tuple:
    return (
        str(reservation_id),
        entry.action,
        entry.changed_by,
        db.json_or_none(entry.old_values),
        db.json_or_none(entry.new_values),
        entry.notes,
        db.iso(entry.timestamp),
    )


_INSERT_HISTORY = """
    INSERT INTO reservation_history
        (reservation_id, action, changed_by, old_values_json, new_values_json, notes, timestamp)
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""


def _is_slot_violation(exc: sqlite3.IntegrityError) -> bool:
    return "reservations.start_time" in str(exc)


class SqliteReservationRepository:
    """ReservationRepository over the ``reservations`` table."""

    async def _load_history(self, ids: list[str]) -> dict[str, list[HistoryEntry]]:
        history: dict[str, list[HistoryEntry]] = {i: [] for i in ids}
        if not ids:
            return history
        placeholders = ", ".join("?" for _ in ids)
        async with db.get_db().execute(
            f"SELECT * FROM reservation_history WHERE reservation_id IN ({placeholders}) ORDER BY id",
            ids,
        ) as cur:
            rows = await cur.fetchall()
        for row in rows:
            history[row["reservation_id"]].append(
                HistoryEntry(
                    action=row["action"],
                    changed_by=row["changed_by"],
                    old_values=db.from_json(row["old_values_json"]),
                    new_values=db.from_json(row["new_values_json"]),
                    notes=row["notes"],
                    timestamp=datetime.fromisoformat(row["timestamp"]),
                )
            )
        return history

    async def _hydrate(self, rows: list[aiosqlite.Row]) -> list[Reservation]:
        history = await self._load_history([r["id"] for r in rows])
        return [_row_to_reservation(r, history[r["id"]]) for r in rows]

    # ── Reads ──────────────────────────────────────────────────────────

    async def get(self, reservation_id: UUID) -> Reservation | None:
        async with db.get_db().execute(
            "SELECT * FROM reservations WHERE id = ?", (str(reservation_id),)
        ) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        return (await self._hydrate([row]))[0]

    async def find(
        self,
        field_id: UUID,
        booking_date: date,
        statuses: Iterable[str],
    ) -> list[Reservation]:
        wanted = list(statuses)
        if not wanted:
            return []
        placeholders = ", ".join("?" for _ in wanted)
        async with db.get_db().execute(
            f"""
            SELECT * FROM reservations
            WHERE field_id = ? AND booking_date = ? AND status IN ({placeholders})
            ORDER BY start_time
            """,
            [str(field_id), booking_date.isoformat(), *wanted],
        ) as cur:
            rows = await cur.fetchall()
        return await self._hydrate(list(rows))

    async def list_for_user(
        self, user_id: str, *, booking_type: str | None = None
    ) -> list[Reservation]:
        sql = "SELECT * FROM reservations WHERE user_id = ?"
        params: list = [user_id]
        if booking_type is not None:
            sql += " AND booking_type = ?"
            params.append(booking_type)
        sql += " ORDER BY booking_date, start_time"

        async with db.get_db().execute(sql, params) as cur:
            rows = await cur.fetchall()
        return await self._hydrate(list(rows))

    async def search(self, filters: BookingFilters) -> list[Reservation]:
        clauses: list[str] = []
        params: list = []
        for column, value in (
            ("user_id", filters.user_id),
            ("stadium_id", filters.stadium_id),
            ("field_id", filters.field_id),
            ("status", filters.status),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(str(value))
        if filters.date_from is not None:
            clauses.append("booking_date >= ?")
            params.append(filters.date_from.isoformat())
        if filters.date_to is not None:
            clauses.append("booking_date <= ?")
            params.append(filters.date_to.isoformat())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with db.get_db().execute(
            f"SELECT * FROM reservations {where} ORDER BY booking_date DESC, start_time DESC",
            params,
        ) as cur:
            rows = await cur.fetchall()
        return await self._hydrate(list(rows))

    # ── Writes ─────────────────────────────────────────────────────────

    async def insert(self, reservation: Reservation) -> Reservation:
        params = _reservation_params(reservation)
        columns = ", ".join(params)
        values = ", ".join(f":{name}" for name in params)

        async with db.transaction() as conn:
            try:
                cur = await conn.execute(
                    f"INSERT INTO reservations ({columns}) SELECT {values} WHERE {_OVERLAP_GUARD}",
                    params,
                )
            except sqlite3.IntegrityError as exc:
                if _is_slot_violation(exc):
                    raise SlotConflict(
                        "Time slot is already booked",
                        field_id=params["field_id"],
                        date=params["booking_date"],
                    ) from exc
                raise
            if cur.rowcount == 0:
                raise SlotConflict(
                    "Time slot is already booked",
                    field_id=params["field_id"],
                    date=params["booking_date"],
                )
            await conn.executemany(
                _INSERT_HISTORY, [_history_params(reservation.id, e) for e in reservation.history]
            )

        logger.info(
            "Inserted reservation %s on field %s %s %s-%s",
            reservation.booking_number, reservation.field_id,
            reservation.booking_date, reservation.start_time, reservation.end_time,
        )
        return reservation

    async def update(self, reservation: Reservation, *, expected_status: str) -> Reservation:
        params = _reservation_params(reservation)
        params["expected_status"] = expected_status
        assignments = ", ".join(
            f"{name} = :{name}"
            for name in _reservation_params(reservation)
            if name not in ("id", "booking_number", "created_at", "version")
        )

        async with db.transaction() as conn:
            try:
                cur = await conn.execute(
                    f"""
                    UPDATE reservations SET {assignments}, version = version + 1
                    WHERE id = :id
                      AND status = :expected_status
                      AND version = :version
                      AND {_OVERLAP_GUARD}
                    """,
                    params,
                )
            except sqlite3.IntegrityError as exc:
                if _is_slot_violation(exc):
                    raise SlotConflict("Time slot is already booked", booking_id=params["id"]) from exc
                raise

            if cur.rowcount == 0:
                async with conn.execute(
                    "SELECT status, version FROM reservations WHERE id = ?", (params["id"],)
                ) as check:
                    row = await check.fetchone()
                if row is None:
                    raise NotFound("Booking not found", booking_id=params["id"])
                if row["status"] != expected_status:
                    raise InvalidTransition(
                        f"Booking changed concurrently (now {row['status']})",
                        booking_id=params["id"],
                        status=row["status"],
                    )
                if row["version"] != reservation.version:
                    raise StaleReservation(
                        "Booking was modified by another request",
                        booking_id=params["id"],
                        version=row["version"],
                    )
                raise SlotConflict("Time slot is already booked", booking_id=params["id"])

            async with conn.execute(
                "SELECT COUNT(*) AS n FROM reservation_history WHERE reservation_id = ?",
                (params["id"],),
            ) as cur:
                stored = (await cur.fetchone())["n"]
            await conn.executemany(
                _INSERT_HISTORY,
                [_history_params(reservation.id, e) for e in reservation.history[stored:]],
            )
        return reservation.model_copy(update={"version": reservation.version + 1})

    async def cancel_series(
        self,
        series_id: UUID,
        *,
        from_date: date,
        entry: HistoryEntry,
        cancelled_at: datetime,
    ) -> list[UUID]:
        async with db.transaction() as conn:
            async with conn.execute(
                f"""
                UPDATE reservations
                SET status = 'cancelled', membership_active = 0, updated_at = ?,
                    version = version + 1
                WHERE series_id = ? AND booking_date >= ? AND status IN ({_ACTIVE_SQL})
                RETURNING id
                """,
                (db.iso(cancelled_at), str(series_id), from_date.isoformat()),
            ) as cur:
                rows = await cur.fetchall()
            ids = [UUID(r["id"]) for r in rows]
            await conn.executemany(_INSERT_HISTORY, [_history_params(i, entry) for i in ids])

        logger.info("Cancelled %d occurrences of series %s", len(ids), series_id)
        return ids
