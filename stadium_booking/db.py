"""
SQLite database layer using aiosqlite.

Stores stadiums, fields, schedule overrides, staff and reservations.
Tables are created automatically on first connect.

The whole application shares one connection, so every write goes through
``transaction()``, which holds a module-level lock for the duration of the
statement batch.  That lock is the single-writer point for reservations.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from stadium_booking.config import DB_PATH

logger = logging.getLogger(__name__)

# ── Module-level connection ───────────────────────────────────────────────

_db: aiosqlite.Connection | None = None
_write_lock: asyncio.Lock | None = None


async def init_db() -> None:
    """Open the database and create tables if they don't exist."""
    global _db, _write_lock
    db_path = Path(DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(db_path))
    _write_lock = asyncio.Lock()
    _db.row_factory = aiosqlite.Row  # dict-like rows
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA foreign_keys=ON")

    await _db.executescript(_SCHEMA)
    await _db.commit()
    logger.info("Database initialized at %s", db_path)


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("Database connection closed")


def get_db() -> aiosqlite.Connection:
    """Return the active database connection (must call init_db first)."""
    assert _db is not None, "Database not initialized: call init_db() first"
    return _db


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Serialize a batch of writes and commit it as one unit."""
    db = get_db()
    assert _write_lock is not None
    async with _write_lock:
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        await db.commit()


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS stadiums (
    id              TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    name            TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS fields (
    id              TEXT PRIMARY KEY,
    stadium_id      TEXT NOT NULL,
    name            TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'active',
    base_hourly_rate REAL NOT NULL,
    currency        TEXT NOT NULL,
    schedule_json   TEXT NOT NULL,  -- JSON array of DaySchedule
    FOREIGN KEY (stadium_id) REFERENCES stadiums(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_fields_stadium ON fields(stadium_id);

CREATE TABLE IF NOT EXISTS special_dates (
    id              TEXT PRIMARY KEY,
    field_id        TEXT NOT NULL,
    date            TEXT NOT NULL,
    reason          TEXT,
    time_slots_json TEXT NOT NULL,  -- JSON array of TimeSlot
    UNIQUE (field_id, date),
    FOREIGN KEY (field_id) REFERENCES fields(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS staff (
    id              TEXT PRIMARY KEY,
    stadium_id      TEXT NOT NULL,
    name            TEXT NOT NULL,
    role            TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'active',
    hourly_rate     REAL NOT NULL DEFAULT 0,
    currency        TEXT NOT NULL,
    position        INTEGER NOT NULL,  -- directory order, used for first-match assignment
    availability_json TEXT NOT NULL,   -- JSON array of AvailabilityWindow
    FOREIGN KEY (stadium_id) REFERENCES stadiums(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_staff_stadium ON staff(stadium_id, position);

CREATE TABLE IF NOT EXISTS reservations (
    id              TEXT PRIMARY KEY,
    booking_number  TEXT NOT NULL UNIQUE,
    user_id         TEXT NOT NULL,
    stadium_id      TEXT NOT NULL,
    field_id        TEXT NOT NULL,
    booking_date    TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    end_time        TEXT NOT NULL,
    duration_hours  REAL NOT NULL,
    status          TEXT NOT NULL,
    payment_status  TEXT NOT NULL,
    booking_type    TEXT NOT NULL,
    pricing_json    TEXT NOT NULL,
    team_info_json  TEXT,
    special_requests_json TEXT NOT NULL,
    notes           TEXT,
    assigned_staff_json TEXT NOT NULL,
    payments_json   TEXT NOT NULL,
    series_id       TEXT,
    membership_json TEXT,
    membership_active INTEGER,
    cancelled_at    TEXT,
    cancelled_by    TEXT,
    cancel_reason   TEXT,
    refund_amount   REAL,
    refund_status   TEXT,
    version         INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_res_field_date ON reservations(field_id, booking_date, status);
CREATE INDEX IF NOT EXISTS idx_res_user ON reservations(user_id, booking_type);
CREATE INDEX IF NOT EXISTS idx_res_series ON reservations(series_id);

-- Backstop for the overlap check: two active reservations can never share a start.
CREATE UNIQUE INDEX IF NOT EXISTS uq_res_active_slot
    ON reservations(field_id, booking_date, start_time)
    WHERE status IN ('pending', 'confirmed');

CREATE TABLE IF NOT EXISTS reservation_history (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    reservation_id  TEXT NOT NULL,
    action          TEXT NOT NULL,
    changed_by      TEXT NOT NULL,
    old_values_json TEXT,
    new_values_json TEXT,
    notes           TEXT,
    timestamp       TEXT NOT NULL,
    FOREIGN KEY (reservation_id) REFERENCES reservations(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_history_res ON reservation_history(reservation_id, id);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def json_or_none(value: Any) -> str | None:
    """Serialize a value to JSON or return None."""
    if value is None:
        return None
    return json.dumps(value)


def from_json(raw: str | None) -> Any:
    """Parse a JSON string back to Python data, or return None."""
    if raw is None:
        return None
    return json.loads(raw)


def iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()
