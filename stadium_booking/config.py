"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
VERSION: str = "0.1.0"

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "stadium_booking.db"))

# ── JWT ───────────────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_HOURS: int = int(os.getenv("JWT_EXPIRY_HOURS", "24"))

# ── Locale ────────────────────────────────────────────────────────────────

# Stadiums operate on local wall-clock time; refund hours are computed here.
TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Vientiane")
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "LAK")

# ── Booking rules ─────────────────────────────────────────────────────────

# Upper bound on candidate dates for a membership series without an explicit count.
MAX_OCCURRENCES: int = int(os.getenv("MAX_OCCURRENCES", "52"))

# Whether single bookings try to auto-assign a referee when the caller is silent.
AUTO_ASSIGN_REFEREE: bool = os.getenv("AUTO_ASSIGN_REFEREE", "true").lower() == "true"

# Read-modify-write attempts when another request updates the same booking first.
WRITE_ATTEMPTS: int = int(os.getenv("WRITE_ATTEMPTS", "3"))

# ── Cancellation policy ───────────────────────────────────────────────────

FULL_REFUND_HOURS: float = float(os.getenv("FULL_REFUND_HOURS", "48"))
PARTIAL_REFUND_HOURS: float = float(os.getenv("PARTIAL_REFUND_HOURS", "24"))
PARTIAL_REFUND_RATIO: float = float(os.getenv("PARTIAL_REFUND_RATIO", "0.5"))

# Roles allowed past the 24-hour cancellation lockout and onto admin actions.
PRIVILEGED_ROLES: frozenset[str] = frozenset(
    role.strip()
    for role in os.getenv("PRIVILEGED_ROLES", "stadium_owner,admin,superadmin").split(",")
    if role.strip()
)

# Privileged role that only covers stadiums whose owner_id matches the caller.
STADIUM_OWNER_ROLE: str = "stadium_owner"
