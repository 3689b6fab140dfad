"""
Shared test fixtures.

Provides a BookingEngine and a FastAPI TestClient wired to:
  • in-memory catalog, staff directory and reservation store
  • a fixed clock (Monday 2 March 2026, 09:00 Vientiane)
  • a temporary SQLite database (via app lifespan)

The `client` fixture runs the full lifespan (DB init / shutdown) and
authenticates every request as CUSTOMER; use `act_as` to switch actor.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from stadium_booking.dependencies import get_current_actor, get_engine
from stadium_booking.main import app
from stadium_booking.models import Actor
from stadium_booking.services.booking import BookingEngine
from stadium_booking.services.registry import EngineRegistry
from tests.mocks.models import CUSTOMER, MOCK_REFEREE, FixedClock
from tests.mocks.services import InMemoryCatalog, InMemoryReservationRepository, InMemoryStaffDirectory

# ── Engine fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture()
def staff_directory() -> InMemoryStaffDirectory:
    return InMemoryStaffDirectory([MOCK_REFEREE])


@pytest.fixture()
def reservations() -> InMemoryReservationRepository:
    return InMemoryReservationRepository()


@pytest.fixture()
def engine(catalog, staff_directory, reservations, clock) -> BookingEngine:
    return BookingEngine(catalog, staff_directory, reservations, clock=clock)


# ── API fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path, catalog, staff_directory, reservations, clock):
    """
    Internal fixture that patches the DB path, engine registry and rate
    limiter so that the app lifespan runs cleanly against a temp database
    and in-memory collaborators.
    """
    # ── Temp database ─────────────────────────────────────────────────
    import stadium_booking.db as db_mod

    monkeypatch.setattr(db_mod, "DB_PATH", str(tmp_path / "test.db"))

    # ── In-memory engine ──────────────────────────────────────────────
    test_registry = EngineRegistry(catalog, staff_directory, reservations, clock=clock)
    app.dependency_overrides[get_engine] = test_registry.get_engine

    # ── Disable rate limiting in tests ────────────────────────────────
    from stadium_booking.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)

    yield test_registry

    app.dependency_overrides.clear()


@pytest.fixture()
def current_actor() -> dict[str, Actor]:
    return {"actor": CUSTOMER}


@pytest.fixture()
def act_as(current_actor):
    """Switch the actor used by `client` for subsequent requests."""
    def _switch(actor: Actor) -> None:
        current_actor["actor"] = actor

    return _switch


@pytest.fixture()
def client(_test_env: EngineRegistry, current_actor) -> TestClient:
    """
    FastAPI TestClient with in-memory services, temp DB, and auth bypassed.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    async def _mock_current_actor():
        return current_actor["actor"]

    app.dependency_overrides[get_current_actor] = _mock_current_actor

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc


@pytest.fixture()
def unauthed_client(_test_env: EngineRegistry) -> TestClient:
    """
    TestClient without auth overrides – requests are rejected unless
    a bearer token or session cookie is provided.
    """
    app.dependency_overrides.pop(get_current_actor, None)

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
