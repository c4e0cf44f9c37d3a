"""
Pytest fixtures for the booking kernel test suite.

Provides:
- A file-backed SQLite database per test (tmp_path), tables created and
  ledger immutability listeners registered
- A deterministic clock and a BookingKernel wired to both
- Factories for resources and events
- Structured log capture

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  Tests marked ``postgres`` run
  against it and are skipped when it is not set.
"""

import json
import logging
import os
from datetime import datetime, timedelta
from io import StringIO
from uuid import uuid4

import pytest

from booking_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from booking_kernel.db.immutability import register_immutability_listeners
from booking_kernel.domain.clock import DeterministicClock
from booking_kernel.domain.values import ResourceKind
from booking_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from booking_kernel.services import BookingKernel

# Test actor ID for all test operations
TEST_ACTOR_ID = "actor-test"

# Day after the clock's default "now" (2024-01-01 12:00 UTC); events start here
EVENT_DAY = datetime(2024, 1, 2)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for resource locks"
    )


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    """Naive UTC instant on EVENT_DAY (+``day`` days)."""
    return EVENT_DAY + timedelta(days=day, hours=hour, minutes=minute)


@pytest.fixture(name="at")
def at_fixture():
    """The ``at(hour, minute=0, day=0)`` helper, for test modules."""
    return at


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture booking_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, kernel):
            kernel.allocate(...)
            logs = captured_logs()
            assert any(r["message"] == "allocation_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("booking_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """SQLite engine on a fresh file, tables created, listeners registered."""
    engine = init_engine_from_url(
        f"sqlite:///{tmp_path / 'booking.db'}",
        pool_size=10,
        max_overflow=10,
        pool_timeout=30,
    )
    create_tables()
    register_immutability_listeners()
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A plain session for direct reads in assertions."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def kernel(session_factory, clock):
    return BookingKernel(session_factory, clock=clock, lock_timeout=10.0)


@pytest.fixture
def org_id():
    return uuid4()


@pytest.fixture
def other_org_id():
    return uuid4()


@pytest.fixture
def make_event(kernel, org_id):
    """Factory: make_event(start, end, organization_id=None, title=None)."""

    def _make(start: datetime, end: datetime, organization_id=None, title=None):
        return kernel.register_event(
            title or f"Event {start:%H:%M}-{end:%H:%M}",
            organization_id or org_id,
            start,
            end,
        )

    return _make


@pytest.fixture
def exclusive_room(kernel, org_id):
    return kernel.register_resource("Room 101", ResourceKind.EXCLUSIVE, organization_id=org_id)


@pytest.fixture
def projector_pool(kernel, org_id):
    """Shareable resource with max_concurrent_usage=10."""
    return kernel.register_resource(
        "Projectors",
        ResourceKind.SHAREABLE,
        organization_id=org_id,
        max_concurrent_usage=10,
    )


@pytest.fixture
def water_bottles(kernel, org_id):
    """Consumable with an opening stock of 100."""
    return kernel.register_resource(
        "Water bottles",
        ResourceKind.CONSUMABLE,
        organization_id=org_id,
        initial_stock=100,
        actor_id=TEST_ACTOR_ID,
    )


# =============================================================================
# PostgreSQL (optional)
# =============================================================================


@pytest.fixture
def pg_kernel():
    """BookingKernel against $DATABASE_URL; skipped when it is not set."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    init_engine_from_url(url, pool_size=20, max_overflow=10, pool_timeout=10)
    if not is_postgres():
        reset_engine()
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield BookingKernel(get_session_factory(), clock=DeterministicClock(), lock_timeout=10.0)
    drop_tables()
    reset_engine()
