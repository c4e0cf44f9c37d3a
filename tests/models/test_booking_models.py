"""
ORM model tests for the booking persistence layer.

Tests: Resource, Event, ResourceAllocation, LedgerTransaction -- structural
constraints, derived properties, and append-only enforcement of the ledger.

These are ORM-level tests only.  Service-layer behaviour is tested elsewhere.
"""

from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from booking_kernel.db.engine import is_postgres, reset_engine
from booking_kernel.domain.values import ResourceKind, TimeWindow
from booking_kernel.exceptions import ImmutabilityViolationError
from booking_kernel.models import Event, LedgerTransaction, Resource, ResourceAllocation


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_resource(*, kind="exclusive", max_concurrent_usage=None, organization_id=None, is_global=False):
    return Resource(
        name="Stage",
        kind=kind,
        organization_id=organization_id or (None if is_global else uuid4()),
        is_global=is_global,
        max_concurrent_usage=max_concurrent_usage,
        created_at=datetime(2024, 1, 1, 12, 0),
    )


def _first_ledger_row(session, resource_id) -> LedgerTransaction:
    return session.execute(
        select(LedgerTransaction).where(LedgerTransaction.resource_id == resource_id)
    ).scalars().first()


# ---------------------------------------------------------------------------
# Ledger immutability
# ---------------------------------------------------------------------------


class TestLedgerImmutability:

    def test_update_blocked(self, session, water_bottles):
        row = _first_ledger_row(session, water_bottles.id)
        row.quantity = 1_000

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LedgerTransaction"
        session.rollback()

    def test_delete_blocked(self, session, water_bottles):
        row = _first_ledger_row(session, water_bottles.id)
        session.delete(row)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_cache_is_not_protected(self, session, water_bottles):
        resource = session.get(Resource, water_bottles.id)
        resource.cached_current_stock = 3
        session.flush()
        session.rollback()

    def test_event_delete_keeps_ledger_rows(self, kernel, session_factory, water_bottles, make_event, at):
        event = make_event(at(10), at(11))
        kernel.allocate(event.id, water_bottles.id, 5)

        with session_factory() as s:
            s.execute(
                Event.__table__.delete().where(Event.__table__.c.id == str(event.id))
            )
            s.commit()

        # binding cascades away, the ledger row stays with its link cleared
        assert kernel.list_allocations(resource_id=water_bottles.id) == []
        history = kernel.transaction_history(water_bottles.id)
        assert [t.quantity for t in history] == [100, -5]
        assert history[1].related_event_id is None
        assert kernel.current_balance(water_bottles.id) == 95


# ---------------------------------------------------------------------------
# Structural constraints
# ---------------------------------------------------------------------------


class TestConstraints:

    @pytest.mark.parametrize("cap", [None, 0, -1])
    def test_shareable_requires_positive_cap(self, session, cap):
        session.add(_make_resource(kind="shareable", max_concurrent_usage=cap))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_exclusive_rejects_cap(self, session):
        session.add(_make_resource(kind="exclusive", max_concurrent_usage=4))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_event_window_must_be_positive(self, session, org_id):
        session.add(
            Event(
                title="Backwards",
                organization_id=org_id,
                start_time=datetime(2024, 1, 2, 11, 0),
                end_time=datetime(2024, 1, 2, 10, 0),
                created_at=datetime(2024, 1, 1, 12, 0),
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_one_binding_per_event_and_resource(self, kernel, session, projector_pool, make_event, at):
        event = make_event(at(10), at(11))
        kernel.allocate(event.id, projector_pool.id, 1)

        session.add(
            ResourceAllocation(
                event_id=event.id,
                resource_id=projector_pool.id,
                quantity=2,
                allocated_at=datetime(2024, 1, 1, 12, 0),
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_binding_quantity_positive(self, session, projector_pool, make_event, at):
        event = make_event(at(10), at(11))
        session.add(
            ResourceAllocation(
                event_id=event.id,
                resource_id=projector_pool.id,
                quantity=0,
                allocated_at=datetime(2024, 1, 1, 12, 0),
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


# ---------------------------------------------------------------------------
# Derived properties
# ---------------------------------------------------------------------------


class TestDerivedProperties:

    @pytest.mark.parametrize(
        "kind, cap, expected",
        [
            ("exclusive", None, 1),
            ("shareable", 7, 7),
            ("consumable", None, None),
        ],
    )
    def test_capacity(self, kind, cap, expected):
        resource = _make_resource(kind=kind, max_concurrent_usage=cap)
        assert resource.resource_kind == ResourceKind(kind)
        assert resource.capacity == expected

    def test_availability(self):
        owner = uuid4()
        owned = _make_resource(organization_id=owner)
        shared = _make_resource(is_global=True)

        assert owned.is_available_to(owner)
        assert not owned.is_available_to(uuid4())
        assert shared.is_available_to(uuid4())

    def test_event_window(self, session, make_event, at):
        record = make_event(at(10), at(11))
        event = session.get(Event, record.id)
        assert event.window == TimeWindow(at(10), at(11))

    def test_binding_loads_event(self, kernel, session, exclusive_room, make_event, at):
        record = make_event(at(10), at(11))
        binding = kernel.allocate(record.id, exclusive_room.id, 1)

        allocation = session.get(ResourceAllocation, binding.id)
        assert allocation.event.title == record.title
        assert allocation.resource.name == "Room 101"


class TestEngineDialect:

    def test_sqlite_engine_is_not_postgres(self, db_engine):
        assert db_engine.dialect.name == "sqlite"
        assert is_postgres() is False

    def test_no_engine_is_not_postgres(self):
        reset_engine()
        assert is_postgres() is False
