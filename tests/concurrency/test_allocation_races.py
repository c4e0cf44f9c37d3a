"""
Race tests for admission under concurrent requests on ONE resource.

All threads share one BookingKernel (one lock coordinator) and start together
behind a Barrier, so every admission decision races the others.

Run with: pytest tests/concurrency/test_allocation_races.py -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Barrier

import pytest

from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import (
    AllocationAlreadyExistsError,
    ConcurrentUsageExceededError,
    ExclusiveOverlapError,
    InsufficientInventoryError,
)

pytestmark = pytest.mark.slow_locks


def _race(num_threads, work):
    """Run ``work(i)`` on ``num_threads`` threads released together.

    Returns (results, errors) where errors maps exception type -> count.
    """
    barrier = Barrier(num_threads, timeout=30)

    def run(i):
        barrier.wait()
        return work(i)

    results = []
    errors: dict[type, int] = {}
    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        futures = [executor.submit(run, i) for i in range(num_threads)]
        for future in as_completed(futures):
            try:
                results.append(future.result())
            except Exception as exc:  # collected for assertions
                errors[type(exc)] = errors.get(type(exc), 0) + 1
    return results, errors


class TestExclusiveRace:

    def test_overlapping_events_exactly_one_wins(self, kernel, exclusive_room, make_event, at):
        num_threads = 10
        events = [make_event(at(10, i), at(11, i)) for i in range(num_threads)]

        results, errors = _race(
            num_threads,
            lambda i: kernel.allocate(events[i].id, exclusive_room.id, 1),
        )

        assert len(results) == 1
        assert errors == {ExclusiveOverlapError: num_threads - 1}
        assert len(kernel.list_allocations(resource_id=exclusive_room.id)) == 1

    def test_disjoint_events_all_win(self, kernel, exclusive_room, make_event, at):
        num_threads = 8
        events = [make_event(at(i), at(i + 1)) for i in range(num_threads)]

        results, errors = _race(
            num_threads,
            lambda i: kernel.allocate(events[i].id, exclusive_room.id, 1),
        )

        assert len(results) == num_threads
        assert errors == {}


class TestShareableRace:

    def test_cap_never_exceeded(self, kernel, org_id, make_event, at):
        cap = 5
        num_threads = 12
        chairs = kernel.register_resource(
            "Folding chairs", ResourceKind.SHAREABLE, organization_id=org_id, max_concurrent_usage=cap
        )
        events = [make_event(at(9), at(12)) for _ in range(num_threads)]

        results, errors = _race(
            num_threads,
            lambda i: kernel.allocate(events[i].id, chairs.id, 1),
        )

        assert len(results) == cap
        assert errors == {ConcurrentUsageExceededError: num_threads - cap}
        bound = kernel.list_allocations(resource_id=chairs.id)
        assert sum(a.quantity for a in bound) == cap

    def test_concurrent_updates_respect_cap(self, kernel, projector_pool, make_event, at):
        num_threads = 6
        bindings = [
            kernel.allocate(make_event(at(9), at(12)).id, projector_pool.id, 1)
            for _ in range(num_threads)
        ]

        # each wants 4: only one more +3 fits in the remaining 4 units
        results, errors = _race(
            num_threads,
            lambda i: kernel.update_quantity(bindings[i].id, 4),
        )

        assert len(results) == 1
        assert errors == {ConcurrentUsageExceededError: num_threads - 1}
        total = sum(a.quantity for a in kernel.list_allocations(resource_id=projector_pool.id))
        assert total == 9


class TestConsumableRace:

    def test_no_oversubscription(self, kernel, water_bottles, make_event, at):
        num_threads = 10
        events = [make_event(at(10), at(12)) for _ in range(num_threads)]

        results, errors = _race(
            num_threads,
            lambda i: kernel.allocate(events[i].id, water_bottles.id, 15),
        )

        # 100 // 15 == 6
        assert len(results) == 6
        assert errors == {InsufficientInventoryError: 4}
        assert kernel.current_balance(water_bottles.id) == 10
        assert kernel.get_resource(water_bottles.id).cached_current_stock == 10

    def test_allocate_and_restock_interleave(self, kernel, water_bottles, make_event, at):
        num_threads = 10
        events = [make_event(at(10), at(12)) for _ in range(num_threads // 2)]

        def work(i):
            if i % 2:
                return kernel.restock(water_bottles.id, 10)
            return kernel.allocate(events[i // 2].id, water_bottles.id, 20)

        results, errors = _race(num_threads, work)

        assert errors == {}
        assert len(results) == num_threads
        # 100 + 5 * 10 - 5 * 20
        assert kernel.current_balance(water_bottles.id) == 50
        assert kernel.reconcile_cached_stock(water_bottles.id).drifted is False


class TestSameBindingRace:

    def test_one_binding_per_pair(self, kernel, water_bottles, make_event, at):
        num_threads = 8
        event = make_event(at(10), at(12))

        results, errors = _race(
            num_threads,
            lambda i: kernel.allocate(event.id, water_bottles.id, 5),
        )

        assert len(results) == 1
        assert errors == {AllocationAlreadyExistsError: num_threads - 1}
        assert kernel.current_balance(water_bottles.id) == 95


@pytest.mark.postgres
class TestPostgresRowLocks:
    """The same races against PostgreSQL, where FOR UPDATE is live."""

    def test_exclusive_exactly_one_wins(self, pg_kernel):
        from datetime import datetime, timedelta
        from uuid import uuid4

        org = uuid4()
        room = pg_kernel.register_resource("Room 9", ResourceKind.EXCLUSIVE, organization_id=org)
        start = datetime(2024, 1, 2, 10, 0)
        events = [
            pg_kernel.register_event(f"E{i}", org, start + timedelta(minutes=i), start + timedelta(hours=1))
            for i in range(10)
        ]

        results, errors = _race(10, lambda i: pg_kernel.allocate(events[i].id, room.id, 1))

        assert len(results) == 1
        assert errors == {ExclusiveOverlapError: 9}

    def test_consumable_no_oversubscription(self, pg_kernel):
        from datetime import datetime
        from uuid import uuid4

        org = uuid4()
        stock = pg_kernel.register_resource(
            "Badges", ResourceKind.CONSUMABLE, organization_id=org, initial_stock=50
        )
        events = [
            pg_kernel.register_event(
                f"E{i}", org, datetime(2024, 1, 2, 10, 0), datetime(2024, 1, 2, 11, 0)
            )
            for i in range(8)
        ]

        results, errors = _race(8, lambda i: pg_kernel.allocate(events[i].id, stock.id, 10))

        assert len(results) == 5
        assert errors == {InsufficientInventoryError: 3}
        assert pg_kernel.current_balance(stock.id) == 0
