"""
Tests for the resource lock coordinator.

Covers:
- FairLock FIFO order and timeout abandonment
- KeyedLockRegistry cleanup and key independence
- Unit of work: commit before release, rollback on error, not-found,
  re-entrancy refusal, timeout
"""

import threading
import time
from uuid import uuid4

import pytest

from booking_kernel.exceptions import (
    LockTimeoutError,
    ReentrantLockError,
    ResourceNotFoundError,
)
from booking_kernel.models.resource import Resource
from booking_kernel.services.resource_lock import (
    FairLock,
    KeyedLockRegistry,
    ResourceLockCoordinator,
)


class TestFairLock:

    def test_waiters_served_in_arrival_order(self):
        lock = FairLock()
        assert lock.acquire()
        order: list[int] = []
        threads = []

        for i in range(5):
            def waiter(i=i):
                lock.acquire()
                order.append(i)
                lock.release()

            t = threading.Thread(target=waiter)
            t.start()
            threads.append(t)
            # wait until this waiter has drawn its ticket before starting the next
            while lock.queue_length < i + 2:
                time.sleep(0.001)

        lock.release()
        for t in threads:
            t.join(timeout=5)
        assert order == [0, 1, 2, 3, 4]

    def test_timeout_abandons_ticket(self):
        lock = FairLock()
        assert lock.acquire()
        assert lock.acquire(timeout=0.05) is False
        lock.release()
        # the abandoned ticket is skipped: the next acquirer gets in at once
        assert lock.acquire(timeout=1.0) is True
        lock.release()


class TestKeyedLockRegistry:

    def test_entries_dropped_after_use(self):
        registry = KeyedLockRegistry()
        with registry.hold("a"):
            assert len(registry) == 1
        assert len(registry) == 0

    def test_timeout_raises_and_cleans_up(self):
        registry = KeyedLockRegistry()
        with registry.hold("a"):
            holder_done = threading.Event()
            errors: list[Exception] = []

            def contender():
                try:
                    with registry.hold("a", timeout=0.05):
                        pass
                except LockTimeoutError as exc:
                    errors.append(exc)
                holder_done.set()

            t = threading.Thread(target=contender)
            t.start()
            holder_done.wait(timeout=5)
            t.join(timeout=5)

        assert len(errors) == 1
        assert errors[0].resource_id == "a"
        assert len(registry) == 0

    @pytest.mark.slow_locks
    def test_different_keys_do_not_block(self):
        """A held key never delays a different key."""
        registry = KeyedLockRegistry()
        entered = threading.Event()
        release = threading.Event()

        def hold_a():
            with registry.hold("a"):
                entered.set()
                release.wait(timeout=5)

        t = threading.Thread(target=hold_a)
        t.start()
        entered.wait(timeout=5)
        try:
            started = time.monotonic()
            with registry.hold("b", timeout=1.0):
                pass
            assert time.monotonic() - started < 0.5
        finally:
            release.set()
            t.join(timeout=5)


class TestResourceLockCoordinator:

    def test_commits_unit_of_work(self, session_factory, exclusive_room):
        locks = ResourceLockCoordinator(session_factory)

        def rename(session, resource):
            resource.description = "renovated"
            return resource.name

        assert locks.with_resource_lock(exclusive_room.id, rename) == "Room 101"
        with session_factory() as s:
            assert s.get(Resource, exclusive_room.id).description == "renovated"

    def test_rolls_back_on_error(self, session_factory, exclusive_room):
        locks = ResourceLockCoordinator(session_factory)

        def fail(session, resource):
            resource.description = "half-done"
            session.flush()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            locks.with_resource_lock(exclusive_room.id, fail)
        with session_factory() as s:
            assert s.get(Resource, exclusive_room.id).description is None
        # lock released: the next unit runs
        assert locks.with_resource_lock(exclusive_room.id, lambda s, r: True)

    def test_missing_resource(self, session_factory):
        locks = ResourceLockCoordinator(session_factory)
        with pytest.raises(ResourceNotFoundError):
            locks.with_resource_lock(uuid4(), lambda s, r: None)
        with pytest.raises(ResourceNotFoundError):
            locks.with_resource_lock("not-a-uuid", lambda s, r: None)
        assert len(locks.registry) == 0

    def test_reentrant_acquire_refused(self, session_factory, exclusive_room):
        locks = ResourceLockCoordinator(session_factory)

        def nested(session, resource):
            assert locks.holds(resource.id)
            return locks.with_resource_lock(resource.id, lambda s, r: None)

        with pytest.raises(ReentrantLockError):
            locks.with_resource_lock(exclusive_room.id, nested)
        assert not locks.holds(exclusive_room.id)

    @pytest.mark.slow_locks
    def test_timeout_while_held(self, session_factory, exclusive_room):
        locks = ResourceLockCoordinator(session_factory, lock_timeout=0.1)
        inside = threading.Event()
        release = threading.Event()

        def slow(session, resource):
            inside.set()
            release.wait(timeout=5)

        t = threading.Thread(target=locks.with_resource_lock, args=(exclusive_room.id, slow))
        t.start()
        inside.wait(timeout=5)
        try:
            with pytest.raises(LockTimeoutError) as exc_info:
                locks.with_resource_lock(exclusive_room.id, lambda s, r: None)
            assert exc_info.value.timeout_seconds == 0.1
        finally:
            release.set()
            t.join(timeout=5)

    def test_lock_events_logged(self, session_factory, exclusive_room, captured_logs):
        locks = ResourceLockCoordinator(session_factory)
        locks.with_resource_lock(exclusive_room.id, lambda s, r: None)

        messages = [r["message"] for r in captured_logs()]
        assert "resource_lock_acquired" in messages
        assert "resource_lock_released" in messages
