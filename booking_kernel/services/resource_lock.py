"""
ResourceLockCoordinator -- per-resource mutual exclusion around a unit of work.

Responsibility:
    Serializes every admission-sensitive write for one resource: allocate,
    update quantity, remove, restock, adjust and cache reconciliation.  A
    caller hands in a function; the coordinator runs it inside a fresh
    transaction while holding the resource's lock, commits, and only then
    releases the lock.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Used by AllocationService and InventoryService.  Owns the only
    commit/rollback calls on the write path.

Invariants enforced:
    - Mutual exclusion per resource id: two units of work for the same
      resource never overlap.  Units for different resources never contend.
    - Two layers of locking:
        1. an in-process FIFO ticket lock keyed by resource id
           (KeyedLockRegistry / FairLock), so waiters are served in arrival
           order and none starves;
        2. ``SELECT ... FOR UPDATE`` on the resource row, which extends the
           exclusion across processes on PostgreSQL.  SQLite ignores it.
    - The lock is released strictly AFTER commit, so the next holder always
      reads the previous holder's committed writes.
    - Any non-commit exit (exception, timeout, KeyboardInterrupt,
      cancellation) rolls the transaction back and releases the lock.

Failure modes:
    - LockTimeoutError: the lock was not acquired within lock_timeout.
      Nothing was written.
    - ReentrantLockError: the current thread already holds this resource's
      lock.  Nested units for the same resource would deadlock.
    - ResourceNotFoundError: no resource row with that id.  Rolled back.
    - Any exception raised by the unit of work propagates after rollback.

Audit relevance:
    Lock acquisition and release are logged at DEBUG with the wait time,
    so contention on a hot resource is visible in the structured log.
"""

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from booking_kernel.db.engine import session_scope
from booking_kernel.exceptions import (
    LockTimeoutError,
    ReentrantLockError,
    ResourceNotFoundError,
)
from booking_kernel.logging_config import get_logger
from booking_kernel.models.resource import Resource
from booking_kernel.services.base import as_uuid

logger = get_logger("services.resource_lock")

T = TypeVar("T")


class FairLock:
    """
    FIFO ticket lock.

    Each acquirer draws a ticket and waits until it is being served.  A
    waiter that times out leaves its ticket behind as abandoned; release()
    skips abandoned tickets so the queue keeps moving.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._abandoned: set[int] = set()
        # Waiters plus holder; guarded by KeyedLockRegistry._guard
        self.refs = 0

    def acquire(self, timeout: float | None = None) -> bool:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1

            if timeout is None:
                while self._serving != ticket:
                    self._cond.wait()
                return True

            deadline = time.monotonic() + timeout
            while self._serving != ticket:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._abandoned.add(ticket)
                    return False
                self._cond.wait(remaining)
            return True

    def release(self) -> None:
        with self._cond:
            self._serving += 1
            while self._serving in self._abandoned:
                self._abandoned.discard(self._serving)
                self._serving += 1
            self._cond.notify_all()

    @property
    def queue_length(self) -> int:
        """Tickets drawn and not yet served (holder included)."""
        with self._cond:
            return self._next_ticket - self._serving - len(self._abandoned)


class KeyedLockRegistry:
    """
    One FairLock per key, created on first use and dropped when the last
    waiter leaves.  Keys that are never contended cost one dict entry for
    the duration of the unit of work.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, FairLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> FairLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = FairLock()
                self._locks[key] = lock
            lock.refs += 1
            return lock

    def _checkin(self, key: str, lock: FairLock) -> None:
        with self._guard:
            lock.refs -= 1
            if lock.refs == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockTimeoutError: Not acquired within ``timeout`` seconds.
        """
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout):
                raise LockTimeoutError(key, timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key, lock)


class ResourceLockCoordinator:
    """
    Runs units of work under a per-resource lock.

    Contract:
        ``with_resource_lock(resource_id, fn)`` calls ``fn(session, resource)``
        with the resource row freshly loaded under ``FOR UPDATE``, commits,
        releases the lock and returns ``fn``'s result.

    Non-goals:
        - Does NOT retry.  A timeout or a rejection surfaces to the caller.
        - Does NOT support nesting units for the same resource.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        lock_timeout: float | None = None,
        registry: KeyedLockRegistry | None = None,
    ):
        """
        Args:
            session_factory: Factory for the per-unit session.
            lock_timeout: Seconds to wait for a resource lock; None waits forever.
            registry: Lock registry; a private one is created by default.
                Coordinators that must exclude each other share a registry.
        """
        self._session_factory = session_factory
        self._lock_timeout = lock_timeout
        self._registry = registry if registry is not None else KeyedLockRegistry()
        self._local = threading.local()

    @property
    def registry(self) -> KeyedLockRegistry:
        return self._registry

    @property
    def lock_timeout(self) -> float | None:
        return self._lock_timeout

    def _held_keys(self) -> set[str]:
        held = getattr(self._local, "held", None)
        if held is None:
            held = set()
            self._local.held = held
        return held

    def holds(self, resource_id: UUID | str) -> bool:
        """True when the current thread holds the lock for ``resource_id``."""
        return str(resource_id) in self._held_keys()

    def with_resource_lock(
        self,
        resource_id: UUID | str,
        fn: Callable[[Session, Resource], T],
    ) -> T:
        """
        Run ``fn`` as one atomic unit of work under the resource's lock.

        Raises:
            ReentrantLockError: The current thread already holds this lock.
            LockTimeoutError: The lock was not acquired in time.
            ResourceNotFoundError: No such resource.
        """
        key = str(resource_id)
        held = self._held_keys()
        if key in held:
            raise ReentrantLockError(key)

        requested_at = time.monotonic()
        with self._registry.hold(key, self._lock_timeout):
            held.add(key)
            acquired_at = time.monotonic()
            logger.debug(
                "resource_lock_acquired",
                extra={
                    "resource_id": key,
                    "wait_ms": round((acquired_at - requested_at) * 1000, 3),
                },
            )
            try:
                return self._run_unit(resource_id, fn)
            finally:
                held.discard(key)
                logger.debug(
                    "resource_lock_released",
                    extra={
                        "resource_id": key,
                        "held_ms": round((time.monotonic() - acquired_at) * 1000, 3),
                    },
                )

    def _run_unit(
        self,
        resource_id: UUID | str,
        fn: Callable[[Session, Resource], T],
    ) -> T:
        rid = as_uuid(resource_id)
        if rid is None:
            raise ResourceNotFoundError(str(resource_id))

        # session_scope commits on normal exit and rolls back on any other
        with session_scope(self._session_factory) as session:
            resource = session.execute(
                select(Resource)
                .where(Resource.id == rid)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if resource is None:
                raise ResourceNotFoundError(str(resource_id))
            return fn(session, resource)
