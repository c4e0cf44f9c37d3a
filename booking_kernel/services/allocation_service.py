"""
AllocationService -- lifecycle of event-resource bindings.

Responsibility:
    Creates, re-sizes and removes bindings.  Each write is one atomic unit
    run under the resource lock: re-verify, admit, write the ledger entry
    (consumables only), persist the binding change, commit.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes ResourceLockCoordinator, AdmissionService and LedgerService.
    Display reads (get, list_allocations) go straight to AllocationSelector
    without taking a lock.

Invariants enforced:
    - Validation before locking: quantity, existence, ownership and an
      existing (event, resource) binding are checked before the lock is
      requested, so requests that can never succeed do not queue.
    - Re-verification under the lock: everything admission depends on is
      read again inside the locked unit, because state may have changed
      while waiting.
    - At most one binding per (event, resource): checked under the lock and
      backed by the UNIQUE constraint.  A constraint violation is reported
      as AllocationAlreadyExistsError.
    - Ledger symmetry for consumables: allocate writes Allocation(-q);
      a quantity change writes Allocation(-delta) or Return(+delta); remove
      writes Return(+q) BEFORE the binding is deleted.  Ledger entry and
      binding change commit together.
    - Lifecycle: absent -> active -> active (new quantity) -> absent.
      Removal is a hard delete.

Failure modes:
    - InvalidQuantityError, ResourceOwnershipError (InvalidRequest).
    - ResourceNotFoundError, EventNotFoundError, AllocationNotFoundError.
    - AllocationAlreadyExistsError, ExclusiveOverlapError,
      ConcurrentUsageExceededError (Conflict).
    - InsufficientInventoryError.
    - ConsistencyFailureError if the Return of a remove/decrease cannot be
      recorded.  The binding is left untouched.
    - LockTimeoutError (Infrastructure).

Audit relevance:
    allocation_created / allocation_quantity_updated / allocation_removed are
    logged at INFO with resource, event, quantity and actor.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from booking_kernel.domain.admission import validate_quantity
from booking_kernel.domain.clock import Clock
from booking_kernel.domain.dtos import AllocationRecord, RemovalResult
from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import (
    AllocationAlreadyExistsError,
    AllocationNotFoundError,
    EventNotFoundError,
    ResourceNotFoundError,
    ResourceOwnershipError,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.models.allocation import ResourceAllocation
from booking_kernel.models.event import Event
from booking_kernel.models.resource import Resource
from booking_kernel.selectors.allocation_selector import AllocationSelector
from booking_kernel.services.admission_service import AdmissionService
from booking_kernel.services.base import as_uuid
from booking_kernel.services.ledger_service import LedgerService
from booking_kernel.services.resource_lock import ResourceLockCoordinator

logger = get_logger("services.allocation")


def _check_ownership(resource: Resource, event: Event) -> None:
    if not resource.is_available_to(event.organization_id):
        raise ResourceOwnershipError(str(resource.id), str(event.organization_id))


class AllocationService:
    """
    Allocation lifecycle manager.

    Contract:
        Every mutating method is one atomic unit of work: either the binding
        change and its ledger entry both commit, or neither does.

    Non-goals:
        - Does NOT retry on conflict or lock timeout.
        - Does NOT manage events; it only reads their window and organization.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        locks: ResourceLockCoordinator,
        clock: Clock,
    ):
        self._session_factory = session_factory
        self._locks = locks
        self._clock = clock

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.rollback()
            session.close()

    def _load_allocation(self, session: Session, allocation_id: UUID) -> ResourceAllocation:
        allocation = session.execute(
            select(ResourceAllocation)
            .where(ResourceAllocation.id == allocation_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(allocation_id))
        return allocation

    # ------------------------------------------------------------------
    # Allocate
    # ------------------------------------------------------------------

    def allocate(
        self,
        event_id: UUID | str,
        resource_id: UUID | str,
        quantity: int,
        actor_id: str | None = None,
    ) -> AllocationRecord:
        """
        Bind ``quantity`` units of a resource to an event.

        Preconditions:
            - quantity is a positive integer.
            - The resource is global or owned by the event's organization.
            - No binding exists for (event, resource).

        Returns:
            The new binding.
        """
        validate_quantity(quantity)
        eid = as_uuid(event_id)
        if eid is None:
            raise EventNotFoundError(str(event_id))
        rid = as_uuid(resource_id)
        if rid is None:
            raise ResourceNotFoundError(str(resource_id))

        with self._read_session() as session:
            event = session.get(Event, eid)
            if event is None:
                raise EventNotFoundError(str(eid))
            resource = session.get(Resource, rid)
            if resource is None:
                raise ResourceNotFoundError(str(rid))
            _check_ownership(resource, event)
            if AllocationSelector(session).find_binding(eid, rid) is not None:
                raise AllocationAlreadyExistsError(str(eid), str(rid))

        with LogContext.bind(resource_id=rid, event_id=eid, actor_id=actor_id):
            return self._locks.with_resource_lock(
                rid,
                lambda session, locked: self._allocate_locked(
                    session, locked, eid, quantity, actor_id
                ),
            )

    def _allocate_locked(
        self,
        session: Session,
        resource: Resource,
        event_id: UUID,
        quantity: int,
        actor_id: str | None,
    ) -> AllocationRecord:
        event = session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        _check_ownership(resource, event)

        if AllocationSelector(session).find_binding(event.id, resource.id) is not None:
            raise AllocationAlreadyExistsError(str(event.id), str(resource.id))

        AdmissionService(session).admit(resource, event, quantity)

        if resource.resource_kind == ResourceKind.CONSUMABLE:
            LedgerService(session, self._clock).record_allocation(
                resource, quantity, event, actor_id=actor_id
            )

        allocation = ResourceAllocation(
            event_id=event.id,
            resource_id=resource.id,
            quantity=quantity,
            allocated_at=self._clock.now_naive_utc(),
        )
        session.add(allocation)
        try:
            session.flush()
        except IntegrityError as exc:
            raise AllocationAlreadyExistsError(str(event.id), str(resource.id)) from exc

        logger.info(
            "allocation_created",
            extra={
                "allocation_id": str(allocation.id),
                "kind": resource.resource_kind.value,
                "quantity": quantity,
            },
        )
        return AllocationRecord.from_model(allocation)

    # ------------------------------------------------------------------
    # Update quantity
    # ------------------------------------------------------------------

    def update_quantity(
        self,
        allocation_id: UUID | str,
        new_quantity: int,
        actor_id: str | None = None,
    ) -> AllocationRecord:
        """
        Change a binding's quantity, re-running admission under the lock.

        An unchanged quantity is a no-op that returns the current binding
        without writing anything.
        """
        validate_quantity(new_quantity)
        aid = as_uuid(allocation_id)
        if aid is None:
            raise AllocationNotFoundError(str(allocation_id))

        with self._read_session() as session:
            current = self._load_allocation(session, aid)
            if current.quantity == new_quantity:
                return AllocationRecord.from_model(current)
            resource_id = current.resource_id
            event_id = current.event_id

        with LogContext.bind(
            resource_id=resource_id,
            event_id=event_id,
            allocation_id=aid,
            actor_id=actor_id,
        ):
            return self._locks.with_resource_lock(
                resource_id,
                lambda session, locked: self._update_locked(
                    session, locked, aid, new_quantity, actor_id
                ),
            )

    def _update_locked(
        self,
        session: Session,
        resource: Resource,
        allocation_id: UUID,
        new_quantity: int,
        actor_id: str | None,
    ) -> AllocationRecord:
        allocation = self._load_allocation(session, allocation_id)
        old_quantity = allocation.quantity
        if old_quantity == new_quantity:
            return AllocationRecord.from_model(allocation)

        event = allocation.event
        AdmissionService(session).admit(
            resource,
            event,
            new_quantity,
            previous_quantity=old_quantity,
            allocation_id=allocation.id,
        )

        if resource.resource_kind == ResourceKind.CONSUMABLE:
            ledger = LedgerService(session, self._clock)
            delta = new_quantity - old_quantity
            if delta > 0:
                ledger.record_allocation(resource, delta, event, actor_id=actor_id)
            else:
                ledger.record_return(
                    resource,
                    -delta,
                    event,
                    actor_id=actor_id,
                    operation="update_quantity",
                )

        allocation.quantity = new_quantity
        session.flush()

        logger.info(
            "allocation_quantity_updated",
            extra={
                "old_quantity": old_quantity,
                "new_quantity": new_quantity,
                "kind": resource.resource_kind.value,
            },
        )
        return AllocationRecord.from_model(allocation)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(
        self,
        allocation_id: UUID | str,
        actor_id: str | None = None,
    ) -> RemovalResult:
        """
        Delete a binding.  Consumables get their quantity back as a Return
        written before the delete, in the same transaction.
        """
        aid = as_uuid(allocation_id)
        if aid is None:
            raise AllocationNotFoundError(str(allocation_id))

        with self._read_session() as session:
            current = self._load_allocation(session, aid)
            resource_id = current.resource_id
            event_id = current.event_id

        with LogContext.bind(
            resource_id=resource_id,
            event_id=event_id,
            allocation_id=aid,
            actor_id=actor_id,
        ):
            return self._locks.with_resource_lock(
                resource_id,
                lambda session, locked: self._remove_locked(session, locked, aid, actor_id),
            )

    def _remove_locked(
        self,
        session: Session,
        resource: Resource,
        allocation_id: UUID,
        actor_id: str | None,
    ) -> RemovalResult:
        allocation = self._load_allocation(session, allocation_id)
        quantity = allocation.quantity

        return_id = None
        if resource.resource_kind == ResourceKind.CONSUMABLE:
            returned = LedgerService(session, self._clock).record_return(
                resource,
                quantity,
                allocation.event,
                actor_id=actor_id,
                operation="remove",
            )
            return_id = returned.id

        session.delete(allocation)
        session.flush()

        logger.info(
            "allocation_removed",
            extra={
                "released_quantity": quantity,
                "kind": resource.resource_kind.value,
            },
        )
        return RemovalResult(
            allocation_id=allocation_id,
            resource_id=resource.id,
            released_quantity=quantity,
            return_transaction_id=return_id,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, allocation_id: UUID | str) -> AllocationRecord:
        aid = as_uuid(allocation_id)
        if aid is None:
            raise AllocationNotFoundError(str(allocation_id))
        with self._read_session() as session:
            record = AllocationSelector(session).get(aid)
        if record is None:
            raise AllocationNotFoundError(str(aid))
        return record

    def list_allocations(
        self,
        event_id: UUID | str | None = None,
        resource_id: UUID | str | None = None,
    ) -> list[AllocationRecord]:
        """Bindings filtered by event and/or resource (no lock)."""
        eid = as_uuid(event_id) if event_id is not None else None
        rid = as_uuid(resource_id) if resource_id is not None else None
        if (event_id is not None and eid is None) or (
            resource_id is not None and rid is None
        ):
            return []
        with self._read_session() as session:
            return AllocationSelector(session).list_allocations(
                event_id=eid, resource_id=rid
            )
