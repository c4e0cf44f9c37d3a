"""
LedgerService -- append-only writer for the consumable inventory ledger.

Responsibility:
    Records the four kinds of signed stock movement (allocation, return,
    restock, adjustment) and keeps the resource's cached_current_stock in
    step in the same flush.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Called from inside a ResourceLockCoordinator unit of work by
    AllocationService, InventoryService and CatalogService.

Invariants enforced:
    - Append-only: rows are only ever INSERTed (db/immutability.py blocks
      UPDATE/DELETE).
    - Sign convention: allocation < 0, return > 0, restock > 0,
      adjustment = target - current balance (zero recorded for audit).
    - Allocation and Return rows take effect at the event's start time, so
      a Return cancels its Allocation at the same instant.  Restock (by
      default) and adjustment rows take effect at clock now.
    - The cache update rides the same flush as the ledger row, so a
      committed row and a stale cache are never observable together.

Failure modes:
    - ConsistencyFailureError when the INSERT of a compensating row (the
      Return written by remove or a quantity decrease) fails.  The caller's
      unit of work rolls back and the binding is left as it was.
    - InvalidQuantityError for non-positive restock quantities and negative
      adjustment targets.

Audit relevance:
    Every row carries created_by and a human-readable note; every write is
    logged as ``ledger_transaction_recorded``.
"""

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_kernel.domain.clock import Clock, as_utc_naive
from booking_kernel.domain.values import TransactionType
from booking_kernel.exceptions import (
    ConsistencyFailureError,
    InvalidQuantityError,
)
from booking_kernel.logging_config import get_logger
from booking_kernel.models.event import Event
from booking_kernel.models.inventory_transaction import LedgerTransaction
from booking_kernel.models.resource import Resource
from booking_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService[LedgerTransaction]):
    """
    Flush-only ledger writer.

    Contract:
        Every ``record_*`` method appends exactly one LedgerTransaction,
        adjusts ``resource.cached_current_stock`` by the same delta, flushes,
        and returns the new row.  It never commits.
    """

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def _append(
        self,
        resource: Resource,
        quantity: int,
        transaction_type: TransactionType,
        effective_date: datetime,
        related_event_id=None,
        notes: str | None = None,
        actor_id: str | None = None,
        cache_value: int | None = None,
    ) -> LedgerTransaction:
        row = LedgerTransaction(
            resource_id=resource.id,
            quantity=quantity,
            transaction_type=transaction_type.value,
            effective_date=as_utc_naive(effective_date),
            related_event_id=related_event_id,
            notes=notes,
            created_by=actor_id,
            created_at=self._clock.now_naive_utc(),
        )
        self.session.add(row)

        if cache_value is None:
            cache_value = (resource.cached_current_stock or 0) + quantity
        resource.cached_current_stock = cache_value

        self.session.flush()

        logger.info(
            "ledger_transaction_recorded",
            extra={
                "transaction_id": str(row.id),
                "resource_id": str(resource.id),
                "transaction_type": transaction_type.value,
                "quantity": quantity,
                "effective_date": row.effective_date,
                "related_event_id": str(related_event_id) if related_event_id else None,
                "cached_current_stock": cache_value,
            },
        )
        return row

    def _compensate(self, operation: str, resource: Resource, write) -> LedgerTransaction:
        try:
            return write()
        except SQLAlchemyError as exc:
            logger.error(
                "compensating_write_failed",
                extra={
                    "operation": operation,
                    "resource_id": str(resource.id),
                    "error": str(exc),
                },
            )
            raise ConsistencyFailureError(
                operation=operation,
                resource_id=str(resource.id),
                reason=f"return transaction could not be recorded: {exc}",
            ) from exc

    def record_allocation(
        self,
        resource: Resource,
        quantity: int,
        event: Event,
        actor_id: str | None = None,
    ) -> LedgerTransaction:
        """Append ``-quantity`` effective at the event's start time."""
        return self._append(
            resource,
            -quantity,
            TransactionType.ALLOCATION,
            effective_date=event.start_time,
            related_event_id=event.id,
            notes=f"Allocated for event {event.id}",
            actor_id=actor_id,
        )

    def record_return(
        self,
        resource: Resource,
        quantity: int,
        event: Event,
        actor_id: str | None = None,
        note: str | None = None,
        operation: str = "return",
    ) -> LedgerTransaction:
        """
        Append ``+quantity`` effective at the event's start time.

        The credit lands at the same instant as the Allocation it cancels,
        so no projection before the event start ever counts it.

        A failed write is reported as ConsistencyFailureError so that the
        surrounding remove/update aborts instead of leaving a binding and
        ledger that disagree.
        """
        return self._compensate(
            operation,
            resource,
            lambda: self._append(
                resource,
                quantity,
                TransactionType.RETURN,
                effective_date=event.start_time,
                related_event_id=event.id,
                notes=note or f"Returned from cancelled/modified event {event.id}",
                actor_id=actor_id,
            ),
        )

    def record_restock(
        self,
        resource: Resource,
        quantity: int,
        effective_date: datetime | None = None,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> LedgerTransaction:
        """Append ``+quantity``; effective now unless a date is given."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantityError(quantity, "Restock quantity must be positive")
        return self._append(
            resource,
            quantity,
            TransactionType.RESTOCK,
            effective_date=effective_date or self._clock.now_naive_utc(),
            notes=note or "Inventory restock",
            actor_id=actor_id,
        )

    def record_adjustment(
        self,
        resource: Resource,
        target_quantity: int,
        note: str | None = None,
        actor_id: str | None = None,
        current_balance: int | None = None,
    ) -> LedgerTransaction:
        """
        Append ``target - current`` and set the cache exactly to ``target``.

        ``current_balance`` is the ledger-derived balance; when omitted the
        cached balance stands in for it.  A zero delta is still recorded.
        """
        if (
            isinstance(target_quantity, bool)
            or not isinstance(target_quantity, int)
            or target_quantity < 0
        ):
            raise InvalidQuantityError(
                target_quantity, "Adjustment target must be a non-negative integer"
            )

        if current_balance is not None:
            current = current_balance
        else:
            current = resource.cached_current_stock or 0
        delta = target_quantity - current
        if note is None:
            if delta == 0:
                note = "Quantity adjustment (no change)"
            else:
                note = f"Admin adjustment: {current} → {target_quantity}"

        return self._append(
            resource,
            delta,
            TransactionType.ADJUSTMENT,
            effective_date=self._clock.now_naive_utc(),
            notes=note,
            actor_id=actor_id,
            cache_value=target_quantity,
        )
