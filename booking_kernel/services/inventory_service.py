"""
InventoryService -- stock operations and balance reads for consumables.

Responsibility:
    Restock and privileged adjustment (under the resource lock), balance
    and history reads (lock-free), shortage detection and reconciliation
    of the cached balance against the ledger.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes ResourceLockCoordinator, LedgerService and LedgerSelector.

Invariants enforced:
    - Restock and adjustment apply to consumables only.
    - Adjustment requires a privileged actor and a non-negative target.
      Its delta is taken against the ledger-derived balance, so the ledger
      sums to the target afterwards even if the cache had drifted.
    - Reconciliation rewrites cached_current_stock from the ledger under
      the lock; the ledger itself is never modified to match the cache.
    - Historical negative balances are tolerated.  A restock dated in the
      past or any adjustment can leave the running balance negative at some
      earlier or intermediate instant; these are reported (WARNING
      ``inventory_shortage_detected``), never blocked.

Failure modes:
    - ResourceNotFoundError, WrongResourceKindError, PrivilegeRequiredError,
      InvalidQuantityError, LockTimeoutError.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from booking_kernel.domain.clock import Clock, as_utc_naive
from booking_kernel.domain.dtos import (
    CacheReconciliation,
    LedgerTransactionRecord,
    RunningBalancePoint,
    ShortagePoint,
)
from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import (
    InvalidQuantityError,
    PrivilegeRequiredError,
    ResourceNotFoundError,
    WrongResourceKindError,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.models.resource import Resource
from booking_kernel.selectors.ledger_selector import LedgerSelector
from booking_kernel.services.base import as_uuid
from booking_kernel.services.ledger_service import LedgerService
from booking_kernel.services.resource_lock import ResourceLockCoordinator

logger = get_logger("services.inventory")


def _require_consumable(resource: Resource, operation: str) -> None:
    if resource.resource_kind != ResourceKind.CONSUMABLE:
        raise WrongResourceKindError(
            str(resource.id), resource.resource_kind.value, operation
        )


class InventoryService:
    """
    Consumable inventory operations.

    Contract:
        Writes run as one locked unit of work per call.  Reads open a
        short-lived session and never lock.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        locks: ResourceLockCoordinator,
        clock: Clock,
        shortage_alerts: bool = True,
    ):
        self._session_factory = session_factory
        self._locks = locks
        self._clock = clock
        self._shortage_alerts = shortage_alerts

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.rollback()
            session.close()

    def _resource_uuid(self, resource_id: UUID | str) -> UUID:
        rid = as_uuid(resource_id)
        if rid is None:
            raise ResourceNotFoundError(str(resource_id))
        return rid

    def _load_resource(self, session: Session, resource_id: UUID | str) -> Resource:
        rid = self._resource_uuid(resource_id)
        resource = session.get(Resource, rid)
        if resource is None:
            raise ResourceNotFoundError(str(rid))
        return resource

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def restock(
        self,
        resource_id: UUID | str,
        quantity: int,
        effective_date: datetime | None = None,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> LedgerTransactionRecord:
        """
        Add ``quantity`` units to a consumable.

        Args:
            resource_id: Consumable resource.
            quantity: Positive number of units received.
            effective_date: When the stock becomes available; now by default.
                A past date makes the restock retroactive.
            note: Free-text note; "Inventory restock" by default.
            actor_id: Who recorded it.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantityError(quantity, "Restock quantity must be positive")
        rid = self._resource_uuid(resource_id)

        def unit(session: Session, resource: Resource) -> LedgerTransactionRecord:
            _require_consumable(resource, "restock")
            row = LedgerService(session, self._clock).record_restock(
                resource,
                quantity,
                effective_date=effective_date,
                note=note,
                actor_id=actor_id,
            )
            return LedgerTransactionRecord.from_model(row)

        with LogContext.bind(resource_id=rid, actor_id=actor_id):
            record = self._locks.with_resource_lock(rid, unit)
            if record.effective_date < self._clock.now_naive_utc():
                self._report_shortages(rid, trigger="retroactive_restock")
        return record

    def adjust(
        self,
        resource_id: UUID | str,
        target_quantity: int,
        is_privileged: bool,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> LedgerTransactionRecord:
        """
        Set a consumable's balance to ``target_quantity`` (privileged).

        A target equal to the current balance still records a zero-delta
        adjustment for the audit trail.
        """
        if not is_privileged:
            logger.warning(
                "adjustment_refused",
                extra={"resource_id": str(resource_id), "actor": actor_id},
            )
            raise PrivilegeRequiredError("adjust", actor_id)
        if (
            isinstance(target_quantity, bool)
            or not isinstance(target_quantity, int)
            or target_quantity < 0
        ):
            raise InvalidQuantityError(
                target_quantity, "Adjustment target must be a non-negative integer"
            )
        rid = self._resource_uuid(resource_id)

        def unit(session: Session, resource: Resource) -> LedgerTransactionRecord:
            _require_consumable(resource, "adjust")
            current = LedgerSelector(session).ledger_sum(resource.id)
            row = LedgerService(session, self._clock).record_adjustment(
                resource,
                target_quantity,
                note=note,
                actor_id=actor_id,
                current_balance=current,
            )
            return LedgerTransactionRecord.from_model(row)

        with LogContext.bind(resource_id=rid, actor_id=actor_id):
            record = self._locks.with_resource_lock(rid, unit)
            self._report_shortages(rid, trigger="adjustment")
        return record

    def reconcile_cached_stock(self, resource_id: UUID | str) -> CacheReconciliation:
        """
        Recompute a consumable's cached balance from the ledger.

        Returns:
            The cached value found, the ledger value, and whether the cache
            was rewritten.
        """
        rid = self._resource_uuid(resource_id)

        def unit(session: Session, resource: Resource) -> CacheReconciliation:
            _require_consumable(resource, "reconcile")
            ledger = LedgerSelector(session).ledger_sum(resource.id)
            cached = resource.cached_current_stock
            if cached == ledger:
                return CacheReconciliation(resource.id, cached, ledger)

            resource.cached_current_stock = ledger
            session.flush()
            logger.warning(
                "cached_stock_drift_corrected",
                extra={
                    "resource_id": str(resource.id),
                    "cached": cached,
                    "ledger": ledger,
                },
            )
            return CacheReconciliation(resource.id, cached, ledger, corrected=True)

        return self._locks.with_resource_lock(rid, unit)

    def reconcile_all(self) -> list[CacheReconciliation]:
        """Reconcile every consumable, one locked unit per resource."""
        with self._read_session() as session:
            ids = session.execute(
                select(Resource.id)
                .where(Resource.kind == ResourceKind.CONSUMABLE.value)
                .order_by(Resource.name)
            ).scalars().all()

        results = [self.reconcile_cached_stock(rid) for rid in ids]
        logger.info(
            "cached_stock_reconciled",
            extra={
                "resources": len(results),
                "corrected": sum(1 for r in results if r.corrected),
            },
        )
        return results

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_balance(self, resource_id: UUID | str) -> int:
        """Ledger balance for consumables; static capacity otherwise."""
        with self._read_session() as session:
            resource = self._load_resource(session, resource_id)
            return LedgerSelector(session).current_balance(resource)

    def projected_balance(self, resource_id: UUID | str, at: datetime) -> int:
        """
        Balance at instant ``at`` (rows with effective_date <= at).

        Non-consumables have no ledger; their static capacity is returned.
        """
        with self._read_session() as session:
            resource = self._load_resource(session, resource_id)
            selector = LedgerSelector(session)
            if resource.resource_kind != ResourceKind.CONSUMABLE:
                return selector.current_balance(resource)
            return selector.projected_balance(resource.id, at)

    def transaction_history(
        self,
        resource_id: UUID | str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LedgerTransactionRecord]:
        with self._read_session() as session:
            resource = self._load_resource(session, resource_id)
            return LedgerSelector(session).transaction_history(resource.id, start, end)

    def running_balance(
        self,
        resource_id: UUID | str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RunningBalancePoint]:
        with self._read_session() as session:
            resource = self._load_resource(session, resource_id)
            return LedgerSelector(session).running_balance(resource.id, start, end)

    def detect_shortages(
        self,
        resource_id: UUID | str | None = None,
    ) -> list[ShortagePoint]:
        """Negative running-balance points, for one consumable or all of them."""
        with self._read_session() as session:
            rid = None
            if resource_id is not None:
                rid = self._load_resource(session, resource_id).id
            return LedgerSelector(session).detect_shortages(rid)

    def _report_shortages(self, resource_id: UUID, trigger: str) -> None:
        if not self._shortage_alerts:
            return
        for point in self.detect_shortages(resource_id):
            logger.warning(
                "inventory_shortage_detected",
                extra={
                    "resource_id": str(point.resource_id),
                    "resource_name": point.resource_name,
                    "effective_date": as_utc_naive(point.effective_date),
                    "running_balance": point.running_balance,
                    "transaction_type": point.transaction_type.value,
                    "trigger": trigger,
                },
            )
