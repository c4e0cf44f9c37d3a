"""
Module: booking_kernel.selectors.ledger_selector
Responsibility: Balance computation over the consumable inventory ledger:
    current balance, projected balance at an instant, transaction history,
    running balance and shortage detection.  The ledger is the source of
    truth; cached_current_stock on the resource row is never read here.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - projected_balance(r, T) == SUM(quantity) over rows with
      effective_date <= T.  The boundary is inclusive: a row dated exactly T
      counts.
    - current_balance(r) == SUM(quantity) over every row, which equals
      projected_balance(r, datetime.max).
    - Non-consumable resources pass their static capacity through
      current_balance; they have no ledger rows.
    - Ordering for history and running balance is (effective_date,
      created_at, id), so ties resolve in write order.

Failure modes:
    - Returns 0 / empty lists when a resource has no ledger rows.

Audit relevance:
    detect_shortages() exposes the historical negative balances that a
    retroactive restock or adjustment can introduce.  They are tolerated,
    never blocked, and must be reviewable.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from booking_kernel.domain.clock import as_utc_naive
from booking_kernel.domain.dtos import (
    LedgerTransactionRecord,
    RunningBalancePoint,
    ShortagePoint,
)
from booking_kernel.domain.values import ResourceKind, TransactionType
from booking_kernel.models.inventory_transaction import LedgerTransaction
from booking_kernel.models.resource import Resource
from booking_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[LedgerTransaction]):
    """
    Selector for the inventory ledger -- the authoritative balance engine.

    Guarantees:
        - Every balance is computed at query time from ledger rows.
        - All balance methods return int.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _ordered(self, resource_id: UUID):
        return (
            select(LedgerTransaction)
            .where(LedgerTransaction.resource_id == resource_id)
            .order_by(
                LedgerTransaction.effective_date,
                LedgerTransaction.created_at,
                LedgerTransaction.id,
            )
        )

    def ledger_sum(self, resource_id: UUID) -> int:
        """SUM(quantity) over every ledger row for the resource."""
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerTransaction.quantity), 0)).where(
                LedgerTransaction.resource_id == resource_id
            )
        ).scalar_one()
        return int(total)

    def current_balance(self, resource: Resource) -> int:
        """
        Balance of a resource with no time filter.

        Exclusive resources report 1 and shareable resources their cap;
        consumables report the ledger sum.
        """
        if resource.resource_kind != ResourceKind.CONSUMABLE:
            return resource.capacity or 0
        return self.ledger_sum(resource.id)

    def projected_balance(self, resource_id: UUID, at: datetime) -> int:
        """SUM(quantity) over rows whose effective_date <= ``at``."""
        cutoff = as_utc_naive(at)
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerTransaction.quantity), 0)).where(
                LedgerTransaction.resource_id == resource_id,
                LedgerTransaction.effective_date <= cutoff,
            )
        ).scalar_one()
        return int(total)

    def transaction_history(
        self,
        resource_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LedgerTransactionRecord]:
        """
        Ledger rows for a resource in effective order.

        Args:
            resource_id: Resource to read.
            start: Optional inclusive lower bound on effective_date.
            end: Optional inclusive upper bound on effective_date.
        """
        query = self._ordered(resource_id)
        if start is not None:
            query = query.where(LedgerTransaction.effective_date >= as_utc_naive(start))
        if end is not None:
            query = query.where(LedgerTransaction.effective_date <= as_utc_naive(end))

        rows = self.session.execute(query).scalars().all()
        return [LedgerTransactionRecord.from_model(row) for row in rows]

    def running_balance(
        self,
        resource_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RunningBalancePoint]:
        """
        Running balance after each ledger row.

        The total always accumulates from the first row ever written, so a
        window filter only trims which points are returned.
        """
        lower = as_utc_naive(start) if start is not None else None
        upper = as_utc_naive(end) if end is not None else None

        points: list[RunningBalancePoint] = []
        balance = 0
        for row in self.session.execute(self._ordered(resource_id)).scalars():
            balance += row.quantity
            if lower is not None and row.effective_date < lower:
                continue
            if upper is not None and row.effective_date > upper:
                break
            points.append(
                RunningBalancePoint(
                    transaction_id=row.id,
                    effective_date=row.effective_date,
                    quantity=row.quantity,
                    transaction_type=TransactionType(row.transaction_type),
                    running_balance=balance,
                )
            )
        return points

    def detect_shortages(self, resource_id: UUID | None = None) -> list[ShortagePoint]:
        """
        Every point at which a consumable's running balance is negative.

        Args:
            resource_id: Limit to one resource; all consumables when None.
        """
        query = select(Resource).where(Resource.kind == ResourceKind.CONSUMABLE.value)
        if resource_id is not None:
            query = query.where(Resource.id == resource_id)

        shortages: list[ShortagePoint] = []
        for resource in self.session.execute(query.order_by(Resource.name)).scalars():
            for point in self.running_balance(resource.id):
                if point.running_balance < 0:
                    shortages.append(
                        ShortagePoint(
                            resource_id=resource.id,
                            resource_name=resource.name,
                            effective_date=point.effective_date,
                            running_balance=point.running_balance,
                            transaction_type=point.transaction_type,
                        )
                    )
        return shortages
