"""
Module: booking_kernel.models.inventory_transaction
Responsibility: ORM persistence for the consumable inventory ledger.  Every
    change to a consumable's stock is one signed row; balances are sums.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Sign convention: positive = restock/return, negative = allocation,
      adjustment = whatever delta it corrects (zero allowed, for audit).
    - effective_date is when the delta takes economic effect.  For
      allocations it is the event's start time, not the write time.
    - Append-only: UPDATE and DELETE are refused by
      db/immutability.py once listeners are registered.
    - (resource_id, effective_date) index supports projected-balance range sums.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE of a row.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import Base, UUIDString
from booking_kernel.domain.values import TransactionType


class LedgerTransaction(Base):
    """One signed, dated quantity delta against a consumable resource."""

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        Index("idx_inventory_tx_resource_date", "resource_id", "effective_date"),
        Index("idx_inventory_tx_event", "related_event_id"),
    )

    resource_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    effective_date: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    # Causal event; NULL for restocks and adjustments
    related_event_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id}: {self.transaction_type} "
            f"{self.quantity:+d} @ {self.effective_date}>"
        )
