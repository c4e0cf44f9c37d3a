"""
Module: booking_kernel.models.resource
Responsibility: ORM persistence for bookable resources (rooms, equipment,
    consumable supplies).  The resource row is also the lock target that
    serializes every admission check for the resource.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Capacity fields are mutually exclusive by kind: max_concurrent_usage is
      NULL for exclusive/consumable resources and > 0 for shareable ones
      (CHECK constraint ck_resource_capacity_by_kind).
    - cached_current_stock is a read cache for consumables only.  It is always
      re-derivable from inventory_transactions and is never consulted by
      admission checks.
    - Ownership: a resource is global or owned by one organization.

Failure modes:
    - IntegrityError if the capacity CHECK constraint is violated.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import Base, UUIDString
from booking_kernel.domain.values import ResourceKind


class Resource(Base):
    """
    A resource that events can book.

    Contract:
        ``kind`` selects the admission rule.  Shareable resources carry a
        positive ``max_concurrent_usage``; consumables derive their balance
        from the ledger and may carry a cached copy of it.

    Non-goals:
        - Consumable stock is NOT stored authoritatively here.
    """

    __tablename__ = "resources"

    __table_args__ = (
        CheckConstraint(
            "(kind = 'shareable' AND max_concurrent_usage IS NOT NULL "
            "AND max_concurrent_usage > 0) OR "
            "(kind != 'shareable' AND max_concurrent_usage IS NULL)",
            name="ck_resource_capacity_by_kind",
        ),
        Index("idx_resource_organization", "organization_id"),
        Index("idx_resource_global", "is_global"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    kind: Mapped[ResourceKind] = mapped_column(
        String(20),
        nullable=False,
    )

    # NULL for global resources
    organization_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    is_global: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    max_concurrent_usage: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    cached_current_stock: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    @property
    def resource_kind(self) -> ResourceKind:
        return ResourceKind(self.kind)

    @property
    def capacity(self) -> int | None:
        """Static capacity: 1 for exclusive, the cap for shareable, None for consumable."""
        match self.resource_kind:
            case ResourceKind.EXCLUSIVE:
                return 1
            case ResourceKind.SHAREABLE:
                return self.max_concurrent_usage
            case _:
                return None

    def is_available_to(self, organization_id: UUID) -> bool:
        return self.is_global or self.organization_id == organization_id

    def __repr__(self) -> str:
        return f"<Resource {self.id}: {self.name} ({self.kind})>"
