"""
Module: booking_kernel.models.allocation
Responsibility: ORM persistence for event-resource bindings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one binding per (event, resource): UNIQUE uq_allocation_event_resource.
      The service layer checks this under the resource lock; the constraint
      is the last line against a racing insert.
    - quantity > 0 (CHECK ck_allocation_quantity_positive).
    - Bindings are hard-deleted on removal; there is no cancelled state.

Failure modes:
    - IntegrityError on a duplicate (event_id, resource_id) pair.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_kernel.db.base import Base, UUIDString
from booking_kernel.models.event import Event
from booking_kernel.models.resource import Resource


class ResourceAllocation(Base):
    """The commitment of a quantity of one resource to one event."""

    __tablename__ = "resource_allocations"

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "resource_id",
            name="uq_allocation_event_resource",
        ),
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
        Index("idx_allocation_resource", "resource_id"),
    )

    event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    resource_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
    )

    allocated_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    event: Mapped[Event] = relationship(lazy="joined")
    resource: Mapped[Resource] = relationship()

    def __repr__(self) -> str:
        return (
            f"<ResourceAllocation {self.id}: event={self.event_id} "
            f"resource={self.resource_id} qty={self.quantity}>"
        )
