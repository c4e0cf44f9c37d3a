"""
Module: booking_kernel.models.event
Responsibility: Minimal persistence for the events that resources are bound
    to.  Events are owned by the event-management collaborator; the
    allocation core only reads the time window and the owning organization.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - end_time > start_time (CHECK ck_event_window).
    - (start_time, end_time) index supports the overlap query used by
      exclusive and shareable admission.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import Base, UUIDString
from booking_kernel.domain.values import TimeWindow


class Event(Base):
    """An event's identity, organization and half-open time window."""

    __tablename__ = "events"

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_event_window"),
        Index("idx_event_org_window", "organization_id", "start_time", "end_time"),
        Index("idx_event_window", "start_time", "end_time"),
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    start_time: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    end_time: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    capacity: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.start_time, end=self.end_time)

    def __repr__(self) -> str:
        return f"<Event {self.id}: {self.title} [{self.start_time}, {self.end_time})>"
