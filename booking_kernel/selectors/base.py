"""
Module: booking_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: balances, overlap facts and
    listings are computed here without any mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and domain/ value types.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or plain
      values, not ORM instances.
    - Session ownership: the caller owns the session and its transaction
      scope.  Admission facts are read inside the locked unit of work;
      display reads use a short-lived session of their own.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from booking_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
