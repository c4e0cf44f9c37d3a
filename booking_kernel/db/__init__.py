"""Database layer - engine, base classes, and ledger immutability."""

from booking_kernel.db.base import UUID, Base, UUIDString
from booking_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "UUID",
]
