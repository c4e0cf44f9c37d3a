"""
Structured JSON logging for the booking kernel.

Every record is one JSON object per line.  Request-scoped identifiers
(correlation, actor, resource, event, allocation) ride in contextvars and are
merged into each record, so a service only binds them once per operation:

    with LogContext.bind(resource_id=rid, event_id=eid, actor_id=actor):
        ...  # every log line below carries the three ids

Kernel ids are UUIDs and kernel datetimes are naive UTC; both are rendered
as strings, datetimes with an explicit ``+00:00`` offset.  Frozen record
DTOs placed in ``extra`` are rendered as objects.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

ContextValue = UUID | str | None


def _as_context_value(value: ContextValue) -> str | None:
    return None if value is None else str(value)


class LogContext:
    """Thread-safe / async-safe holder for the ids of the operation in flight."""

    _FIELD_NAMES = (
        "correlation_id",
        "actor_id",
        "resource_id",
        "event_id",
        "allocation_id",
    )

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"log_{name}", default=None) for name in _FIELD_NAMES
    }

    @classmethod
    def _var(cls, name: str) -> ContextVar[str | None]:
        try:
            return cls._vars[name]
        except KeyError:
            raise TypeError(f"Unknown log context field: {name!r}") from None

    @classmethod
    def set(
        cls,
        *,
        correlation_id: ContextValue = None,
        actor_id: ContextValue = None,
        resource_id: ContextValue = None,
        event_id: ContextValue = None,
        allocation_id: ContextValue = None,
    ) -> None:
        """Set context fields. Only non-None values are updated."""
        values = {
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "resource_id": resource_id,
            "event_id": event_id,
            "allocation_id": allocation_id,
        }
        for name, value in values.items():
            if value is not None:
                cls._vars[name].set(_as_context_value(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return all non-None context fields as a dict."""
        ctx: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            val = cls._vars[name].get()
            if val is not None:
                ctx[name] = val
        return ctx

    @classmethod
    def clear(cls) -> None:
        """Reset all context fields to None."""
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **kwargs: ContextValue) -> "_LogContextManager":
        """
        Context manager that sets fields on entry and restores on exit.

        None values leave the field as it is.  Unknown field names raise
        TypeError immediately, not on entry.
        """
        for name in kwargs:
            cls._var(name)
        return _LogContextManager(**kwargs)


class _LogContextManager:
    """Context manager for LogContext.bind()."""

    def __init__(self, **kwargs: ContextValue):
        self._kwargs = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> type[LogContext]:
        for key, val in self._kwargs.items():
            if val is not None:
                self._tokens[key] = LogContext._var(key).set(_as_context_value(val))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for key, token in self._tokens.items():
            LogContext._var(key).reset(token)
        self._tokens.clear()


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName", "ts", "level", "logger"}


class _JSONEncoder(json.JSONEncoder):
    """Render UUIDs, naive-UTC datetimes, enums and record DTOs."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                obj = obj.replace(tzinfo=UTC)
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        payload.update(LogContext.get_all())

        # explicit extra wins over bound context
        for key, val in vars(record).items():
            if key not in _RESERVED_KEYS:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            # Structured fields from BookingKernelError subclasses
            for k, v in vars(exc).items():
                if not k.startswith("_") and k not in ("args", "code"):
                    payload[f"exc_{k}"] = v
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "booking_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the booking_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_installed_handler: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Configure the booking_kernel logger hierarchy (idempotent).

    ``level`` accepts a logging constant or a level name in any case, as
    read from the ``logging.level`` configuration key.  Only the first call
    installs a handler; later calls return without touching anything.
    """
    global _configured, _installed_handler
    with _lock:
        if _configured:
            return
        _configured = True

        if isinstance(level, str):
            level = level.upper()

        root_logger = logging.getLogger(_LOGGER_PREFIX)
        root_logger.setLevel(level)
        root_logger.propagate = False

        h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        h.setFormatter(StructuredFormatter())
        root_logger.addHandler(h)
        _installed_handler = h


def reset_logging() -> None:
    """Remove the installed handler and allow reconfiguration. FOR TESTING ONLY."""
    global _configured, _installed_handler
    with _lock:
        _configured = False
        logger = logging.getLogger(_LOGGER_PREFIX)
        if _installed_handler is not None:
            logger.removeHandler(_installed_handler)
            _installed_handler = None
        logger.setLevel(logging.WARNING)
        logger.propagate = True
