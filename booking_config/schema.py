"""
BookingConfig schema.

The runtime configuration for one booking kernel process.  YAML files are
parsed into this frozen dataclass by the loader; nothing else in the
process reads configuration files or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Configuration is malformed or out of range."""


@dataclass(frozen=True)
class BookingConfig:
    """Validated runtime configuration."""

    database_url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    # None waits forever
    lock_timeout_seconds: float | None = 10.0
    log_level: str = "INFO"
    shortage_alerts: bool = True

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ConfigError("database.url is required")
        for name in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"database.{name} must be a non-negative integer, got {value!r}")
        if self.pool_size == 0:
            raise ConfigError("database.pool_size must be at least 1")
        if self.lock_timeout_seconds is not None:
            if isinstance(self.lock_timeout_seconds, bool) or not isinstance(
                self.lock_timeout_seconds, int | float
            ):
                raise ConfigError(
                    f"locking.timeout_seconds must be a number or null, "
                    f"got {self.lock_timeout_seconds!r}"
                )
            if self.lock_timeout_seconds <= 0:
                raise ConfigError("locking.timeout_seconds must be positive")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}")
