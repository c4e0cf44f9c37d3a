"""
booking_config -- single public entrypoint for booking kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``, and ``bootstrap()`` to turn it into a running
    ``BookingKernel``.  No other component reads configuration files or
    environment variables.

Architecture position:
    Configuration -- sits above ``booking_kernel``.  The kernel MUST NEVER
    import from ``booking_config``; configuration reaches it as plain
    constructor arguments.

Environment:
    BOOKING_CONFIG_PATH  path of a YAML file layered over defaults.yaml
    DATABASE_URL         overrides database.url

Failure modes:
    - ``FileNotFoundError`` for a missing configuration file.
    - ``ConfigError`` for malformed or out-of-range values.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from booking_config.loader import load_config
from booking_config.schema import BookingConfig, ConfigError

_logger = logging.getLogger("booking_kernel.config")

CONFIG_PATH_ENV = "BOOKING_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> BookingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file.  Defaults to $BOOKING_CONFIG_PATH, then
            to the shipped defaults alone.

    Returns:
        Validated BookingConfig, with $DATABASE_URL applied on top.
    """
    source = path or os.environ.get(CONFIG_PATH_ENV) or None
    config = load_config(source)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = dataclasses.replace(config, database_url=database_url)

    _logger.info(
        "BOOKING_CONFIG_TRACE",
        extra={
            "config_source": str(source) if source else "defaults",
            "dialect": config.database_url.split(":", 1)[0],
            "lock_timeout_seconds": config.lock_timeout_seconds,
            "shortage_alerts": config.shortage_alerts,
        },
    )
    return config


def bootstrap(config: BookingConfig | None = None, create_schema: bool = False):
    """
    Initialize logging, the engine and ledger listeners, and return a
    ``BookingKernel`` wired from ``config``.

    Args:
        config: Configuration; ``get_active_config()`` when None.
        create_schema: Create missing tables (local runs and tests; production
            schemas are managed by migrations).
    """
    from booking_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from booking_kernel.db.immutability import register_immutability_listeners
    from booking_kernel.logging_config import configure_logging
    from booking_kernel.services import BookingKernel

    config = config or get_active_config()

    configure_logging(level=config.log_level)
    init_engine_from_url(
        config.database_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()

    return BookingKernel(
        get_session_factory(),
        lock_timeout=config.lock_timeout_seconds,
        shortage_alerts=config.shortage_alerts,
    )


__all__ = [
    "BookingConfig",
    "ConfigError",
    "bootstrap",
    "get_active_config",
    "load_config",
]
