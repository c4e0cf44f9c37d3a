"""
Configuration Loader (``booking_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a ``BookingConfig``.
Callers at runtime go through ``booking_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown sections or keys, wrong types  -> ``ConfigError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from booking_config.schema import BookingConfig, ConfigError

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# section -> {yaml key: BookingConfig field}
_FIELD_MAP: dict[str, dict[str, str]] = {
    "database": {
        "url": "database_url",
        "echo": "echo",
        "pool_size": "pool_size",
        "max_overflow": "max_overflow",
        "pool_timeout": "pool_timeout",
        "pool_recycle": "pool_recycle",
    },
    "locking": {"timeout_seconds": "lock_timeout_seconds"},
    "logging": {"level": "log_level"},
    "inventory": {"shortage_alerts": "shortage_alerts"},
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _flatten(data: dict[str, Any], source: str) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for section, body in data.items():
        fields = _FIELD_MAP.get(section)
        if fields is None:
            raise ConfigError(f"{source}: unknown section '{section}'")
        if body is None:
            continue
        if not isinstance(body, dict):
            raise ConfigError(f"{source}: section '{section}' must be a mapping")
        for key, value in body.items():
            if key not in fields:
                raise ConfigError(f"{source}: unknown key '{section}.{key}'")
            values[fields[key]] = value
    return values


def parse_config(data: dict[str, Any], base: dict[str, Any] | None = None) -> BookingConfig:
    """
    Build a BookingConfig from parsed YAML, layered over ``base``.

    ``base`` is itself parsed YAML (normally the shipped defaults).
    """
    values = _flatten(base, "defaults") if base else {}
    values.update(_flatten(data, "config"))

    if "echo" in values and not isinstance(values["echo"], bool):
        raise ConfigError("database.echo must be a boolean")
    if "shortage_alerts" in values and not isinstance(values["shortage_alerts"], bool):
        raise ConfigError("inventory.shortage_alerts must be a boolean")
    if "log_level" in values:
        values["log_level"] = str(values["log_level"]).upper()
    if "database_url" not in values:
        raise ConfigError("database.url is required")

    return BookingConfig(**values)


def load_config(path: Path | str | None = None) -> BookingConfig:
    """
    Load configuration from ``path`` layered over the shipped defaults.

    With no path, the defaults alone are returned.
    """
    defaults = load_yaml_file(DEFAULTS_PATH)
    if path is None:
        return parse_config(defaults)
    return parse_config(load_yaml_file(Path(path)), base=defaults)
