"""
Configuration Loader (``workshop_config.loader``).

Responsibility
--------------
Loads the YAML configuration file, layers ``WORKSHOP_*`` environment
overrides on top, and parses the result into the frozen dataclasses of
``workshop_config.schema``.  Runtime callers go through
``workshop_config.get_engine_config()``, never through this module.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys are rejected, so a typo never silently falls back to a
  default.
* Environment values are typed (int / bool) before they reach the schema.
  Range checks on retry settings are left to ``RetryPolicy``, which falls
  back to its defaults with a warning.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, non-integer or non-boolean value, unknown log level
  -> ``ValueError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from workshop_config.schema import DatabaseSettings, EngineConfig, RetrySettings

# env var -> (section or None for top level, key, kind)
ENV_OVERRIDES: dict[str, tuple[str | None, str, str]] = {
    "WORKSHOP_RETRY_INITIAL_DELAY_MS": ("retry", "initial_delay_ms", "int"),
    "WORKSHOP_RETRY_MAX_DELAY_MS": ("retry", "max_delay_ms", "int"),
    "WORKSHOP_RETRY_MAX_ATTEMPTS": ("retry", "max_attempts", "int"),
    "WORKSHOP_DATABASE_URL": ("database", "url", "str"),
    "WORKSHOP_DATABASE_ECHO": ("database", "echo", "bool"),
    "WORKSHOP_LOG_LEVEL": (None, "log_level", "str"),
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root in {path} must be a mapping, got {type(data).__name__}")
    return data


def parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {value!r}") from None
    raise ValueError(f"{name} must be an integer, got {value!r}")


def parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with every set ``WORKSHOP_*`` variable applied."""
    merged: dict[str, Any] = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in data.items()
    }
    for env_name, (section, key, kind) in ENV_OVERRIDES.items():
        if env_name not in environ:
            continue
        raw = environ[env_name]
        if kind == "int":
            value: Any = parse_int(env_name, raw)
        elif kind == "bool":
            value = parse_bool(env_name, raw)
        else:
            value = raw
        if section is None:
            merged[key] = value
        else:
            merged.setdefault(section, {})[key] = value
    return merged


def _check_keys(section: str, data: Mapping[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown {section} configuration keys: {sorted(unknown)}")


def parse_retry(data: Mapping[str, Any]) -> RetrySettings:
    """Parse the ``retry`` section."""
    _check_keys("retry", data, {"initial_delay_ms", "max_delay_ms", "max_attempts"})
    defaults = RetrySettings()
    return RetrySettings(
        initial_delay_ms=parse_int(
            "retry.initial_delay_ms", data.get("initial_delay_ms", defaults.initial_delay_ms)
        ),
        max_delay_ms=parse_int(
            "retry.max_delay_ms", data.get("max_delay_ms", defaults.max_delay_ms)
        ),
        max_attempts=parse_int(
            "retry.max_attempts", data.get("max_attempts", defaults.max_attempts)
        ),
    )


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section."""
    _check_keys("database", data, {"url", "echo", "pool_size", "max_overflow"})
    defaults = DatabaseSettings()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url.strip():
        raise ValueError(f"database.url must be a non-empty string, got {url!r}")
    return DatabaseSettings(
        url=url,
        echo=parse_bool("database.echo", data.get("echo", defaults.echo)),
        pool_size=parse_int("database.pool_size", data.get("pool_size", defaults.pool_size)),
        max_overflow=parse_int(
            "database.max_overflow", data.get("max_overflow", defaults.max_overflow)
        ),
    )


def parse_log_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
    return level


def parse_engine_config(data: Mapping[str, Any]) -> EngineConfig:
    """Parse a full configuration mapping into an ``EngineConfig``."""
    _check_keys("top-level", data, {"retry", "database", "log_level"})
    return EngineConfig(
        retry=parse_retry(data.get("retry") or {}),
        database=parse_database(data.get("database") or {}),
        log_level=parse_log_level(data.get("log_level", logging.getLevelName(logging.INFO))),
    )
