"""
workshop_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_engine_config()``.  No other component reads configuration files
    or ``WORKSHOP_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``workshop_kernel``.  The kernel MUST NEVER
    import from ``workshop_config``; ``workshop_config.bridges`` turns an
    ``EngineConfig`` into kernel objects.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_engine_config()``.
    - Precedence: environment variable > YAML file > schema default.

Failure modes:
    - ``FileNotFoundError`` -- the requested config file does not exist.
    - ``ValueError`` -- unknown keys or badly typed values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from workshop_config.loader import apply_env_overrides, load_yaml_file, parse_engine_config
from workshop_config.schema import DatabaseSettings, EngineConfig, RetrySettings

_logger = logging.getLogger("workshop_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_engine_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.
        environ: Environment mapping for overrides.  Defaults to
            ``os.environ``.

    Returns:
        A frozen ``EngineConfig``.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    data = apply_env_overrides(load_yaml_file(path), env)
    config = parse_engine_config(data)

    _logger.info(
        "engine_config_loaded",
        extra={
            "config_path": str(path),
            "overrides": sorted(k for k in env if k.startswith("WORKSHOP_")),
            "retry_max_attempts": config.retry.max_attempts,
            "database_dialect": config.database.url.split(":", 1)[0],
            "log_level": config.log_level,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "EngineConfig",
    "RetrySettings",
    "get_engine_config",
]
