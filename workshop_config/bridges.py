"""
Config -> Kernel Bridges.

Functions that turn an ``EngineConfig`` into kernel objects.  They live in
workshop_config (the producer) because the kernel must NEVER import
workshop_config.

Usage:
    from workshop_config import get_engine_config
    from workshop_config.bridges import (
        build_retry_policy,
        configure_kernel_logging,
        init_database,
    )

    config = get_engine_config()
    configure_kernel_logging(config)
    init_database(config)
    policy = build_retry_policy(config)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.engine import Engine

from workshop_config.schema import EngineConfig
from workshop_kernel.db.engine import create_tables, init_engine_from_url
from workshop_kernel.logging_config import configure_logging
from workshop_kernel.services.retry_service import RetryPolicy


def build_retry_policy(
    config: EngineConfig,
    sleep: Callable[[float], None] | None = None,
) -> RetryPolicy:
    """Build a RetryPolicy from ``config.retry``.

    ``sleep`` replaces ``time.sleep``; tests pass a recorder.
    """
    kwargs: dict[str, Any] = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return RetryPolicy(
        initial_delay_ms=config.retry.initial_delay_ms,
        max_delay_ms=config.retry.max_delay_ms,
        max_attempts=config.retry.max_attempts,
        **kwargs,
    )


def init_database(config: EngineConfig, create_schema: bool = False) -> Engine:
    """Initialise the kernel engine from ``config.database``."""
    engine = init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    if create_schema:
        create_tables()
    return engine


def configure_kernel_logging(
    config: EngineConfig,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the ``workshop_kernel`` logger hierarchy at ``config.log_level``."""
    configure_logging(
        level=logging.getLevelName(config.log_level),
        stream=stream,
        handler=handler,
    )
