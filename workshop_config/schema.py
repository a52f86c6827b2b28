"""
Engine configuration schema.

Frozen dataclasses produced by ``workshop_config.loader`` and consumed by the
bridges.  Values here are already validated; the kernel objects built from
them never see raw YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetrySettings:
    """Backoff settings handed to ``RetryPolicy``."""

    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    max_attempts: int = 3


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to ``init_engine_from_url``."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Everything the workshop kernel needs at start-up."""

    retry: RetrySettings = field(default_factory=RetrySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    log_level: str = "INFO"
