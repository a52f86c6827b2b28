"""
RetryPolicy -- classified retry with capped exponential backoff.

Responsibility:
    Wraps a storage call so that transient infrastructure failures are
    re-attempted with backoff and every other failure surfaces at once,
    always as a ``RetryableError`` carrying the original cause.

Architecture position:
    Kernel > Services -- imperative shell.  Used by WorkflowCoordinator and
    StockLedger around every repository call.  Knows nothing about the
    aggregates it protects.

Invariants enforced:
    - A non-retryable failure is attempted exactly once.
    - A retryable failure is attempted at most ``max_attempts`` times.
    - Delay before attempt n+1 is ``min(initial * 2**(n-1), max)`` ms, so
      delays are non-decreasing and capped.
    - ``max_delay_ms >= initial_delay_ms`` or construction fails.

Failure modes:
    - RetryConfigurationError at construction when max < initial.
    - RetryableError from ``with_retry`` when the operation does not
      succeed (``cause`` is the last error, ``attempts`` how many ran).

Usage:
    policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=1000)
    order = policy.with_retry(lambda: repo.load(order_id))
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from workshop_kernel.exceptions import RetryableError, RetryConfigurationError
from workshop_kernel.logging_config import get_logger

logger = get_logger("services.retry_service")

T = TypeVar("T")

# Case-insensitive substrings that mark an error message as transient.
RETRYABLE_MESSAGE_MARKERS: tuple[str, ...] = (
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "ECONNREFUSED",
    "timeout",
    "network",
    "temporary",
)

# Exception types that are transient regardless of their message.
RETRYABLE_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    RetryableError,
    TimeoutError,
    ConnectionError,
)

DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000
DEFAULT_MAX_ATTEMPTS = 3

_MAX_LOGGED_MESSAGE = 200


def _valid_positive_int(name: str, value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        logger.warning(
            "retry_config_invalid",
            extra={"setting": name, "value": repr(value), "default": default},
        )
        return default
    return value


def _truncate(message: str) -> str:
    if len(message) <= _MAX_LOGGED_MESSAGE:
        return message
    return message[: _MAX_LOGGED_MESSAGE - 3] + "..."


def is_retryable_error(error: BaseException) -> bool:
    """Classify ``error`` as transient (worth another attempt) or not."""
    if isinstance(error, RETRYABLE_EXCEPTION_TYPES):
        return True
    message = str(error).lower()
    return any(marker.lower() in message for marker in RETRYABLE_MESSAGE_MARKERS)


class RetryPolicy:
    """
    Retry wrapper for storage calls.

    Contract:
        ``with_retry(operation)`` calls ``operation()`` with no arguments and
        returns its result, or raises ``RetryableError``.

    Guarantees:
        - Invalid settings (non-integers, booleans, values <= 0) fall back
          to the defaults with a warning log.
        - Each non-final failed attempt logs ``retry_attempt_failed`` at
          WARNING; the final failure logs ``retry_exhausted`` or
          ``retry_not_retryable`` at ERROR.

    Non-goals:
        - Does NOT add jitter.
        - Does NOT roll back the session between attempts; an operation
          that half-wrote before failing must be safe to call again.
    """

    def __init__(
        self,
        initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.initial_delay_ms = _valid_positive_int(
            "initial_delay_ms", initial_delay_ms, DEFAULT_INITIAL_DELAY_MS
        )
        self.max_delay_ms = _valid_positive_int(
            "max_delay_ms", max_delay_ms, DEFAULT_MAX_DELAY_MS
        )
        self.max_attempts = _valid_positive_int(
            "max_attempts", max_attempts, DEFAULT_MAX_ATTEMPTS
        )
        if self.max_delay_ms < self.initial_delay_ms:
            raise RetryConfigurationError(self.initial_delay_ms, self.max_delay_ms)
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> int:
        """Milliseconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay_ms * 2 ** (attempt - 1), self.max_delay_ms)

    def with_retry(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` under this policy.

        Raises:
            RetryableError: When the operation fails with a non-retryable
                error (after one attempt) or keeps failing with a
                retryable one until ``max_attempts`` is reached.
        """
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as exc:
                retryable = is_retryable_error(exc)
                message = _truncate(str(exc))

                if not retryable or attempt >= self.max_attempts:
                    logger.error(
                        "retry_exhausted" if retryable else "retry_not_retryable",
                        extra={
                            "attempt": attempt,
                            "max_attempts": self.max_attempts,
                            "error_type": type(exc).__name__,
                            "error_message": message,
                        },
                    )
                    raise RetryableError(
                        f"Operation failed after {attempt} attempts: {exc}",
                        cause=exc,
                        attempts=attempt,
                    ) from exc

                delay_ms = self.calculate_delay(attempt)
                logger.warning(
                    "retry_attempt_failed",
                    extra={
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "delay_ms": delay_ms,
                        "error_type": type(exc).__name__,
                        "error_message": message,
                    },
                )
                self._sleep(delay_ms / 1000)
                attempt += 1
