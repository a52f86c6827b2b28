"""
Tests for RetryPolicy (workshop_kernel.services.retry_service).

Covers:
- Error classification (types and message markers)
- Capped exponential backoff and validation of settings
- with_retry: success, transient failures, exhaustion, non-retryable errors
- Structured log output for each failed attempt
"""

import pytest

from workshop_kernel.exceptions import (
    EntityNotFoundError,
    RetryableError,
    RetryConfigurationError,
)
from workshop_kernel.services.retry_service import RetryPolicy, is_retryable_error


class _Flaky:
    """Fails ``failures`` times with ``error``, then returns ``result``."""

    def __init__(self, failures: int, error: Exception, result="ok"):
        self.failures = failures
        self.error = error
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


# =============================================================================
# Classification
# =============================================================================


class TestClassification:
    @pytest.mark.parametrize(
        "error",
        [
            RetryableError("db hiccup"),
            TimeoutError("slow"),
            ConnectionResetError("reset"),
            RuntimeError("ECONNRESET by peer"),
            RuntimeError("connect ETIMEDOUT 10.0.0.1"),
            RuntimeError("getaddrinfo ENOTFOUND db"),
            RuntimeError("ECONNREFUSED"),
            RuntimeError("Request Timeout"),
            RuntimeError("network unreachable"),
            RuntimeError("Temporary failure in name resolution"),
        ],
    )
    def test_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("bad input"),
            EntityNotFoundError("budget", "b-1"),
            RuntimeError("constraint violated"),
        ],
    )
    def test_not_retryable(self, error):
        assert not is_retryable_error(error)


# =============================================================================
# Backoff
# =============================================================================


class TestBackoff:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.initial_delay_ms == 1000
        assert policy.max_delay_ms == 30000
        assert policy.max_attempts == 3

    def test_doubles_until_capped(self):
        policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=1000)
        delays = [policy.calculate_delay(n) for n in range(1, 7)]
        assert delays == [100, 200, 400, 800, 1000, 1000]

    def test_delays_non_decreasing(self):
        policy = RetryPolicy(initial_delay_ms=7, max_delay_ms=500)
        delays = [policy.calculate_delay(n) for n in range(1, 20)]
        assert delays == sorted(delays)
        assert max(delays) == 500

    def test_max_below_initial_rejected(self):
        with pytest.raises(RetryConfigurationError) as exc_info:
            RetryPolicy(initial_delay_ms=500, max_delay_ms=100)
        assert exc_info.value.code == "RETRY_CONFIGURATION"
        assert exc_info.value.initial_delay_ms == 500
        assert exc_info.value.max_delay_ms == 100

    @pytest.mark.parametrize("bad", [0, -5, True, 2.5, "10", None])
    def test_invalid_setting_falls_back(self, bad, captured_logs):
        policy = RetryPolicy(max_attempts=bad)
        assert policy.max_attempts == 3

        warnings = [r for r in captured_logs() if r["message"] == "retry_config_invalid"]
        assert len(warnings) == 1
        assert warnings[0]["setting"] == "max_attempts"
        assert warnings[0]["default"] == 3


# =============================================================================
# with_retry
# =============================================================================


class TestWithRetry:
    def test_success_first_try(self, sleeps):
        policy = RetryPolicy(sleep=sleeps.append)
        assert policy.with_retry(lambda: 42) == 42
        assert sleeps == []

    def test_recovers_after_transient_failures(self, sleeps):
        policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=1000, max_attempts=3, sleep=sleeps.append)
        op = _Flaky(2, TimeoutError("timeout"))

        assert policy.with_retry(op) == "ok"
        assert op.calls == 3
        assert sleeps == [0.1, 0.2]

    def test_exhaustion_wraps_last_error(self, sleeps):
        policy = RetryPolicy(initial_delay_ms=50, max_delay_ms=60, max_attempts=3, sleep=sleeps.append)
        cause = ConnectionError("network down")
        op = _Flaky(10, cause)

        with pytest.raises(RetryableError) as exc_info:
            policy.with_retry(op)

        err = exc_info.value
        assert op.calls == 3
        assert err.attempts == 3
        assert err.cause is cause
        assert err.__cause__ is cause
        assert str(err) == "Operation failed after 3 attempts: network down"
        assert sleeps == [0.05, 0.06]

    def test_non_retryable_attempted_once(self, sleeps):
        policy = RetryPolicy(sleep=sleeps.append)
        cause = ValueError("bad data")
        op = _Flaky(10, cause)

        with pytest.raises(RetryableError) as exc_info:
            policy.with_retry(op)

        assert op.calls == 1
        assert exc_info.value.attempts == 1
        assert exc_info.value.cause is cause
        assert sleeps == []

    def test_single_attempt_policy(self, sleeps):
        policy = RetryPolicy(max_attempts=1, sleep=sleeps.append)
        op = _Flaky(1, TimeoutError("timeout"))
        with pytest.raises(RetryableError):
            policy.with_retry(op)
        assert op.calls == 1
        assert sleeps == []


# =============================================================================
# Logging
# =============================================================================


class TestRetryLogging:
    def test_each_failed_attempt_logged(self, sleeps, captured_logs):
        policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=1000, max_attempts=3, sleep=sleeps.append)

        with pytest.raises(RetryableError):
            policy.with_retry(_Flaky(5, TimeoutError("timeout talking to db")))

        logs = captured_logs()
        attempts = [r for r in logs if r["message"] == "retry_attempt_failed"]
        assert [r["attempt"] for r in attempts] == [1, 2]
        assert [r["delay_ms"] for r in attempts] == [100, 200]
        assert all(r["level"] == "WARNING" for r in attempts)
        assert attempts[0]["error_type"] == "TimeoutError"
        assert attempts[0]["max_attempts"] == 3

        final = [r for r in logs if r["message"] == "retry_exhausted"]
        assert len(final) == 1
        assert final[0]["level"] == "ERROR"
        assert final[0]["attempt"] == 3

    def test_non_retryable_logged(self, captured_logs):
        policy = RetryPolicy()
        with pytest.raises(RetryableError):
            policy.with_retry(_Flaky(1, KeyError("missing")))

        messages = [r["message"] for r in captured_logs()]
        assert "retry_not_retryable" in messages
        assert "retry_attempt_failed" not in messages

    def test_long_error_message_truncated(self, sleeps, captured_logs):
        policy = RetryPolicy(max_attempts=2, sleep=sleeps.append)
        with pytest.raises(RetryableError):
            policy.with_retry(_Flaky(5, TimeoutError("timeout " + "x" * 500)))

        logged = next(r for r in captured_logs() if r["message"] == "retry_attempt_failed")
        assert len(logged["error_message"]) == 200
        assert logged["error_message"].endswith("...")
