"""Unit tests for retry.py - Bounded retry combinator."""

import pytest
from unittest.mock import MagicMock

from retry import RetryTimeoutError, backoff_delay, retry


class FakeClock:
    """Monotonic clock advanced by sleep calls."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class Retryable(Exception):
    pass


class Fatal(Exception):
    pass


def is_retryable(error):
    return isinstance(error, Retryable)


class TestBackoffDelay:
    """Tests for backoff_delay."""

    def test_exponential_growth(self):
        """Test that delays double without jitter."""
        delays = [backoff_delay(i, base_delay=1, max_delay=100, jitter_factor=0) for i in range(4)]
        assert delays == [1, 2, 4, 8]

    def test_capped_at_max_delay(self):
        """Test that delays never exceed max_delay without jitter."""
        assert backoff_delay(20, base_delay=1, max_delay=10, jitter_factor=0) == 10

    def test_jitter_bounds(self):
        """Test that jitter stays within ±factor."""
        for _ in range(50):
            delay = backoff_delay(0, base_delay=10, max_delay=100, jitter_factor=0.1)
            assert 9 <= delay <= 11


class TestRetry:
    """Tests for retry."""

    def test_returns_on_first_success(self):
        """Test that a successful call is not retried."""
        func = MagicMock(return_value="ok")
        clock = FakeClock()
        assert retry(func, 30, is_retryable, sleep=clock.sleep, clock=clock) == "ok"
        assert func.call_count == 1
        assert clock.sleeps == []

    def test_retries_retryable_errors(self):
        """Test that retryable errors are retried until success."""
        func = MagicMock(side_effect=[Retryable(), Retryable(), "done"])
        clock = FakeClock()
        result = retry(
            func, 30, is_retryable, jitter_factor=0, sleep=clock.sleep, clock=clock
        )
        assert result == "done"
        assert func.call_count == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_non_retryable_error_propagates(self):
        """Test that non-retryable errors are raised immediately."""
        func = MagicMock(side_effect=Fatal("boom"))
        clock = FakeClock()
        with pytest.raises(Fatal):
            retry(func, 30, is_retryable, sleep=clock.sleep, clock=clock)
        assert func.call_count == 1

    def test_timeout_raises_with_last_error(self):
        """Test that reaching the ceiling raises RetryTimeoutError."""
        last = Retryable("still pending")
        func = MagicMock(side_effect=last)
        clock = FakeClock()

        with pytest.raises(RetryTimeoutError) as exc_info:
            retry(
                func, 5, is_retryable, jitter_factor=0, sleep=clock.sleep, clock=clock
            )

        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert exc_info.value.timeout == 5
        assert sum(clock.sleeps) == pytest.approx(5)

    def test_sleep_never_overshoots_deadline(self):
        """Test that the last sleep is truncated to the remaining time."""
        func = MagicMock(side_effect=Retryable())
        clock = FakeClock()
        with pytest.raises(RetryTimeoutError):
            retry(
                func,
                3,
                is_retryable,
                base_delay=2,
                max_delay=2,
                jitter_factor=0,
                sleep=clock.sleep,
                clock=clock,
            )
        assert clock.sleeps == [2, 1]

    def test_zero_timeout_attempts_once(self):
        """Test that a zero ceiling still makes one attempt."""
        func = MagicMock(side_effect=Retryable())
        clock = FakeClock()
        with pytest.raises(RetryTimeoutError):
            retry(func, 0, is_retryable, sleep=clock.sleep, clock=clock)
        assert func.call_count == 1
