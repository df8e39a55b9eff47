"""
Bounded retry - Retry a callable until it succeeds or a wall-clock ceiling
is reached.

Delays grow exponentially from a base delay, are capped at a maximum delay
and carry ±jitter, the same backoff shape used when requeueing failed
resources.
"""

import logging
import random
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryTimeoutError(Exception):
    """Raised when the retry ceiling is reached while errors are still retryable."""

    def __init__(self, timeout: float, last_error: Optional[BaseException] = None):
        self.timeout = timeout
        self.last_error = last_error
        message = f"timeout while waiting for state to become successful (last error: {last_error})"
        super().__init__(message)


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter_factor: float = 0.1,
) -> float:
    """
    Calculate the delay before the next attempt.

    Args:
        attempt: Zero-based number of attempts already made
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for the delay, before jitter
        jitter_factor: Jitter factor ±X (0.1 = ±10%)

    Returns:
        Delay in seconds, never negative
    """
    delay = min(base_delay * (2 ** min(attempt, 10)), max_delay)
    delay *= 1 + random.uniform(-jitter_factor, jitter_factor)
    return max(delay, 0.0)


def retry(
    func: Callable[[], T],
    timeout: float,
    is_retryable: Callable[[Exception], bool],
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter_factor: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Call func until it returns, retrying errors accepted by is_retryable.

    Non-retryable errors propagate immediately. When the ceiling is reached
    while the last error was retryable, RetryTimeoutError is raised with the
    last error chained.

    Args:
        func: Zero-argument callable to invoke
        timeout: Wall-clock ceiling in seconds for the whole retry loop
        is_retryable: Predicate deciding whether an error should be retried
        base_delay: Initial backoff delay in seconds
        max_delay: Maximum backoff delay in seconds
        jitter_factor: Backoff jitter factor
        sleep: Sleep function (overridable in tests)
        clock: Monotonic clock function (overridable in tests)

    Returns:
        Whatever func returns on success

    Raises:
        RetryTimeoutError: If the ceiling is reached
    """
    deadline = clock() + timeout
    attempt = 0

    while True:
        try:
            return func()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e

        remaining = deadline - clock()
        if remaining <= 0:
            raise RetryTimeoutError(timeout, last_error) from last_error

        delay = min(
            backoff_delay(attempt, base_delay, max_delay, jitter_factor), remaining
        )
        logger.debug(
            f"Retryable error (attempt {attempt + 1}), retrying in {delay:.2f}s: "
            f"{last_error}"
        )
        sleep(delay)
        attempt += 1
