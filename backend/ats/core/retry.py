"""
Bounded retry for calls into external stores (database, object storage).

Every gateway passes its store call through ``execute_with_retry`` so the
attempt-count contract lives in one place: with ``max_attempts=n`` the
operation runs at most ``n`` times, stops at the first success, and the wait
between attempts only suspends the calling task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, description: str, attempts: int, last_error: BaseException):
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")
        self.description = description
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Attempt budget and wait between attempts.

    Args:
        max_attempts: Total number of attempts, first one included (>= 1)
        delay: Seconds to wait before the second attempt
        backoff: Multiplier applied to the delay after each failed attempt
    """

    max_attempts: int = 3
    delay: float = 1.0
    backoff: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")
        if self.backoff < 1:
            raise ValueError("backoff must be at least 1")

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (2-based: the first retry is attempt 2)."""
        return self.delay * (self.backoff ** (attempt - 2))


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_if: Callable[[BaseException], bool] | None = None,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy's attempts are used up.

    Args:
        operation: Zero-argument callable returning an awaitable
        policy: Attempt count and delay
        retry_if: Predicate on the raised exception; False re-raises it at once
        description: Label used in log lines and in RetryError

    Returns:
        Whatever the first successful attempt returned

    Raises:
        RetryError: every attempt failed with a retryable exception
        Exception: a non-retryable exception, unchanged
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if retry_if is not None and not retry_if(e):
                raise
            if attempt >= policy.max_attempts:
                raise RetryError(description, attempt, e) from e
            attempt += 1
            delay = policy.delay_before(attempt)
            logger.warning(
                "%s failed (%s); retrying... attempt %d of %d in %.3fs",
                description,
                e,
                attempt,
                policy.max_attempts,
                delay,
            )
            await asyncio.sleep(delay)
