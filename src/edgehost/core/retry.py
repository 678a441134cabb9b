"""Retry strategies shared by the downloader and the module loader.

One utility, parameterized by the total number of attempts and a
retryable-error predicate, drives both the release-archive download loop
(4 attempts, every ``DownloadError`` retried, no delay) and network module
fetches (3 attempts, only transient ``ModuleLoadError`` retried, short
exponential backoff).

Example:
    >>> from edgehost.core.retry import ConstantBackoff, RetryContext
    >>>
    >>> strategy = ConstantBackoff(max_attempts=4, delay=0.0)
    >>> ctx = RetryContext(strategy)
    >>> result = await ctx.run_async(fetch_archive, url)
    >>> ctx.attempts
    1
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from edgehost.core.errors import is_retryable

T = TypeVar("T")

RetryPredicate = Callable[[Exception], bool]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_attempts: int
    retry_if: RetryPredicate | None

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Number of attempts made so far (1 after the first failure)

        Returns:
            Delay in seconds before the next attempt
        """
        ...

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Determine if another attempt should be made.

        Args:
            attempt: Number of attempts made so far
            error: The exception that caused the failure

        Returns:
            True if another attempt is allowed and the error is retryable
        """
        if attempt >= self.max_attempts:
            return False

        if error is not None:
            predicate = self.retry_if or is_retryable
            return predicate(error)

        return True


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** (attempt - 1)), max_delay) + jitter

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retry_if: Predicate deciding which errors are retryable (None = is_retryable)
    """

    max_attempts: int = 3
    base_delay: float = 0.25
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    retry_if: RetryPredicate | None = None

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier ** max(attempt - 1, 0)),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between attempts (``delay=0`` retries immediately)."""

    max_attempts: int = 3
    delay: float = 0.0
    retry_if: RetryPredicate | None = None

    def next_delay(self, attempt: int) -> float:
        """Return constant delay."""
        return self.delay


@dataclass
class RetryContext:
    """Context tracking retry state.

    Attempts run sequentially; the last error is re-raised unchanged once
    the strategy refuses another attempt.

    Example:
        >>> ctx = RetryContext(ConstantBackoff(max_attempts=4))
        >>> path = await ctx.run_async(download_once, url)
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception, float], None] | None = None
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since first attempt."""
        return (utcnow() - self.started_at).total_seconds()

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    async def run_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Result from the first successful call

        Raises:
            The last exception once attempts are exhausted, or the first
            non-retryable one
        """
        while True:
            self.attempt += 1
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                if not self.strategy.should_retry(self.attempt, e):
                    raise

                delay = self.strategy.next_delay(self.attempt)

                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                if delay > 0:
                    await asyncio.sleep(delay)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int,
    retry_if: RetryPredicate | None = None,
    delay: float = 0.0,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    **kwargs: Any,
) -> T:
    """Run ``func`` up to ``max_attempts`` times with a constant delay."""
    strategy = ConstantBackoff(max_attempts=max_attempts, delay=delay, retry_if=retry_if)
    return await RetryContext(strategy, on_retry=on_retry).run_async(func, *args, **kwargs)


__all__ = [
    "RetryPredicate",
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "RetryContext",
    "retry_async",
]
