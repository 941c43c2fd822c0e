"""Retry strategies for step execution.

A step gets ``retry_count`` extra attempts after its first failure. Each
retry waits according to the strategy; the attempt itself is bounded by the
step timeout (applied by the caller, not here).

Example:
    >>> from agentflow.orchestration.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_retries=3, base_delay=1.0, max_delay=30.0, jitter=False)
    >>> [strategy.next_delay(n) for n in range(3)]
    [1.0, 2.0, 4.0]
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from agentflow.core.errors import is_retryable
from agentflow.orchestration.models import utcnow

if TYPE_CHECKING:
    from agentflow.core.config import OrchestratorSettings

T = TypeVar("T")


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, retries_done: int, error: BaseException | None = None) -> bool:
        """Determine if another retry should be attempted.

        Args:
            retries_done: Retries already made (0 after the first failure)
            error: The exception that caused the failure

        Returns:
            True if should retry, False otherwise
        """
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) ± jitter

    Attributes:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier ** attempt),
            self.max_delay,
        )

        if self.jitter and delay > 0:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = min(max(0.0, delay), self.max_delay)

        return delay

    def should_retry(self, retries_done: int, error: BaseException | None = None) -> bool:
        """Retry while budget remains and the error is not marked non-retryable."""
        if retries_done >= self.max_retries:
            return False
        if error is not None:
            return is_retryable(error)
        return True

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings, max_retries: int) -> ExponentialBackoff:
        """Build a strategy from the engine's backoff settings."""
        return cls(
            max_retries=max_retries,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            jitter=settings.retry_jitter,
        )


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail immediately."""

    def next_delay(self, attempt: int) -> float:
        """No delay needed."""
        return 0.0

    def should_retry(self, retries_done: int, error: BaseException | None = None) -> bool:
        """Never retry."""
        return False


@dataclass
class RetryContext:
    """Tracks retry state for one step and runs its attempts.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_retries=2))
        >>> patch = await ctx.run_async(attempt_once)
        >>> ctx.attempts
        1
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, BaseException, float], None] | None = None
    attempt: int = field(default=0, init=False)
    last_error: BaseException | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, BaseException, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since first attempt."""
        return (utcnow() - self.started_at).total_seconds()

    async def run_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute async function with retry logic.

        ``asyncio.CancelledError`` is never retried; it propagates at once.

        Raises:
            Last exception if all retries exhausted
        """
        while True:
            self.attempt += 1
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                retries_done = self.attempt - 1
                if not self.strategy.should_retry(retries_done, e):
                    raise

                delay = self.strategy.next_delay(retries_done)

                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                await asyncio.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "NoRetry",
    "RetryContext",
]
