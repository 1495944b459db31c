"""
Retry utilities for advisory lock acquisition.

The try-lock statement never waits on the server, so all waiting happens
here on the client: the strategy repeats an attempt until it succeeds,
sleeping between attempts, and gives up after a configured budget.

This module provides:
- LockRetryConfig: Configuration for retry behavior
- RetryStats: Statistics for the last retry run
- calculate_backoff: Calculate the delay before a retry
- RetryPolicy: Protocol the lock coordinator depends on
- RetryStrategy: Default policy with an optional cancellation event

Example:
    >>> strategy = RetryStrategy(LockRetryConfig(retry_count=10, retry_interval=0.5))
    >>> await strategy.run_with_retries(
    ...     try_lock,
    ...     "Interrupted while acquiring lock",
    ...     "Lock still held after 10 retries",
    ... )
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from advisorylock.exceptions import LockInterruptedError, LockRetriesExceededError

logger = logging.getLogger(__name__)

RETRY_FOREVER = -1


@dataclass
class LockRetryConfig:
    """
    Configuration for lock acquisition retries.

    Attributes:
        retry_count: Retries after the first attempt (-1 = retry forever,
            0 = a single attempt)
        retry_interval: Delay in seconds before the first retry
        max_interval: Maximum delay in seconds between retries
        backoff_multiplier: Growth factor of the delay (1.0 = fixed delay)
        jitter: Fraction of delay to add as random jitter (0-1)

    Example:
        >>> config = LockRetryConfig(
        ...     retry_count=100,
        ...     retry_interval=0.5,
        ...     backoff_multiplier=1.5,
        ...     max_interval=5.0,
        ... )
    """

    retry_count: int = 50
    retry_interval: float = 1.0
    max_interval: float = 60.0
    backoff_multiplier: float = 1.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.retry_count < RETRY_FOREVER:
            raise ValueError(
                f"retry_count must be >= -1, got {self.retry_count}. "
                "Use -1 to retry forever or 0 for a single attempt."
            )

        if self.retry_interval < 0:
            raise ValueError(f"retry_interval must be >= 0, got {self.retry_interval}.")

        if self.max_interval < self.retry_interval:
            raise ValueError(
                f"max_interval ({self.max_interval}) must be >= "
                f"retry_interval ({self.retry_interval})."
            )

        if self.backoff_multiplier < 1.0:
            raise ValueError(
                f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}."
            )

        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be between 0.0 and 1.0, got {self.jitter}.")

    @property
    def retries_forever(self) -> bool:
        """True when the retry budget is unlimited."""
        return self.retry_count == RETRY_FOREVER


@dataclass
class RetryStats:
    """
    Statistics for one retry run.

    Attributes:
        attempts: Total number of attempts (including the first)
        successes: Number of attempts that succeeded
        failures: Number of attempts that did not succeed
        total_delay_seconds: Total time spent waiting between attempts
    """

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_delay_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """
        Convert stats to dictionary for logging.

        Returns:
            Dictionary representation of stats
        """
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "total_delay_seconds": self.total_delay_seconds,
        }


def calculate_backoff(retry: int, config: LockRetryConfig) -> float:
    """
    Calculate the delay before a retry.

    Args:
        retry: Retry number (0-based; 0 is the wait after the first attempt)
        config: Retry configuration

    Returns:
        Delay in seconds

    Example:
        >>> config = LockRetryConfig(retry_interval=1.0, backoff_multiplier=2.0)
        >>> calculate_backoff(0, config)
        1.0
        >>> calculate_backoff(3, config)
        8.0
    """
    delay = config.retry_interval * (config.backoff_multiplier**retry)

    delay = min(delay, config.max_interval)

    jitter_range = delay * config.jitter
    delay += random.uniform(-jitter_range, jitter_range)  # nosec B311 - not crypto

    return max(0.0, delay)


@runtime_checkable
class RetryPolicy(Protocol):
    """
    Protocol for policies that drive repeated lock attempts.

    Implementations decide how often and how long to retry. They must raise
    LockRetriesExceededError once they give up and LockInterruptedError if
    they are cancelled while waiting, and must let any exception raised by
    the attempt itself propagate unchanged.
    """

    async def run_with_retries(
        self,
        attempt: Callable[[], Awaitable[bool]],
        interrupted_message: str,
        exhausted_message: str,
    ) -> None:
        """
        Call ``attempt`` until it returns True.

        Args:
            attempt: Async callable returning True on success
            interrupted_message: Message for LockInterruptedError
            exhausted_message: Message for LockRetriesExceededError
        """
        ...


class RetryStrategy:
    """
    Default retry policy for lock acquisition.

    Waits between attempts according to LockRetryConfig. An optional
    ``cancel_event`` is checked before every attempt and interrupts the
    wait between attempts as soon as it is set.

    Task cancellation (``asyncio.CancelledError``) is not converted; it
    propagates like anywhere else in asyncio code.

    Example:
        >>> cancel = asyncio.Event()
        >>> strategy = RetryStrategy(LockRetryConfig(retry_count=-1), cancel_event=cancel)
        >>> # elsewhere: cancel.set() stops the wait with LockInterruptedError
    """

    def __init__(
        self,
        config: LockRetryConfig | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Initialize the retry strategy.

        Args:
            config: Retry configuration (uses defaults if None)
            cancel_event: Event that interrupts acquisition when set
            sleep: Coroutine used to wait between attempts when no
                cancel_event is given (defaults to asyncio.sleep)
        """
        self._config = config or LockRetryConfig()
        self._cancel_event = cancel_event
        self._sleep = sleep or asyncio.sleep
        self._stats = RetryStats()

    @property
    def config(self) -> LockRetryConfig:
        """Get the retry configuration."""
        return self._config

    @property
    def stats(self) -> RetryStats:
        """Get statistics of the most recent run."""
        return self._stats

    async def run_with_retries(
        self,
        attempt: Callable[[], Awaitable[bool]],
        interrupted_message: str,
        exhausted_message: str,
    ) -> None:
        """
        Call ``attempt`` until it returns True.

        Args:
            attempt: Async callable returning True on success
            interrupted_message: Message for LockInterruptedError
            exhausted_message: Message for LockRetriesExceededError

        Raises:
            LockInterruptedError: If the cancel event is set
            LockRetriesExceededError: If the retry budget is spent
            Exception: Anything raised by ``attempt``, immediately
        """
        stats = RetryStats()
        self._stats = stats
        retry = 0

        while True:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise LockInterruptedError(interrupted_message, attempts=stats.attempts)

            stats.attempts += 1
            if await attempt():
                stats.successes += 1
                if stats.attempts > 1:
                    logger.info(
                        "Attempt succeeded after retry",
                        extra=stats.to_dict(),
                    )
                return

            stats.failures += 1
            if not self._config.retries_forever and retry >= self._config.retry_count:
                logger.error(
                    "All retries exhausted",
                    extra={**stats.to_dict(), "retry_count": self._config.retry_count},
                )
                raise LockRetriesExceededError(exhausted_message, attempts=stats.attempts)

            delay = calculate_backoff(retry, self._config)
            retry += 1
            stats.total_delay_seconds += delay

            logger.debug(
                "Attempt did not succeed, retrying",
                extra={"attempt": stats.attempts, "delay_seconds": delay},
            )

            await self._wait(delay, interrupted_message, stats)

    async def _wait(self, delay: float, interrupted_message: str, stats: RetryStats) -> None:
        """Sleep for ``delay`` seconds or until the cancel event is set."""
        if self._cancel_event is None:
            await self._sleep(delay)
            return

        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise LockInterruptedError(interrupted_message, attempts=stats.attempts)

    def __repr__(self) -> str:
        return (
            f"RetryStrategy("
            f"retry_count={self._config.retry_count}, "
            f"retry_interval={self._config.retry_interval}, "
            f"backoff_multiplier={self._config.backoff_multiplier})"
        )


__all__ = [
    "RETRY_FOREVER",
    "LockRetryConfig",
    "RetryStats",
    "calculate_backoff",
    "RetryPolicy",
    "RetryStrategy",
]
