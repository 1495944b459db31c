"""
Shared pytest fixtures for the advisorylock tests.

This module provides:
- In-memory lock server and executor fixtures
- Retry configuration that never sleeps
- Coordinator factory wired to a MockTracer
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from advisorylock import AdvisoryLockCoordinator, LockRetryConfig, RetryStrategy
from advisorylock.observability import MockTracer
from advisorylock.testing import InMemoryAdvisoryLockServer, InMemoryExecutor

# =============================================================================
# Lock Server Fixtures
# =============================================================================


@pytest.fixture
def lock_server() -> InMemoryAdvisoryLockServer:
    """Provide a fresh in-memory advisory lock server."""
    return InMemoryAdvisoryLockServer()


@pytest.fixture
def executor(lock_server: InMemoryAdvisoryLockServer) -> InMemoryExecutor:
    """Provide a connection in autocommit mode."""
    return lock_server.connect()


@pytest.fixture
def other_executor(lock_server: InMemoryAdvisoryLockServer) -> InMemoryExecutor:
    """Provide a second connection to the same server."""
    return lock_server.connect()


# =============================================================================
# Retry Fixtures
# =============================================================================


@pytest.fixture
def fast_retry_config() -> LockRetryConfig:
    """Retry configuration with three retries and no delay."""
    return LockRetryConfig(retry_count=3, retry_interval=0.0, max_interval=0.0)


@pytest.fixture
def sleeps() -> list[float]:
    """Collects the delays requested by a RetryStrategy using recording_sleep."""
    return []


@pytest.fixture
def recording_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    """Sleep replacement that records the delay and returns immediately."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


# =============================================================================
# Coordinator Fixtures
# =============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a tracer that records spans."""
    return MockTracer()


@pytest.fixture
def make_coordinator(
    fast_retry_config: LockRetryConfig,
    mock_tracer: MockTracer,
) -> Callable[..., AdvisoryLockCoordinator]:
    """
    Factory for coordinators with fast retries and a MockTracer.

    Example:
        >>> coordinator = make_coordinator(executor, discriminator=1)
    """

    def _make(
        executor: InMemoryExecutor,
        discriminator: int = 1,
        **options: Any,
    ) -> AdvisoryLockCoordinator:
        options.setdefault("retry_policy", RetryStrategy(fast_retry_config))
        options.setdefault("tracer", mock_tracer)
        return AdvisoryLockCoordinator(executor, discriminator, **options)

    return _make
