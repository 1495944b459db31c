"""
advisorylock - Distributed mutual exclusion on PostgreSQL advisory locks.

Independent processes that share a database (for example several schema
migration runners starting at once) serialize a critical section using
only the connection they already hold. No coordination service needed.

This library provides:
- AdvisoryLockCoordinator: acquire, run work, release, restore connection state
- Lock number derivation with a namespace tag and discriminators
- Configurable client-side retry with cancellation
- SQLAlchemy asyncio executor for PostgreSQL
- In-memory lock server for tests

Example:
    >>> from advisorylock import advisory_lock, discriminator_for
    >>>
    >>> async with engine.connect() as conn:
    ...     async with advisory_lock(conn, discriminator_for("public.schema_history")):
    ...         await apply_migrations(conn)
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("advisorylock")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from advisorylock.coordinator import (
    TRY_LOCK_SQL,
    AdvisoryLockCoordinator,
    ConnectionState,
    LockAttemptResult,
    LockInfo,
    LockOutcome,
)
from advisorylock.exceptions import (
    AdvisoryLockError,
    AutoCommitRestoreError,
    LockAcquisitionError,
    LockInterruptedError,
    LockReleaseError,
    LockRetriesExceededError,
    SqlExecutionError,
)
from advisorylock.keys import (
    DEFAULT_NAMESPACE,
    MAX_DISCRIMINATOR,
    discriminator_for,
    lock_number,
    namespace_magic,
)
from advisorylock.postgresql import SQLAlchemyExecutor, advisory_lock
from advisorylock.protocols import SqlExecutor
from advisorylock.retry import (
    RETRY_FOREVER,
    LockRetryConfig,
    RetryPolicy,
    RetryStats,
    RetryStrategy,
    calculate_backoff,
)

__all__ = [
    # Version
    "__version__",
    # Coordinator
    "TRY_LOCK_SQL",
    "AdvisoryLockCoordinator",
    "ConnectionState",
    "LockAttemptResult",
    "LockInfo",
    "LockOutcome",
    # Exceptions
    "AdvisoryLockError",
    "AutoCommitRestoreError",
    "LockAcquisitionError",
    "LockInterruptedError",
    "LockReleaseError",
    "LockRetriesExceededError",
    "SqlExecutionError",
    # Keys
    "DEFAULT_NAMESPACE",
    "MAX_DISCRIMINATOR",
    "discriminator_for",
    "lock_number",
    "namespace_magic",
    # PostgreSQL
    "SQLAlchemyExecutor",
    "advisory_lock",
    # Protocols
    "SqlExecutor",
    # Retry
    "RETRY_FOREVER",
    "LockRetryConfig",
    "RetryPolicy",
    "RetryStats",
    "RetryStrategy",
    "calculate_backoff",
]
