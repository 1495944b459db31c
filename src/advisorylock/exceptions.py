"""Library exceptions for the advisorylock package."""

from __future__ import annotations


class AdvisoryLockError(Exception):
    """Base exception for advisorylock library."""

    pass


class SqlExecutionError(AdvisoryLockError):
    """
    Raised when the database rejects a statement or the connection fails.

    Wraps the driver-level error so callers only need to handle one type
    regardless of which driver is in use.

    Attributes:
        operation: The executor operation that failed (query, commit, ...)
        sql_state: SQLSTATE code reported by the server, if any
        error_message: The driver's error message
    """

    def __init__(
        self,
        operation: str,
        error_message: str,
        sql_state: str | None = None,
    ) -> None:
        self.operation = operation
        self.error_message = error_message
        self.sql_state = sql_state
        state_info = f" (SQL State: {sql_state})" if sql_state else ""
        super().__init__(f"SQL {operation} failed{state_info}: {error_message}")


class LockAcquisitionError(AdvisoryLockError):
    """
    Raised when the try-lock statement itself fails.

    This is a connectivity or SQL failure, not contention: it is never
    retried. The connection has already been rolled back (when the
    coordinator owned the transaction) and autocommit restored.

    Attributes:
        lock_num: The advisory lock number being acquired
        sql_state: SQLSTATE of the underlying failure, if known
    """

    def __init__(self, lock_num: int, reason: str, sql_state: str | None = None) -> None:
        self.lock_num = lock_num
        self.reason = reason
        self.sql_state = sql_state
        super().__init__(f"Unable to acquire PostgreSQL advisory lock {lock_num}: {reason}")


class LockRetriesExceededError(AdvisoryLockError):
    """
    Raised when the lock is still held elsewhere after the last retry.

    Attributes:
        attempts: Number of try-lock attempts made
        lock_num: The advisory lock number, when raised by a coordinator
    """

    def __init__(self, message: str, attempts: int, lock_num: int | None = None) -> None:
        self.attempts = attempts
        self.lock_num = lock_num
        super().__init__(message)


class LockInterruptedError(AdvisoryLockError):
    """
    Raised when waiting for the lock is cancelled between attempts.

    Attributes:
        attempts: Number of try-lock attempts made before cancellation
        lock_num: The advisory lock number, when raised by a coordinator
    """

    def __init__(self, message: str, attempts: int = 0, lock_num: int | None = None) -> None:
        self.attempts = attempts
        self.lock_num = lock_num
        super().__init__(message)


class LockReleaseError(AdvisoryLockError):
    """
    Raised when the commit that ends the lock's transaction fails.

    The lock may still be held by the server session when this is raised.
    It is reported even if the protected work completed successfully.

    Attributes:
        lock_num: The advisory lock number being released
        sql_state: SQLSTATE of the underlying failure, if known
    """

    def __init__(self, lock_num: int, reason: str, sql_state: str | None = None) -> None:
        self.lock_num = lock_num
        self.reason = reason
        self.sql_state = sql_state
        super().__init__(
            f"Unable to commit transaction releasing PostgreSQL advisory lock {lock_num}: "
            f"{reason}"
        )


class AutoCommitRestoreError(AdvisoryLockError):
    """
    Raised when autocommit could not be set back to its original value.

    Only raised by coordinators created with ``strict_autocommit_restore=True``,
    and only when no more important failure occurred.

    Attributes:
        expected_autocommit: The autocommit value that should have been restored
    """

    def __init__(self, expected_autocommit: bool, reason: str) -> None:
        self.expected_autocommit = expected_autocommit
        self.reason = reason
        super().__init__(
            f"Unable to restore autocommit to {expected_autocommit} for connection: {reason}"
        )


__all__ = [
    "AdvisoryLockError",
    "SqlExecutionError",
    "LockAcquisitionError",
    "LockRetriesExceededError",
    "LockInterruptedError",
    "LockReleaseError",
    "AutoCommitRestoreError",
]
