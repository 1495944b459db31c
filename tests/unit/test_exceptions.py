"""
Unit tests for exceptions module.

Tests all exception types and their error messages.
"""

import pytest

from advisorylock.exceptions import (
    AdvisoryLockError,
    AutoCommitRestoreError,
    LockAcquisitionError,
    LockInterruptedError,
    LockReleaseError,
    LockRetriesExceededError,
    SqlExecutionError,
)


class TestAdvisoryLockError:
    """Tests for the base AdvisoryLockError."""

    def test_base_exception(self):
        """Test that AdvisoryLockError can be raised with message."""
        with pytest.raises(AdvisoryLockError) as exc_info:
            raise AdvisoryLockError("Test error")
        assert str(exc_info.value) == "Test error"

    @pytest.mark.parametrize(
        "error_class",
        [
            SqlExecutionError,
            LockAcquisitionError,
            LockRetriesExceededError,
            LockInterruptedError,
            LockReleaseError,
            AutoCommitRestoreError,
        ],
    )
    def test_all_errors_share_base(self, error_class):
        """Every library error can be caught as AdvisoryLockError."""
        assert issubclass(error_class, AdvisoryLockError)


class TestSqlExecutionError:
    """Tests for SqlExecutionError."""

    def test_with_sql_state(self):
        """Test message includes operation and SQL state."""
        error = SqlExecutionError("commit", "connection reset", sql_state="08006")

        assert error.operation == "commit"
        assert error.error_message == "connection reset"
        assert error.sql_state == "08006"
        assert "SQL commit failed" in str(error)
        assert "SQL State: 08006" in str(error)
        assert "connection reset" in str(error)

    def test_without_sql_state(self):
        """Test message omits SQL state when unknown."""
        error = SqlExecutionError("query", "boom")

        assert error.sql_state is None
        assert "SQL State" not in str(error)


class TestLockAcquisitionError:
    """Tests for LockAcquisitionError."""

    def test_error_creation(self):
        """Test lock number and reason are kept and shown."""
        error = LockAcquisitionError(42, "connection refused", sql_state="08001")

        assert error.lock_num == 42
        assert error.reason == "connection refused"
        assert error.sql_state == "08001"
        assert "Unable to acquire PostgreSQL advisory lock 42" in str(error)
        assert "connection refused" in str(error)


class TestLockRetriesExceededError:
    """Tests for LockRetriesExceededError."""

    def test_error_creation(self):
        """Test attempts are recorded and lock number defaults to None."""
        error = LockRetriesExceededError("gave up", attempts=51)

        assert str(error) == "gave up"
        assert error.attempts == 51
        assert error.lock_num is None


class TestLockInterruptedError:
    """Tests for LockInterruptedError."""

    def test_default_attempts(self):
        """Test attempts defaults to zero."""
        error = LockInterruptedError("interrupted")

        assert str(error) == "interrupted"
        assert error.attempts == 0
        assert error.lock_num is None

    def test_lock_num(self):
        """Test the lock number can be given."""
        error = LockInterruptedError("interrupted", attempts=2, lock_num=7)

        assert error.lock_num == 7


class TestLockReleaseError:
    """Tests for LockReleaseError."""

    def test_error_creation(self):
        """Test message says the commit releasing the lock failed."""
        error = LockReleaseError(7, "server closed the connection")

        assert error.lock_num == 7
        assert error.reason == "server closed the connection"
        assert "Unable to commit transaction" in str(error)
        assert "advisory lock 7" in str(error)


class TestAutoCommitRestoreError:
    """Tests for AutoCommitRestoreError."""

    def test_error_creation(self):
        """Test expected value is kept and shown."""
        error = AutoCommitRestoreError(True, "connection lost")

        assert error.expected_autocommit is True
        assert "restore autocommit to True" in str(error)
