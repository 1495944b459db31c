"""
Transaction-scoped PostgreSQL advisory lock coordinator.

The coordinator serializes a critical section across processes that share
a database, using ``pg_try_advisory_xact_lock`` on a connection the caller
already holds. A transaction-scoped advisory lock is released by the server
when its transaction ends, so the coordinator's job is mostly about
transaction boundaries:

- If the connection is in autocommit mode, the coordinator switches
  autocommit off so the lock lives in a transaction it owns, commits that
  transaction to release the lock, then switches autocommit back on.
- If autocommit is already off, the caller owns an ambient transaction.
  The lock joins it and is released when the caller ends it; the
  coordinator never commits or rolls back a transaction it did not open.

Usage:
    >>> coordinator = AdvisoryLockCoordinator(executor, discriminator=1)
    >>> result = await coordinator.execute(run_migrations)
    >>>
    >>> # Or as a scoped guard
    >>> async with coordinator.hold() as lock_info:
    ...     await run_migrations()
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from advisorylock.exceptions import (
    AutoCommitRestoreError,
    LockAcquisitionError,
    LockInterruptedError,
    LockReleaseError,
    LockRetriesExceededError,
    SqlExecutionError,
)
from advisorylock.keys import DEFAULT_NAMESPACE, lock_number
from advisorylock.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_ATTEMPTS,
    ATTR_LOCK_DISCRIMINATOR,
    ATTR_LOCK_ID,
    ATTR_LOCK_NAMESPACE,
    ATTR_LOCK_OWNS_TRANSACTION,
    Tracer,
    create_tracer,
)
from advisorylock.protocols import SqlExecutor
from advisorylock.retry import LockRetryConfig, RetryPolicy, RetryStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRY_LOCK_SQL = "SELECT pg_try_advisory_xact_lock(:lock_num)"

INTERRUPTED_MESSAGE = "Interrupted while attempting to acquire PostgreSQL advisory lock"
EXHAUSTED_MESSAGE = (
    "Number of retries exceeded while attempting to acquire PostgreSQL advisory lock. "
    "Configure the number of retries with the 'retry_count' setting of LockRetryConfig."
)


class LockAttemptResult(Enum):
    """
    Outcome of a single try-lock round trip.

    Values:
        ACQUIRED: The server granted the lock
        NOT_ACQUIRED: Another session holds the lock; eligible for retry
        FAILED: The statement failed; never retried
    """

    ACQUIRED = "acquired"
    NOT_ACQUIRED = "not_acquired"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectionState:
    """
    Connection state captured when an invocation starts.

    Passed explicitly to every step that needs to know whether it may end
    the transaction, instead of re-reading the connection's autocommit flag
    (which the coordinator itself changes along the way).

    Attributes:
        prior_autocommit: Autocommit setting found on the connection
    """

    prior_autocommit: bool

    @property
    def transaction_preexisting(self) -> bool:
        """True if the caller had an ambient transaction open."""
        return not self.prior_autocommit

    @property
    def owns_transaction(self) -> bool:
        """True if the coordinator opens, and must end, the lock's transaction."""
        return self.prior_autocommit


@dataclass(frozen=True)
class LockInfo:
    """
    Information about a held advisory lock.

    Attributes:
        lock_num: The PostgreSQL advisory lock number
        discriminator: Discriminator the lock number was built from
        namespace: Namespace tag the lock number was built from
        acquired_at: When the lock was acquired
        attempts: Number of try-lock round trips it took
        owns_transaction: Whether the coordinator will commit to release it
    """

    lock_num: int
    discriminator: int
    namespace: str
    acquired_at: datetime
    attempts: int
    owns_transaction: bool


@dataclass
class LockOutcome:
    """
    Every failure of one invocation, ranked by precedence.

    An acquisition failure means the work never ran, so it outranks
    everything. A work failure outranks cleanup failures so the real cause
    is never hidden. The lower-ranked failures are attached to the raised
    exception as notes.

    Attributes:
        acquire_error: Failure to acquire the lock (incl. cancellation)
        work_error: Failure raised by the protected work
        release_error: Failure to commit the lock's transaction
        restore_error: Failure to restore autocommit (strict mode only)
    """

    acquire_error: BaseException | None = None
    work_error: BaseException | None = None
    release_error: LockReleaseError | None = None
    restore_error: AutoCommitRestoreError | None = None

    @property
    def errors(self) -> list[BaseException]:
        """All recorded failures, highest precedence first."""
        ranked = (self.acquire_error, self.work_error, self.release_error, self.restore_error)
        return [error for error in ranked if error is not None]

    @property
    def primary_error(self) -> BaseException | None:
        """The failure that should propagate, if any."""
        errors = self.errors
        return errors[0] if errors else None

    @property
    def failed(self) -> bool:
        """True if anything failed."""
        return self.primary_error is not None

    def raise_for_failure(self) -> None:
        """
        Raise the primary failure, if any.

        The primary exception is raised as-is; secondary failures are
        added to it as notes. A note already present on the exception (the
        same instance raised again by later work) is not repeated.
        """
        errors = self.errors
        if not errors:
            return
        primary, *secondary = errors
        existing_notes = getattr(primary, "__notes__", [])
        for error in secondary:
            note = f"Additionally: {type(error).__name__}: {error}"
            if note not in existing_notes:
                primary.add_note(note)
        raise primary


class AdvisoryLockCoordinator:
    """
    Runs work while holding a transaction-scoped PostgreSQL advisory lock.

    Acquisition uses the non-blocking ``pg_try_advisory_xact_lock`` and
    leaves all waiting to the retry policy. The lock is released on every
    exit path: by committing the coordinator's own transaction, or, inside
    an ambient transaction, by the caller later ending it.

    The coordinator keeps no per-invocation state and can be reused
    sequentially. It must not be used concurrently on one connection, since
    autocommit and the open transaction are connection-global.

    Nesting is supported: a coordinator invoked inside another coordinator's
    work sees autocommit off, treats the outer transaction as ambient and
    leaves releasing to the outer coordinator.

    Example:
        >>> coordinator = AdvisoryLockCoordinator(
        ...     SQLAlchemyExecutor(conn),
        ...     discriminator=discriminator_for("public.schema_history"),
        ...     retry_config=LockRetryConfig(retry_count=120, retry_interval=0.5),
        ... )
        >>> applied = await coordinator.execute(migrator.migrate)
    """

    def __init__(
        self,
        executor: SqlExecutor,
        discriminator: int,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        retry_policy: RetryPolicy | None = None,
        retry_config: LockRetryConfig | None = None,
        strict_autocommit_restore: bool = False,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            executor: SQL executor bound to one physical connection
            discriminator: Distinguishes this logical lock within the namespace
            namespace: Namespace tag for the upper bytes of the lock number
            retry_policy: Policy driving acquisition attempts. If not provided,
                a RetryStrategy is built from retry_config.
            retry_config: Configuration for the default RetryStrategy.
                Ignored if retry_policy is provided.
            strict_autocommit_restore: Raise AutoCommitRestoreError when
                autocommit cannot be restored and nothing else failed,
                instead of only logging it.
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing.
                Ignored if tracer is explicitly provided.

        Raises:
            ValueError: If the discriminator or namespace is invalid
        """
        self._executor = executor
        self._discriminator = discriminator
        self._namespace = namespace
        self._lock_num = lock_number(discriminator, namespace)
        self._retry_policy = retry_policy or RetryStrategy(retry_config)
        self._strict_autocommit_restore = strict_autocommit_restore
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def lock_num(self) -> int:
        """The PostgreSQL advisory lock number."""
        return self._lock_num

    @property
    def discriminator(self) -> int:
        """The discriminator the lock number was built from."""
        return self._discriminator

    @property
    def namespace(self) -> str:
        """The namespace tag the lock number was built from."""
        return self._namespace

    @property
    def retry_policy(self) -> RetryPolicy:
        """The policy driving acquisition attempts."""
        return self._retry_policy

    async def execute(self, work: Callable[[], Awaitable[T]] | Callable[[], T]) -> T:
        """
        Execute work while holding the advisory lock.

        Args:
            work: Zero-argument callable. May be a coroutine function or a
                plain function; an awaitable result is awaited.

        Returns:
            Whatever ``work`` returns

        Raises:
            LockAcquisitionError: If the try-lock statement failed
            LockRetriesExceededError: If the lock stayed held elsewhere
            LockInterruptedError: If acquisition was cancelled
            LockReleaseError: If committing the lock's transaction failed
            Exception: Whatever ``work`` raised, unchanged
        """
        async with self.hold():
            result = work()
            if inspect.isawaitable(result):
                result = await result
            return result  # type: ignore[return-value]

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[LockInfo]:
        """
        Hold the advisory lock for the duration of the context.

        Failures follow the same precedence as :meth:`execute`: an exception
        raised inside the block propagates unchanged even if releasing the
        lock fails afterwards.

        Yields:
            LockInfo describing the held lock

        Example:
            >>> async with coordinator.hold() as lock_info:
            ...     print(f"Acquired {lock_info.lock_num} in {lock_info.attempts} attempts")
            ...     await apply_pending_migrations()
        """
        state = await self._capture_state()
        outcome = LockOutcome()

        lock_info = await self._lock(state, outcome)
        if lock_info is None:
            outcome.raise_for_failure()

        try:
            yield lock_info  # type: ignore[misc]
        except BaseException as e:
            outcome.work_error = e

        await self._unlock(state, outcome)
        outcome.raise_for_failure()

    async def _capture_state(self) -> ConnectionState:
        """Read the connection's autocommit setting before touching it."""
        try:
            prior_autocommit = await self._executor.get_autocommit()
        except SqlExecutionError as e:
            raise LockAcquisitionError(
                self._lock_num,
                e.error_message,
                sql_state=e.sql_state,
            ) from e
        return ConnectionState(prior_autocommit=prior_autocommit)

    def _span_attributes(self, state: ConnectionState) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "postgresql",
            ATTR_LOCK_ID: self._lock_num,
            ATTR_LOCK_DISCRIMINATOR: self._discriminator,
            ATTR_LOCK_NAMESPACE: self._namespace,
            ATTR_LOCK_OWNS_TRANSACTION: state.owns_transaction,
        }

    async def _lock(self, state: ConnectionState, outcome: LockOutcome) -> LockInfo | None:
        """
        Acquire the lock through the retry policy.

        Returns:
            LockInfo on success, None if acquisition failed (the failure is
            recorded in ``outcome``)
        """
        attempts: list[LockAttemptResult] = []

        with self._tracer.span(
            "advisorylock.acquire",
            {**self._span_attributes(state), ATTR_DB_OPERATION: "SELECT"},
        ) as span:
            try:
                await self._retry_policy.run_with_retries(
                    functools.partial(self._try_lock, state, attempts),
                    INTERRUPTED_MESSAGE,
                    EXHAUSTED_MESSAGE,
                )
            except LockAcquisitionError as e:
                # _try_lock already rolled back and restored autocommit
                outcome.acquire_error = e
            except BaseException as e:
                if (
                    isinstance(e, (LockRetriesExceededError, LockInterruptedError))
                    and e.lock_num is None
                ):
                    e.lock_num = self._lock_num
                outcome.acquire_error = e
                await self._unlock(state, outcome)

            if span:
                span.set_attribute(ATTR_LOCK_ACQUIRED, outcome.acquire_error is None)
                span.set_attribute(ATTR_LOCK_ATTEMPTS, len(attempts))
                if outcome.acquire_error is not None:
                    span.set_attribute(ATTR_ERROR_TYPE, type(outcome.acquire_error).__name__)

        if outcome.acquire_error is not None:
            logger.debug(
                "Failed to acquire advisory lock: lock_num=%d, attempts=%d, error=%s",
                self._lock_num,
                len(attempts),
                type(outcome.acquire_error).__name__,
            )
            return None

        logger.debug(
            "Acquired advisory lock: lock_num=%d, attempts=%d",
            self._lock_num,
            len(attempts),
        )
        return LockInfo(
            lock_num=self._lock_num,
            discriminator=self._discriminator,
            namespace=self._namespace,
            acquired_at=datetime.now(UTC),
            attempts=len(attempts),
            owns_transaction=state.owns_transaction,
        )

    async def _try_lock(
        self,
        state: ConnectionState,
        attempts: list[LockAttemptResult],
    ) -> bool:
        """
        Make one non-blocking acquisition attempt.

        Raises:
            LockAcquisitionError: If a statement failed
        """
        try:
            # The xact lock lives until the transaction ends, so there must be one
            if await self._executor.get_autocommit():
                await self._executor.set_autocommit(False)
            rows = await self._executor.query(TRY_LOCK_SQL, {"lock_num": self._lock_num})
        except SqlExecutionError as e:
            attempts.append(LockAttemptResult.FAILED)
            error = LockAcquisitionError(self._lock_num, e.error_message, sql_state=e.sql_state)
            restore_error = await self._discard_failed_attempt(state)
            if restore_error is not None:
                error.add_note(f"Additionally: {type(restore_error).__name__}: {restore_error}")
            raise error from e

        acquired = len(rows) == 1 and bool(rows[0][0])
        result = LockAttemptResult.ACQUIRED if acquired else LockAttemptResult.NOT_ACQUIRED
        attempts.append(result)

        logger.debug(
            "Advisory lock attempt",
            extra={
                "lock_num": self._lock_num,
                "attempt": len(attempts),
                "result": result.value,
            },
        )
        return acquired

    async def _discard_failed_attempt(
        self, state: ConnectionState
    ) -> AutoCommitRestoreError | None:
        """Leave the connection as it was found after a failed attempt."""
        if state.transaction_preexisting:
            return None

        try:
            await self._executor.rollback()
        except SqlExecutionError:
            logger.error(
                "Unable to rollback transaction",
                exc_info=True,
                extra={"lock_num": self._lock_num},
            )
        return await self._restore_autocommit(state)

    async def _unlock(self, state: ConnectionState, outcome: LockOutcome) -> None:
        """
        Release the lock by ending the coordinator's own transaction.

        With an ambient transaction this does nothing: the lock is released
        when the caller ends its transaction.
        """
        if state.transaction_preexisting:
            logger.debug(
                "Advisory lock transaction is managed by caller: lock_num=%d",
                self._lock_num,
            )
            return

        with self._tracer.span(
            "advisorylock.release",
            {**self._span_attributes(state), ATTR_DB_OPERATION: "COMMIT"},
        ) as span:
            try:
                await self._executor.commit()
                logger.debug("Released advisory lock: lock_num=%d", self._lock_num)
            except SqlExecutionError as e:
                release_error = LockReleaseError(
                    self._lock_num,
                    e.error_message,
                    sql_state=e.sql_state,
                )
                release_error.__cause__ = e
                outcome.release_error = release_error
                if span:
                    span.set_attribute(ATTR_ERROR_TYPE, type(release_error).__name__)
            finally:
                outcome.restore_error = await self._restore_autocommit(state)

    async def _restore_autocommit(self, state: ConnectionState) -> AutoCommitRestoreError | None:
        """
        Put autocommit back to the value captured at the start.

        Failures are logged. In strict mode they are also returned so the
        caller can report them when nothing more important failed.
        """
        try:
            await self._executor.set_autocommit(state.prior_autocommit)
        except SqlExecutionError as e:
            logger.error(
                "Unable to restore autocommit to original value for connection",
                exc_info=True,
                extra={"lock_num": self._lock_num, "autocommit": state.prior_autocommit},
            )
            if self._strict_autocommit_restore:
                restore_error = AutoCommitRestoreError(state.prior_autocommit, e.error_message)
                restore_error.__cause__ = e
                return restore_error
        return None

    def __repr__(self) -> str:
        return (
            f"AdvisoryLockCoordinator("
            f"lock_num={self._lock_num}, "
            f"discriminator={self._discriminator}, "
            f"namespace={self._namespace!r})"
        )


__all__ = [
    "TRY_LOCK_SQL",
    "AdvisoryLockCoordinator",
    "ConnectionState",
    "LockAttemptResult",
    "LockInfo",
    "LockOutcome",
]
