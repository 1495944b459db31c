"""
PostgreSQL support built on SQLAlchemy's asyncio extension.

Provides the SqlExecutor implementation used in production and a
convenience context manager that takes an advisory lock on an existing
``AsyncConnection``.

Example:
    >>> from sqlalchemy.ext.asyncio import create_async_engine
    >>> from advisorylock import advisory_lock, discriminator_for
    >>>
    >>> engine = create_async_engine(
    ...     "postgresql+asyncpg://localhost/app",
    ...     isolation_level="AUTOCOMMIT",
    ... )
    >>> async with engine.connect() as conn:
    ...     async with advisory_lock(conn, discriminator_for("public.schema_history")):
    ...         await apply_migrations(conn)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from advisorylock.coordinator import AdvisoryLockCoordinator, LockInfo
from advisorylock.exceptions import SqlExecutionError

logger = logging.getLogger(__name__)

AUTOCOMMIT = "AUTOCOMMIT"
FALLBACK_ISOLATION_LEVEL = "READ COMMITTED"


def _sql_state(error: SQLAlchemyError) -> str | None:
    """Extract the SQLSTATE code from the driver exception, if exposed."""
    orig = getattr(error, "orig", None)
    # asyncpg and psycopg 3 use sqlstate, psycopg2 uses pgcode
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if isinstance(value, str):
            return value
    return None


def _wrap_error(operation: str, error: SQLAlchemyError) -> SqlExecutionError:
    orig = getattr(error, "orig", None)
    message = str(orig) if orig is not None else str(error)
    return SqlExecutionError(operation, message, sql_state=_sql_state(error))


class SQLAlchemyExecutor:
    """
    SqlExecutor backed by a SQLAlchemy AsyncConnection.

    Autocommit maps onto SQLAlchemy's ``AUTOCOMMIT`` isolation level. The
    current value is read from the driver connection, so it reflects
    autocommit configured on the engine as well as on the connection.

    Switching autocommit follows JDBC semantics: a transaction still open on
    the connection is committed first. In autocommit mode that transaction
    is only SQLAlchemy's bookkeeping and holds nothing on the server.

    Every SQLAlchemy error is raised as SqlExecutionError.

    Example:
        >>> async with engine.connect() as conn:
        ...     executor = SQLAlchemyExecutor(conn)
        ...     coordinator = AdvisoryLockCoordinator(executor, discriminator=7)
        ...     await coordinator.execute(do_work)
    """

    def __init__(
        self,
        connection: AsyncConnection,
        *,
        transaction_isolation_level: str | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            connection: Connection the lock is taken on
            transaction_isolation_level: Isolation level used when autocommit
                is switched off. Defaults to the dialect's default level.
        """
        self._connection = connection
        self._transaction_isolation_level = transaction_isolation_level

    @property
    def connection(self) -> AsyncConnection:
        """The wrapped connection."""
        return self._connection

    async def get_autocommit(self) -> bool:
        """Return True if the driver connection is in autocommit mode."""
        try:
            raw = await self._connection.get_raw_connection()
        except SQLAlchemyError as e:
            raise _wrap_error("get_autocommit", e) from e
        return bool(getattr(raw.dbapi_connection, "autocommit", False))

    async def set_autocommit(self, enabled: bool) -> None:
        """
        Switch autocommit on or off.

        Args:
            enabled: True for the AUTOCOMMIT isolation level, False for
                transaction_isolation_level
        """
        if await self.get_autocommit() == enabled:
            return

        level = AUTOCOMMIT if enabled else self._non_autocommit_level()
        try:
            if self._connection.in_transaction():
                await self._connection.commit()
            await self._connection.execution_options(isolation_level=level)
        except SQLAlchemyError as e:
            raise _wrap_error("set_autocommit", e) from e

        logger.debug("Set isolation level to %s", level)

    def _non_autocommit_level(self) -> str:
        if self._transaction_isolation_level is not None:
            return self._transaction_isolation_level
        default_level = self._connection.default_isolation_level
        if default_level is None or default_level == AUTOCOMMIT:
            return FALLBACK_ISOLATION_LEVEL
        return str(default_level)

    async def query(
        self,
        statement: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> Sequence[Sequence[Any]]:
        """
        Execute a query and return all rows as tuples.

        Args:
            statement: SQL text with ``:name`` style bound parameters
            parameters: Values for the bound parameters

        Returns:
            List of row tuples
        """
        try:
            result = await self._connection.execute(text(statement), dict(parameters or {}))
            return [tuple(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise _wrap_error("query", e) from e

    async def commit(self) -> None:
        """Commit the current transaction."""
        try:
            await self._connection.commit()
        except SQLAlchemyError as e:
            raise _wrap_error("commit", e) from e

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        try:
            await self._connection.rollback()
        except SQLAlchemyError as e:
            raise _wrap_error("rollback", e) from e


@asynccontextmanager
async def advisory_lock(
    connection: AsyncConnection,
    discriminator: int,
    *,
    transaction_isolation_level: str | None = None,
    **coordinator_options: Any,
) -> AsyncIterator[LockInfo]:
    """
    Hold a transaction-scoped advisory lock on an existing connection.

    Args:
        connection: Connection to take the lock on
        discriminator: Distinguishes the logical lock within the namespace
        transaction_isolation_level: See SQLAlchemyExecutor
        **coordinator_options: Keyword options for AdvisoryLockCoordinator
            (namespace, retry_config, retry_policy, tracer, ...)

    Yields:
        LockInfo describing the held lock

    Example:
        >>> async with engine.connect() as conn:
        ...     async with advisory_lock(conn, 1, retry_config=LockRetryConfig(retry_count=5)):
        ...         await migrate(conn)
    """
    executor = SQLAlchemyExecutor(
        connection,
        transaction_isolation_level=transaction_isolation_level,
    )
    coordinator = AdvisoryLockCoordinator(executor, discriminator, **coordinator_options)
    async with coordinator.hold() as lock_info:
        yield lock_info


__all__ = [
    "SQLAlchemyExecutor",
    "advisory_lock",
]
