"""
Protocol definitions for the collaborators of the lock coordinator.

Protocols:
- SqlExecutor: The database connection the lock is taken on

The retry policy protocol lives in ``advisorylock.retry`` next to its
default implementation.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SqlExecutor(Protocol):
    """
    Protocol for executing SQL on exactly one physical connection.

    The coordinator manipulates connection-global state (autocommit and the
    open transaction), so an executor must never be shared between
    concurrently running coordinators.

    All methods may raise SqlExecutionError.

    Implementations:
    - SQLAlchemyExecutor: Wraps a SQLAlchemy AsyncConnection
    - InMemoryExecutor: In-process fake for tests

    Example:
        >>> class MyExecutor:
        ...     async def get_autocommit(self) -> bool: ...
        ...     async def set_autocommit(self, enabled: bool) -> None: ...
        ...     async def query(self, statement, parameters=None): ...
        ...     async def commit(self) -> None: ...
        ...     async def rollback(self) -> None: ...
    """

    async def get_autocommit(self) -> bool:
        """Return True if every statement is committed on its own."""
        ...

    async def set_autocommit(self, enabled: bool) -> None:
        """
        Switch autocommit mode on or off.

        Args:
            enabled: True to commit every statement implicitly
        """
        ...

    async def query(
        self,
        statement: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> Sequence[Sequence[Any]]:
        """
        Execute a query and return all of its rows.

        Args:
            statement: SQL text with ``:name`` style bound parameters
            parameters: Values for the bound parameters

        Returns:
            Rows as sequences of column values
        """
        ...

    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


__all__ = ["SqlExecutor"]
