"""
Testing utilities for code that uses advisorylock.

Provides an in-memory model of PostgreSQL's advisory lock table so lock
coordination can be exercised without a database.

Example:
    >>> from advisorylock import AdvisoryLockCoordinator
    >>> from advisorylock.testing import InMemoryAdvisoryLockServer
    >>>
    >>> server = InMemoryAdvisoryLockServer()
    >>> first = AdvisoryLockCoordinator(server.connect(), discriminator=1)
    >>> second = AdvisoryLockCoordinator(server.connect(), discriminator=1)
"""

from advisorylock.testing.in_memory import InMemoryAdvisoryLockServer, InMemoryExecutor

__all__ = [
    "InMemoryAdvisoryLockServer",
    "InMemoryExecutor",
]
