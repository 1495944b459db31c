"""
Standard span attributes for advisorylock.

Attribute names follow OpenTelemetry semantic conventions where one exists
(``db.*``) and use the ``advisorylock.`` prefix otherwise.

Example:
    >>> from advisorylock.observability.attributes import ATTR_LOCK_ID
    >>>
    >>> with tracer.span("advisorylock.acquire", {ATTR_LOCK_ID: lock_num}):
    ...     pass
"""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'SELECT', 'COMMIT')."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_ID = "advisorylock.lock.id"
"""Numeric PostgreSQL advisory lock number."""

ATTR_LOCK_NAMESPACE = "advisorylock.lock.namespace"
"""Namespace tag packed into the upper bytes of the lock number."""

ATTR_LOCK_DISCRIMINATOR = "advisorylock.lock.discriminator"
"""Discriminator packed into the lower bytes of the lock number."""

ATTR_LOCK_ACQUIRED = "advisorylock.lock.acquired"
"""Whether the lock was acquired (boolean)."""

ATTR_LOCK_ATTEMPTS = "advisorylock.lock.attempts"
"""Number of try-lock round trips made."""

ATTR_LOCK_OWNS_TRANSACTION = "advisorylock.lock.owns_transaction"
"""Whether the lock's transaction was opened by the coordinator (boolean)."""

ATTR_ERROR_TYPE = "error.type"
"""Exception class name when an operation failed."""


__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_NAMESPACE",
    "ATTR_LOCK_DISCRIMINATOR",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_ATTEMPTS",
    "ATTR_LOCK_OWNS_TRANSACTION",
    "ATTR_ERROR_TYPE",
]
