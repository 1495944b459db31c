"""
Observability utilities for advisorylock.

Provides the composition-based Tracer used by the lock coordinator and the
standard span attribute names it reports.

Example:
    >>> from advisorylock.observability import create_tracer
    >>>
    >>> class MyComponent:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...
    ...     async def run(self) -> None:
    ...         with self._tracer.span("my_component.run"):
    ...             ...
"""

from advisorylock.observability.attributes import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_ATTEMPTS,
    ATTR_LOCK_DISCRIMINATOR,
    ATTR_LOCK_ID,
    ATTR_LOCK_NAMESPACE,
    ATTR_LOCK_OWNS_TRANSACTION,
)
from advisorylock.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Attributes
    "ATTR_DB_OPERATION",
    "ATTR_DB_SYSTEM",
    "ATTR_ERROR_TYPE",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_ATTEMPTS",
    "ATTR_LOCK_DISCRIMINATOR",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_NAMESPACE",
    "ATTR_LOCK_OWNS_TRANSACTION",
    # Tracer
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "Tracer",
    "create_tracer",
]
