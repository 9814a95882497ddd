"""Logging setup and optional tracing for pipeline runs.

setup_logging / set_run_context / clear_context:
    Console + rotating file logging with the run ID on every record.

setup_tracing / trace_operation:
    Optional Logfire spans around pipeline stages.

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="signal")
    >>> with trace_operation("fetch"):
    ...     pass
"""

from observability.logging import clear_context, set_run_context, setup_logging
from observability.tracing import TracingContext, setup_tracing, trace_operation

__all__ = [
    "setup_logging",
    "set_run_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]
