"""Optional Logfire tracing for pipeline stages.

When ENABLE_LOGFIRE is set and logfire is installed, each pipeline stage
(fetch, score, store) runs inside a span and the scorer's model calls
are instrumented through PydanticAI. Otherwise every helper here is a
no-op apart from a debug timing line.

Requirements:
    pip install 'thesignal[logfire]'
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state."""
    enabled: bool = False
    service_name: str = "signal"
    configured: bool = False


_context = TracingContext()


def is_enabled() -> bool:
    """True once Logfire has been configured successfully."""
    return _context.enabled and _context.configured


def setup_tracing(
    enabled: bool = False,
    service_name: str = "signal",
    token: str = "",
) -> TracingContext:
    """Configure Logfire if requested.

    A missing package or a configuration error disables tracing with a
    log message; the pipeline runs the same either way.

    Args:
        enabled: Whether tracing was requested
        service_name: Service name reported to Logfire
        token: Logfire write token (empty for local-only)
    """
    _context.enabled = enabled
    _context.service_name = service_name
    if not enabled or _context.configured:
        return _context

    try:
        import logfire
    except ImportError:
        logger.warning("Logfire not installed; tracing disabled")
        _context.enabled = False
        return _context

    try:
        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
    except Exception as e:
        logger.error("Failed to configure Logfire | error=%s", e)
        _context.enabled = False
        return _context

    _context.configured = True
    logger.info("Logfire tracing enabled | service=%s", service_name)
    return _context


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """Run a block as a named pipeline stage.

    Yields a dict; keys set on it during the block become span
    attributes when the block finishes.

    Example:
        >>> with trace_operation("fetch", {"queries": 6}) as span:
        ...     span["fetched"] = 42
    """
    start = time.monotonic()
    results: dict[str, Any] = {}
    try:
        if not is_enabled():
            yield results
            return

        import logfire

        with logfire.span(name, **(attributes or {})) as span:
            yield results
            for key, value in results.items():
                span.set_attribute(key, value)
    finally:
        logger.debug("Stage finished | stage=%s duration=%.2fs", name, time.monotonic() - start)
