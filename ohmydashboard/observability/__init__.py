"""Observability helpers."""

from ohmydashboard.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_read,
    record_cache_lookup,
    record_query_fallback,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_read",
    "record_cache_lookup",
    "record_query_fallback",
]
