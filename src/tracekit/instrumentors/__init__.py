"""Ready-made instrumentation for common layers."""

from tracekit.instrumentors.data import (
    LoaderTraceInfo,
    record_loader_metrics,
    trace_cache_operation,
    trace_loader,
)
from tracekit.instrumentors.database import TracedAdapter, trace_query

__all__ = [
    "LoaderTraceInfo",
    "record_loader_metrics",
    "trace_cache_operation",
    "trace_loader",
    "TracedAdapter",
    "trace_query",
]
