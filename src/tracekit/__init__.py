"""tracekit - request tracing engine.

Records hierarchical spans grouped into request-scoped traces, keeps a
bounded window of completed traces, merges late client-side spans into
completed traces and streams lifecycle events to observers.

Usage:
    from tracekit import create_tracer, SpanLayer

    tracer = create_tracer(max_traces=100)
    root = tracer.start_trace("GET /users", SpanLayer.REQUEST, {"method": "GET"})
    with root.child("load users", SpanLayer.DATA) as span:
        span.set_attribute("rows", 12)
    root.end()
"""

from tracekit.bus import (
    EventBus,
    Observer,
    SpanEnded,
    SpanEventRecorded,
    SpanStarted,
    TraceEnded,
    TraceStarted,
    TraceStreamEvent,
)
from tracekit.config import TracerConfig
from tracekit.context import (
    RequestContext,
    get_active_span,
    get_tracer,
    set_active_span,
    set_tracer,
)
from tracekit.errors import ConfigError, TracekitError
from tracekit.noop import NOOP_SPAN, NoopSpan, NoopTracer, noop_tracer
from tracekit.span import SpanHandle, generate_span_id, generate_trace_id
from tracekit.store import RetentionStore
from tracekit.tracer import Tracer, create_tracer
from tracekit.types import (
    Span,
    SpanEvent,
    SpanLayer,
    SpanStatus,
    Trace,
    TraceMetadata,
    TraceOrigin,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Tracer",
    "create_tracer",
    "TracerConfig",
    "SpanHandle",
    "RetentionStore",
    "EventBus",
    "generate_span_id",
    "generate_trace_id",
    # Data model
    "Span",
    "SpanEvent",
    "SpanLayer",
    "SpanStatus",
    "Trace",
    "TraceMetadata",
    "TraceOrigin",
    # Events
    "Observer",
    "TraceStreamEvent",
    "TraceStarted",
    "SpanStarted",
    "SpanEventRecorded",
    "SpanEnded",
    "TraceEnded",
    # Context binding
    "RequestContext",
    "set_tracer",
    "get_tracer",
    "set_active_span",
    "get_active_span",
    # No-op
    "NoopTracer",
    "NoopSpan",
    "noop_tracer",
    "NOOP_SPAN",
    # Errors
    "TracekitError",
    "ConfigError",
]
