"""JSON wire format for traces, stream events and client span submissions.

Wire documents use camelCase keys (``traceId``, ``parentId``,
``startTime``...) and carry a trace's spans as an object keyed by span id.
Incoming documents are validated with Pydantic; anything malformed is
logged and ignored rather than raised, since it comes from outside the
process.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Literal

import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tracekit.bus import SpanEventRecorded, TraceStreamEvent
from tracekit.telemetry import CLIENT_MESSAGE_REJECTED, get_logger
from tracekit.types import (
    Span,
    SpanEvent,
    SpanStatus,
    Trace,
    TraceMetadata,
    TraceOrigin,
)

if TYPE_CHECKING:
    from tracekit.noop import NoopTracer
    from tracekit.tracer import Tracer

log = get_logger(__name__)

CLIENT_SPANS_MESSAGE = "client:spans"
INITIAL_MESSAGE = "initial"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SpanEventPayload(_WireModel):
    """Wire form of a span event. Accepts ``time`` as well as ``timestamp``."""

    name: str
    timestamp: float = Field(validation_alias=AliasChoices("timestamp", "time"))
    attributes: dict[str, Any] = Field(default_factory=dict)

    def to_event(self) -> SpanEvent:
        return SpanEvent(name=self.name, timestamp=self.timestamp, attributes=dict(self.attributes))


class SpanPayload(_WireModel):
    """Wire form of a span."""

    id: str = Field(min_length=1)
    trace_id: str
    parent_id: str | None = None
    name: str
    layer: str
    status: SpanStatus = SpanStatus.OK
    start_time: float
    end_time: float | None = None
    duration: float | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    events: list[SpanEventPayload] = Field(default_factory=list)
    children: list[str] = Field(default_factory=list)

    @classmethod
    def from_span(cls, span: Span) -> SpanPayload:
        return cls(
            id=span.id,
            trace_id=span.trace_id,
            parent_id=span.parent_id,
            name=span.name,
            layer=span.layer,
            status=span.status,
            start_time=span.start_time,
            end_time=span.end_time,
            duration=span.duration,
            attributes=dict(span.attributes),
            events=[
                SpanEventPayload(name=e.name, timestamp=e.timestamp, attributes=dict(e.attributes))
                for e in span.events
            ],
            children=list(span.children),
        )

    def to_span(self) -> Span:
        duration = self.duration
        if duration is None and self.end_time is not None:
            duration = self.end_time - self.start_time
        return Span(
            id=self.id,
            trace_id=self.trace_id,
            parent_id=self.parent_id,
            name=self.name,
            layer=self.layer,
            status=self.status,
            start_time=self.start_time,
            end_time=self.end_time,
            duration=duration,
            attributes=dict(self.attributes),
            events=[e.to_event() for e in self.events],
            children=list(self.children),
        )


class TraceMetadataPayload(_WireModel):
    """Wire form of trace metadata."""

    origin: TraceOrigin = TraceOrigin.SERVER
    method: str | None = None
    pathname: str | None = None
    status_code: int | None = None
    route_pattern: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class TracePayload(_WireModel):
    """Wire form of a trace."""

    id: str
    root_span_id: str
    start_time: float
    end_time: float | None = None
    duration: float | None = None
    spans: dict[str, SpanPayload] = Field(default_factory=dict)
    metadata: TraceMetadataPayload = Field(default_factory=TraceMetadataPayload)


class ClientSpansMessage(_WireModel):
    """Spans reported by a client agent for an already completed trace."""

    type: Literal["client:spans"]
    trace_id: str = Field(min_length=1)
    # Kept raw so one bad span does not reject the whole batch.
    spans: list[dict[str, Any]]


def serialize_span(span: Span) -> dict[str, Any]:
    return SpanPayload.from_span(span).model_dump(by_alias=True, mode="json")


def serialize_trace(trace: Trace) -> dict[str, Any]:
    """Convert a trace to a JSON-safe dict."""
    meta = trace.metadata
    payload = TracePayload(
        id=trace.id,
        root_span_id=trace.root_span_id,
        start_time=trace.start_time,
        end_time=trace.end_time,
        duration=trace.duration,
        spans={span_id: SpanPayload.from_span(span) for span_id, span in trace.spans.items()},
        metadata=TraceMetadataPayload(
            origin=meta.origin,
            method=meta.method,
            pathname=meta.pathname,
            status_code=meta.status_code,
            route_pattern=meta.route_pattern,
            extra=dict(meta.extra),
        ),
    )
    return payload.model_dump(by_alias=True, mode="json")


def deserialize_trace(data: Mapping[str, Any]) -> Trace:
    """Rebuild a trace from its wire form.

    Raises:
        pydantic.ValidationError: If the document is not a valid trace.
    """
    payload = TracePayload.model_validate(data)
    meta = payload.metadata
    return Trace(
        id=payload.id,
        root_span_id=payload.root_span_id,
        start_time=payload.start_time,
        end_time=payload.end_time,
        duration=payload.duration,
        spans={span_id: span.to_span() for span_id, span in payload.spans.items()},
        metadata=TraceMetadata(
            origin=meta.origin,
            method=meta.method,
            pathname=meta.pathname,
            status_code=meta.status_code,
            route_pattern=meta.route_pattern,
            extra=dict(meta.extra),
        ),
    )


def span_from_wire(data: Mapping[str, Any]) -> Span | None:
    """Validate one wire span; None when it is malformed."""
    try:
        return SpanPayload.model_validate(data).to_span()
    except ValidationError:
        return None


def serialize_event(event: TraceStreamEvent) -> dict[str, Any]:
    """Convert a stream event to a JSON-safe dict tagged with its ``type``."""
    if isinstance(event, SpanEventRecorded):
        return {
            "type": event.type,
            "traceId": event.trace_id,
            "spanId": event.span.id,
            "event": SpanEventPayload(
                name=event.event.name,
                timestamp=event.event.timestamp,
                attributes=dict(event.event.attributes),
            ).model_dump(by_alias=True, mode="json"),
        }
    if hasattr(event, "trace"):
        return {"type": event.type, "trace": serialize_trace(event.trace)}
    return {"type": event.type, "span": serialize_span(event.span)}


def encode_event(event: TraceStreamEvent) -> bytes:
    """Serialize a stream event straight to JSON bytes."""
    return orjson.dumps(serialize_event(event))


def initial_state(tracer: Tracer | NoopTracer) -> dict[str, Any]:
    """Snapshot of every retained trace, sent to a newly connected observer."""
    return {
        "type": INITIAL_MESSAGE,
        "traces": [serialize_trace(trace) for trace in tracer.get_traces()],
    }


def handle_client_message(tracer: Tracer | NoopTracer, raw: str | bytes | Mapping[str, Any]) -> int:
    """Apply a ``client:spans`` submission to the tracer.

    Args:
        tracer: Tracer holding the completed trace.
        raw: JSON text/bytes or an already decoded document.

    Returns:
        The number of spans merged; 0 for malformed or unrelated messages.
    """
    try:
        data = orjson.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        message = ClientSpansMessage.model_validate(data)
    except orjson.JSONDecodeError as e:
        log.warning(CLIENT_MESSAGE_REJECTED, reason="invalid_json", error=str(e))
        return 0
    except ValidationError as e:
        log.warning(CLIENT_MESSAGE_REJECTED, reason="invalid_message", errors=e.error_count())
        return 0

    return tracer.merge_client_spans(message.trace_id, message.spans)
