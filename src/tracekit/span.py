"""Live span handles.

A SpanHandle is the only way to extend a span tree, attach data to a span or
close it. Handles are passed explicitly from parent to child; the engine
keeps no "current span" of its own, so concurrent traces sharing a tracer
never see each other's spans.

Usage:
    root = tracer.start_trace("GET /users", SpanLayer.REQUEST)
    with root.child("load users", SpanLayer.DATA) as span:
        span.set_attribute("rows", 12)
    root.end()
"""

from __future__ import annotations

import inspect
import traceback
import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from tracekit.types import (
    AttributeValue,
    Span,
    SpanEvent,
    SpanId,
    SpanLayer,
    SpanStatus,
    Trace,
    TraceId,
)

if TYPE_CHECKING:
    from tracekit.tracer import Tracer

T = TypeVar("T")

ERROR_STACK_LIMIT = 500


def generate_trace_id() -> TraceId:
    """Return a 32-character hex trace id."""
    return uuid.uuid4().hex


def generate_span_id() -> SpanId:
    """Return a 16-character hex span id."""
    return uuid.uuid4().hex[:16]


class SpanHandle:
    """Mutable front-end for one open span.

    Mutators are silent no-ops once the span has ended; tracing must never
    destabilize the code it instruments. A *detached* handle is returned when
    the owning trace is full or already sealed: it keeps its own bookkeeping
    but is never stored and never emits events.

    Args:
        tracer: The tracer that created the span.
        trace: The trace the span belongs to.
        span: The span record this handle writes to.
        is_root: Whether ending this handle seals the trace.
        detached: Whether the span is kept out of the trace.
    """

    __slots__ = ("_tracer", "_trace", "_span", "_is_root", "_detached", "_ended")

    def __init__(
        self,
        tracer: Tracer,
        trace: Trace,
        span: Span,
        *,
        is_root: bool = False,
        detached: bool = False,
    ) -> None:
        self._tracer = tracer
        self._trace = trace
        self._span = span
        self._is_root = is_root
        self._detached = detached
        self._ended = False

    @property
    def id(self) -> SpanId:
        return self._span.id

    @property
    def trace_id(self) -> TraceId:
        return self._span.trace_id

    @property
    def parent_id(self) -> SpanId | None:
        return self._span.parent_id

    @property
    def is_root(self) -> bool:
        return self._is_root

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def data(self) -> Span:
        """The underlying span record."""
        return self._span

    def _writable(self) -> bool:
        # A sealed trace only accepts the completion of spans still open in it.
        return not self._ended and (self._detached or not self._trace.sealed)

    def child(
        self,
        name: str,
        layer: SpanLayer | str,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> SpanHandle:
        """Open a child span in the same trace.

        Args:
            name: Operation label.
            layer: Category tag.
            attributes: Initial attributes.

        Returns:
            The child's handle. Detached when the trace has no span headroom left.
        """
        return self._tracer._open_child(self, name, layer, attributes)

    def set_attribute(self, key: str, value: AttributeValue) -> None:
        if self._writable():
            self._span.attributes[key] = value

    def set_attributes(self, attributes: Mapping[str, AttributeValue]) -> None:
        if self._writable():
            self._span.attributes.update(attributes)

    def event(self, name: str, attributes: Mapping[str, AttributeValue] | None = None) -> None:
        """Append a timestamped event to the span and publish it."""
        if not self._writable():
            return
        recorded = SpanEvent(
            name=name, timestamp=self._tracer.now(), attributes=dict(attributes or {})
        )
        self._span.events.append(recorded)
        if not self._detached:
            self._tracer._span_event(self._span, recorded)

    def error(self, exc: BaseException | object) -> None:
        """Mark the span as failed and describe the failure in its attributes."""
        if not self._writable():
            return
        self._span.status = SpanStatus.ERROR
        if isinstance(exc, BaseException):
            self._span.attributes["error.message"] = str(exc)
            self._span.attributes["error.type"] = type(exc).__name__
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            self._span.attributes["error.stack"] = stack[-ERROR_STACK_LIMIT:]
        else:
            self._span.attributes["error.message"] = str(exc)

    def end(self, status: SpanStatus | str | None = None) -> None:
        """Close the span.

        Only the first call has any effect. Ending the root span seals the trace.

        Args:
            status: Pass ``SpanStatus.ERROR`` (or "error") to mark the span failed.
                A span never goes back from error to ok.
        """
        if self._ended:
            return
        self._ended = True
        end_time = self._tracer.now()
        self._span.end_time = end_time
        self._span.duration = end_time - self._span.start_time
        if status is not None and getattr(status, "value", status) == SpanStatus.ERROR.value:
            self._span.status = SpanStatus.ERROR
        if not self._detached:
            self._tracer._span_ended(self)

    def __enter__(self) -> SpanHandle:
        return self

    def __exit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> bool:
        if exc is not None:
            self.error(exc)
        self.end()
        return False

    def __repr__(self) -> str:
        state = "ended" if self._ended else "open"
        return (
            f"SpanHandle(name={self._span.name!r}, id={self.id!r}, "
            f"trace_id={self.trace_id!r}, {state})"
        )


def run_in_span(span: SpanHandle, fn: Callable[[SpanHandle], T]) -> T:
    """Call ``fn(span)`` and end the span exactly once however it finishes.

    When ``fn`` returns an awaitable, ending is deferred until it settles and a
    coroutine is returned in its place. A failure is recorded on the span as
    ``status = error`` and re-raised unchanged.
    """
    try:
        result = fn(span)
    except BaseException as e:
        span.error(e)
        span.end()
        raise
    if inspect.isawaitable(result):
        return _finish_when_done(span, result)  # type: ignore[return-value]
    span.end()
    return result


async def _finish_when_done(span: SpanHandle, awaitable: Awaitable[T]) -> T:
    try:
        value = await awaitable
    except BaseException as e:
        span.error(e)
        span.end()
        raise
    span.end()
    return value
