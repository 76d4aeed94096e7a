"""Core tracer.

Creates traces and spans, keeps a bounded window of completed traces and
publishes lifecycle events for live observers.

A trace is *active* from ``start_trace`` until its root span ends, at which
point it is sealed: dropped if shorter than ``min_duration``, otherwise
inserted into the retention store (evicting the oldest trace when full).
``trace:end`` is emitted in both cases.

All engine operations are synchronous, so concurrent asyncio tasks can never
interleave inside one; a re-entrant lock covers the shared state for callers
on multiple threads.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, TypeVar

from tracekit.bus import (
    EventBus,
    Observer,
    SpanEnded,
    SpanEventRecorded,
    SpanStarted,
    TraceEnded,
    TraceStarted,
)
from tracekit.config import TracerConfig
from tracekit.span import SpanHandle, generate_span_id, generate_trace_id, run_in_span
from tracekit.store import RetentionStore
from tracekit.telemetry import (
    CLIENT_SPAN_REJECTED,
    CLIENT_SPANS_IGNORED,
    CLIENT_SPANS_MERGED,
    SPAN_CAP_REACHED,
    SPAN_ENDED_AFTER_SEAL,
    TRACE_DROPPED,
    TRACE_SEALED,
    get_logger,
)
from tracekit.types import (
    AttributeValue,
    Span,
    SpanEvent,
    SpanLayer,
    Trace,
    TraceId,
    TraceMetadata,
    layer_name,
)

log = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


def _perf_clock_ms() -> float:
    return time.perf_counter() * 1000


class Tracer:
    """Creates and manages traces and spans.

    Args:
        config: Limits for retained traces. Defaults to ``TracerConfig()``,
            which reads ``TRACEKIT_*`` environment variables.
        clock: Returns the current time in milliseconds. Must be monotonic.
    """

    def __init__(self, config: TracerConfig | None = None, clock: Clock | None = None) -> None:
        self._config = config if config is not None else TracerConfig()
        self._clock = clock or _perf_clock_ms
        self._store = RetentionStore(self._config.max_traces)
        self._bus = EventBus()
        self._active: dict[TraceId, Trace] = {}
        self._lock = threading.RLock()

    @property
    def config(self) -> TracerConfig:
        return self._config

    @property
    def active_trace_count(self) -> int:
        """Traces whose root span is still open."""
        with self._lock:
            return len(self._active)

    def now(self) -> float:
        """Current time on this tracer's clock, in milliseconds."""
        return self._clock()

    # ── Opening spans ─────────────────────────────────────────────

    def start_trace(
        self,
        name: str,
        layer: SpanLayer | str,
        metadata: TraceMetadata | Mapping[str, Any] | None = None,
    ) -> SpanHandle:
        """Start a new trace and return its root span handle.

        Args:
            name: Label of the root span (e.g. "GET /users").
            layer: Category of the root span.
            metadata: Facts about the trace, captured once.

        Returns:
            The open root span. Ending it seals the trace.
        """
        return self._open_trace(name, layer, metadata, None)

    def start_span(
        self,
        name: str,
        layer: SpanLayer | str,
        attributes: Mapping[str, AttributeValue] | None = None,
        parent: SpanHandle | None = None,
    ) -> SpanHandle:
        """Open a span under ``parent``, or as the root of a new trace.

        A span with no parent is never left outside a trace: it becomes the
        root of its own one-span trace.
        """
        if parent is not None:
            return parent.child(name, layer, attributes)
        return self._open_trace(name, layer, None, attributes)

    def with_span(
        self,
        name: str,
        layer: SpanLayer | str,
        fn: Callable[[SpanHandle], T],
        parent: SpanHandle | None = None,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> T:
        """Run ``fn`` inside a new span and end it on every exit path.

        ``fn`` may be a plain function or a coroutine function. For a
        coroutine function the return value is a coroutine to await; the span
        ends when it settles. Failures mark the span as error and propagate
        unchanged.

        Args:
            name: Span label.
            layer: Span category.
            fn: Called with the new span handle.
            parent: Enclosing span, typically read from the caller's request
                context. Without one the span roots a new trace.
            attributes: Initial attributes.

        Returns:
            Whatever ``fn`` returns (awaitable when ``fn`` is async).
        """
        span = self.start_span(name, layer, attributes, parent)
        return run_in_span(span, fn)

    @contextmanager
    def span(
        self,
        name: str,
        layer: SpanLayer | str,
        parent: SpanHandle | None = None,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> Iterator[SpanHandle]:
        """Context manager form of ``with_span``; works in sync and async code.

        Yields:
            The open span handle. It is ended on exit, marked as error if the
            block raised.
        """
        handle = self.start_span(name, layer, attributes, parent)
        with handle:
            yield handle

    def _open_trace(
        self,
        name: str,
        layer: SpanLayer | str,
        metadata: TraceMetadata | Mapping[str, Any] | None,
        attributes: Mapping[str, AttributeValue] | None,
    ) -> SpanHandle:
        if not isinstance(metadata, TraceMetadata):
            metadata = TraceMetadata.from_mapping(dict(metadata) if metadata else None)

        trace_id = generate_trace_id()
        now = self.now()
        root = Span(
            id=generate_span_id(),
            trace_id=trace_id,
            parent_id=None,
            name=name,
            layer=layer_name(layer),
            start_time=now,
            attributes=dict(attributes or {}),
        )
        trace = Trace(
            id=trace_id,
            root_span_id=root.id,
            start_time=now,
            metadata=metadata,
            spans={root.id: root},
        )
        with self._lock:
            self._active[trace_id] = trace

        self._bus.emit(TraceStarted(trace=trace))
        self._bus.emit(SpanStarted(span=root))
        return SpanHandle(self, trace, root, is_root=True)

    def _open_child(
        self,
        parent: SpanHandle,
        name: str,
        layer: SpanLayer | str,
        attributes: Mapping[str, AttributeValue] | None,
    ) -> SpanHandle:
        trace = parent._trace
        span = Span(
            id=generate_span_id(),
            trace_id=trace.id,
            parent_id=parent.id,
            name=name,
            layer=layer_name(layer),
            start_time=self.now(),
            attributes=dict(attributes or {}),
        )

        with self._lock:
            accepted = (
                not parent.detached
                and not trace.sealed
                and trace.span_count < self._config.max_spans_per_trace
            )
            if accepted:
                trace.spans[span.id] = span
                parent.data.children.append(span.id)

        if not accepted:
            if trace.span_count >= self._config.max_spans_per_trace:
                log.debug(
                    SPAN_CAP_REACHED,
                    trace_id=trace.id,
                    span_name=name,
                    max_spans_per_trace=self._config.max_spans_per_trace,
                )
            return SpanHandle(self, trace, span, detached=True)

        self._bus.emit(SpanStarted(span=span))
        return SpanHandle(self, trace, span)

    # ── Span callbacks ────────────────────────────────────────────

    def _span_event(self, span: Span, event: SpanEvent) -> None:
        self._bus.emit(SpanEventRecorded(trace_id=span.trace_id, span=span, event=event))

    def _span_ended(self, handle: SpanHandle) -> None:
        trace = handle._trace
        if not handle.is_root and trace.sealed:
            log.debug(SPAN_ENDED_AFTER_SEAL, trace_id=trace.id, span_id=handle.id)
        self._bus.emit(SpanEnded(span=handle.data))
        if handle.is_root:
            self._seal(trace, handle.data)

    def _seal(self, trace: Trace, root: Span) -> None:
        trace.end_time = root.end_time
        trace.duration = root.duration

        with self._lock:
            self._active.pop(trace.id, None)
            duration = trace.duration or 0.0
            if duration < self._config.min_duration:
                log.debug(
                    TRACE_DROPPED,
                    trace_id=trace.id,
                    duration_ms=duration,
                    min_duration=self._config.min_duration,
                )
            else:
                self._store.insert(trace)
                log.debug(
                    TRACE_SEALED,
                    trace_id=trace.id,
                    span_count=trace.span_count,
                    duration_ms=duration,
                )

        self._bus.emit(TraceEnded(trace=trace))

    # ── Reading ───────────────────────────────────────────────────

    def get_traces(self) -> list[Trace]:
        """All retained traces, oldest first."""
        return self._store.get_all()

    def get_trace(self, trace_id: TraceId) -> Trace | None:
        return self._store.get(trace_id)

    def clear(self) -> None:
        """Forget every retained trace. Active traces are unaffected."""
        self._store.clear()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Receive every lifecycle event from now on.

        Returns:
            A function that stops delivery; safe to call more than once.
        """
        return self._bus.subscribe(observer)

    # ── Client span reconciliation ────────────────────────────────

    def merge_client_spans(
        self, trace_id: TraceId, spans: Iterable[Span | Mapping[str, Any]]
    ) -> int:
        """Add externally recorded spans to an already retained trace.

        Unknown, evicted or filtered trace ids are ignored. Spans are taken in
        order until the trace's span cap is reached; the rest are dropped.
        The trace's end time grows to cover the merged spans and never
        shrinks. No events are emitted.

        Args:
            trace_id: Id of a retained trace.
            spans: ``Span`` records or wire dicts (camelCase keys).

        Returns:
            The number of spans merged.
        """
        from tracekit.transport import span_from_wire  # noqa: PLC0415

        trace = self._store.get(trace_id)
        if trace is None:
            log.debug(CLIENT_SPANS_IGNORED, trace_id=trace_id, reason="unknown_trace")
            return 0

        merged: list[Span] = []
        with self._lock:
            for item in spans:
                span = item if isinstance(item, Span) else span_from_wire(item)
                if span is None:
                    log.debug(CLIENT_SPAN_REJECTED, trace_id=trace_id)
                    continue
                if span.id not in trace.spans and trace.span_count >= self._config.max_spans_per_trace:
                    break

                span = replace(
                    span,
                    trace_id=trace.id,
                    attributes=dict(span.attributes),
                    events=list(span.events),
                    children=list(span.children),
                )
                existing = trace.spans.get(span.id)
                if existing is not None:
                    # A replacement keeps the children already linked to it.
                    kept = [c for c in existing.children if c not in span.children]
                    span.children.extend(kept)
                trace.spans[span.id] = span
                parent = trace.spans.get(span.parent_id) if span.parent_id else None
                if parent is not None and parent is not span and span.id not in parent.children:
                    parent.children.append(span.id)
                merged.append(span)

            end_times = [s.end_time for s in merged if s.end_time is not None]
            if end_times:
                latest = max(end_times)
                if trace.end_time is None or latest > trace.end_time:
                    trace.end_time = latest
                    trace.duration = latest - trace.start_time

        log.debug(
            CLIENT_SPANS_MERGED,
            trace_id=trace_id,
            merged=len(merged),
            span_count=trace.span_count,
        )
        return len(merged)

    def __repr__(self) -> str:
        return (
            f"Tracer(retained={len(self._store)}, active={self.active_trace_count}, "
            f"max_traces={self._config.max_traces})"
        )


def create_tracer(
    config: TracerConfig | Mapping[str, Any] | None = None,
    clock: Clock | None = None,
    **overrides: Any,
) -> Tracer:
    """Create a tracer.

    Args:
        config: A ``TracerConfig`` or a mapping of its fields. camelCase keys
            (``maxTraces``, ``maxSpansPerTrace``, ``minDuration``) are accepted.
        clock: Millisecond clock, mainly for tests.
        **overrides: Field values applied on top of ``config``.

    Returns:
        A new Tracer.

    Raises:
        pydantic.ValidationError: If a limit is out of range.

    Example:
        >>> tracer = create_tracer(max_traces=50)
        >>> root = tracer.start_trace("GET /", "request")
        >>> root.end()
        >>> len(tracer.get_traces())
        1
    """
    if isinstance(config, TracerConfig) and not overrides:
        return Tracer(config, clock=clock)

    values: dict[str, Any] = {}
    if isinstance(config, TracerConfig):
        values.update(config.model_dump())
    elif config:
        values.update(config)
    values.update(overrides)

    aliases = {
        "maxTraces": "max_traces",
        "maxSpansPerTrace": "max_spans_per_trace",
        "minDuration": "min_duration",
    }
    normalized = {aliases.get(key, key): value for key, value in values.items() if value is not None}
    return Tracer(TracerConfig(**normalized), clock=clock)
