"""Tests for merging client-recorded spans into completed traces."""

from typing import Any

from tracekit import Span, SpanStatus, Tracer, TraceStreamEvent, create_tracer


def _client_span(span_id: str, parent_id: str | None, start: float, end: float | None) -> Span:
    return Span(
        id=span_id,
        trace_id="client-side-id",
        parent_id=parent_id,
        name=f"client:{span_id}",
        layer="islands",
        start_time=start,
        end_time=end,
        duration=None if end is None else end - start,
    )


def _completed(tracer: Tracer, clock: Any, duration: float = 10) -> str:
    root = tracer.start_trace("GET /", "request")
    clock.advance(duration)
    root.end()
    return root.trace_id


class TestMergeClientSpans:
    """Test merge_client_spans."""

    def test_unknown_trace_is_ignored(self, tracer: Tracer) -> None:
        """Test that merging into an unknown id changes nothing."""
        assert tracer.merge_client_spans("nope", [_client_span("c1", None, 0, 1)]) == 0
        assert tracer.get_traces() == []

    def test_active_trace_is_not_a_merge_target(self, tracer: Tracer) -> None:
        """Test that spans cannot be merged into a trace that is still open."""
        root = tracer.start_trace("GET /", "request")
        assert tracer.merge_client_spans(root.trace_id, [_client_span("c1", root.id, 0, 1)]) == 0
        root.end()
        trace = tracer.get_trace(root.trace_id)
        assert trace is not None
        assert trace.span_count == 1

    def test_merged_spans_join_the_trace(self, tracer: Tracer, clock: Any) -> None:
        """Test that merged spans are copied, rehomed and linked to their parent."""
        trace_id = _completed(tracer, clock)
        trace = tracer.get_trace(trace_id)
        assert trace is not None

        spans = [_client_span("c1", trace.root_span_id, 1005, 1008)]
        assert tracer.merge_client_spans(trace_id, spans) == 1

        merged = trace.spans["c1"]
        assert merged.trace_id == trace_id
        assert merged.name == "client:c1"
        assert "c1" in trace.spans[trace.root_span_id].children
        assert spans[0].trace_id == "client-side-id"

    def test_end_time_extends(self, tracer: Tracer, clock: Any) -> None:
        """Test that a later client span stretches the trace."""
        trace_id = _completed(tracer, clock, duration=10)
        trace = tracer.get_trace(trace_id)
        assert trace is not None
        assert trace.end_time == 1010

        tracer.merge_client_spans(trace_id, [_client_span("c1", None, 1005, 1030)])
        assert trace.end_time == 1030
        assert trace.duration == 30

    def test_end_time_never_shrinks(self, tracer: Tracer, clock: Any) -> None:
        """Test that earlier or open client spans leave the end time alone."""
        trace_id = _completed(tracer, clock, duration=10)
        trace = tracer.get_trace(trace_id)
        assert trace is not None

        tracer.merge_client_spans(
            trace_id,
            [_client_span("c1", None, 1001, 1002), _client_span("c2", None, 1003, None)],
        )
        assert trace.end_time == 1010
        assert trace.duration == 10

    def test_span_cap_limits_merge(self, clock: Any) -> None:
        """Test that merged spans stop at the per-trace cap, in order."""
        tracer = create_tracer(max_spans_per_trace=3, clock=clock)
        trace_id = _completed(tracer, clock)

        spans = [_client_span(f"c{i}", None, 1001 + i, 1002 + i) for i in range(5)]
        assert tracer.merge_client_spans(trace_id, spans) == 2

        trace = tracer.get_trace(trace_id)
        assert trace is not None
        assert trace.span_count == 3
        assert set(trace.spans) - {trace.root_span_id} == {"c0", "c1"}

    def test_full_trace_accepts_nothing(self, clock: Any) -> None:
        """Test that a trace already at the cap accepts nothing."""
        tracer = create_tracer(max_spans_per_trace=1, clock=clock)
        trace_id = _completed(tracer, clock)
        assert tracer.merge_client_spans(trace_id, [_client_span("c1", None, 0, 1)]) == 0

    def test_duplicate_id_replaces_without_using_headroom(self, clock: Any) -> None:
        """Test that a duplicate id replaces the span without using headroom."""
        tracer = create_tracer(max_spans_per_trace=2, clock=clock)
        trace_id = _completed(tracer, clock)

        tracer.merge_client_spans(trace_id, [_client_span("c1", None, 1001, 1002)])
        replacement = _client_span("c1", None, 1001, 1004)
        replacement.status = SpanStatus.ERROR
        assert tracer.merge_client_spans(trace_id, [replacement]) == 1

        trace = tracer.get_trace(trace_id)
        assert trace is not None
        assert trace.span_count == 2
        assert trace.spans["c1"].status is SpanStatus.ERROR

    def test_replacing_a_parent_keeps_its_children(self, tracer: Tracer) -> None:
        """Test that a span replaced by id keeps the children linked to it."""
        root = tracer.start_trace("GET /", "request")
        child = root.child("load", "data")
        child.end()
        root.end()

        merged = tracer.merge_client_spans(
            root.trace_id,
            [
                {
                    "id": root.id,
                    "traceId": root.trace_id,
                    "name": "GET /",
                    "layer": "request",
                    "startTime": 1000,
                    "endTime": 1010,
                }
            ],
        )

        assert merged == 1
        trace = tracer.get_trace(root.trace_id)
        assert trace is not None
        assert trace.spans[root.id].children == [child.id]
        assert [s.name for s, _ in trace.walk()] == ["GET /", "load"]

    def test_merge_emits_no_events(self, tracer: Tracer, clock: Any) -> None:
        """Test that merging is invisible to observers."""
        trace_id = _completed(tracer, clock)
        events: list[TraceStreamEvent] = []
        tracer.subscribe(events.append)

        tracer.merge_client_spans(trace_id, [_client_span("c1", None, 1001, 1002)])
        assert events == []

    def test_wire_dicts_are_accepted(self, tracer: Tracer, clock: Any) -> None:
        """Test merging camelCase wire documents, skipping malformed ones."""
        trace_id = _completed(tracer, clock)
        trace = tracer.get_trace(trace_id)
        assert trace is not None

        merged = tracer.merge_client_spans(
            trace_id,
            [
                {
                    "id": "w1",
                    "traceId": "ignored",
                    "parentId": trace.root_span_id,
                    "name": "hydrate",
                    "layer": "islands",
                    "startTime": 1002,
                    "endTime": 1020,
                    "events": [{"name": "mounted", "time": 1010}],
                },
                {"id": "bad"},
            ],
        )

        assert merged == 1
        span = trace.spans["w1"]
        assert span.trace_id == trace_id
        assert span.duration == 18
        assert span.events[0].timestamp == 1010
        assert trace.end_time == 1020

    def test_evicted_trace_is_ignored(self, clock: Any) -> None:
        """Test that an evicted trace cannot receive spans."""
        tracer = create_tracer(max_traces=1, clock=clock)
        first = _completed(tracer, clock)
        _completed(tracer, clock)
        assert tracer.merge_client_spans(first, [_client_span("c1", None, 0, 1)]) == 0
