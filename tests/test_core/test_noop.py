"""Tests for the no-op tracer."""

import pytest

from tracekit import NOOP_SPAN, NoopSpan, noop_tracer


class TestNoopTracer:
    """Test that the no-op tracer accepts every call and records nothing."""

    def test_spans_are_the_shared_noop(self) -> None:
        """Test spans are the shared noop."""
        root = noop_tracer.start_trace("GET /", "request", {"method": "GET"})
        assert root is NOOP_SPAN
        assert root.child("c", "data") is NOOP_SPAN
        assert noop_tracer.start_span("s", "data", parent=root) is NOOP_SPAN

    def test_span_methods_do_nothing(self) -> None:
        """Test span methods do nothing."""
        span = NoopSpan()
        span.set_attribute("k", 1)
        span.set_attributes({"a": 2})
        span.event("e", {"x": 1})
        span.error(RuntimeError("x"))
        span.end("error")
        assert not span.ended

    def test_with_span_returns_result(self) -> None:
        """Test with span returns result."""
        assert noop_tracer.with_span("w", "data", lambda span: 5) == 5

    def test_with_span_propagates_errors(self) -> None:
        """Test with span propagates errors."""
        def fail(span: NoopSpan) -> None:
            raise ValueError("x")

        with pytest.raises(ValueError):
            noop_tracer.with_span("w", "data", fail)

    def test_span_context_manager(self) -> None:
        """Test span context manager."""
        with noop_tracer.span("s", "data") as span:
            assert span is NOOP_SPAN

    def test_reads_are_empty(self) -> None:
        """Test reads are empty."""
        noop_tracer.start_trace("GET /", "request").end()
        assert noop_tracer.get_traces() == []
        assert noop_tracer.get_trace("x") is None
        assert noop_tracer.active_trace_count == 0
        assert noop_tracer.merge_client_spans("x", [{"id": "a"}]) == 0

    def test_subscribe_returns_callable(self) -> None:
        """Test subscribe returns callable."""
        unsubscribe = noop_tracer.subscribe(lambda e: None)
        unsubscribe()
        unsubscribe()
        noop_tracer.clear()
