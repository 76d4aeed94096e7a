"""Tests for the terminal reporter."""

import io
from typing import Any

from rich.console import Console

from tracekit import Tracer
from tracekit.reporter import (
    create_cli_reporter,
    duration_style,
    format_duration,
    render_trace,
    span_summary,
)
from tracekit.types import Span, SpanStatus


def _console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None)


def _text(console: Console) -> str:
    file = console.file
    assert isinstance(file, io.StringIO)
    return file.getvalue()


class TestFormatting:
    """Test duration and summary formatting."""

    def test_format_duration(self) -> None:
        """Test format duration."""
        assert format_duration(0.25) == "250us"
        assert format_duration(45.23) == "45.2ms"
        assert format_duration(2500) == "2.50s"

    def test_duration_style_thresholds(self) -> None:
        """Test duration style thresholds."""
        assert duration_style(10) == "green"
        assert duration_style(120) == "yellow"
        assert duration_style(500) == "red"

    def test_span_summary(self) -> None:
        """Test span summary."""
        span = Span(
            id="s",
            trace_id="t",
            parent_id=None,
            name="q",
            layer="database",
            start_time=0,
            status=SpanStatus.ERROR,
            attributes={
                "db.system": "postgres",
                "error.message": "deadlock",
                "db.statement": "SELECT " + "x" * 80,
            },
        )
        summary = span_summary(span)
        assert "postgres" in summary
        assert "deadlock" in summary
        assert summary.endswith("...")

    def test_cache_hit_wins_over_db_system(self) -> None:
        """Test cache hit wins over db system."""
        span = Span(
            id="s",
            trace_id="t",
            parent_id=None,
            name="q",
            layer="data",
            start_time=0,
            attributes={"cache.hit": True, "db.system": "sqlite"},
        )
        assert span_summary(span) == "cache hit"


class TestRenderTrace:
    """Test tree rendering."""

    def _trace(self, tracer: Tracer, clock: Any) -> str:
        root = tracer.start_trace(
            "GET /users/1", "request", {"method": "GET", "pathname": "/users/1", "statusCode": 404}
        )
        routing = root.child("routing", "routing", {"route.pattern": "/users/[id]"})
        clock.advance(1)
        routing.end()
        data = root.child("load-user", "data")
        query = data.child("users-query", "database", {"db.system": "sqlite"})
        clock.advance(20)
        query.end()
        data.end()
        root.end()
        return root.trace_id

    def test_tree_contents(self, tracer: Tracer, clock: Any) -> None:
        """Test tree contents."""
        trace = tracer.get_trace(self._trace(tracer, clock))
        assert trace is not None
        console = _console()
        console.print(render_trace(trace))

        out = _text(console)
        assert "GET" in out
        assert "/users/1" in out
        assert "404" in out
        assert "matched /users/[id]" in out
        assert "users-query" in out
        assert "sqlite" in out
        assert out.index("load-user") < out.index("users-query")

    def test_layer_filter(self, tracer: Tracer, clock: Any) -> None:
        """Test layer filter."""
        trace = tracer.get_trace(self._trace(tracer, clock))
        assert trace is not None
        console = _console()
        console.print(render_trace(trace, layers=["routing"]))

        out = _text(console)
        assert "routing" in out
        assert "load-user" not in out

    def test_min_duration_filter(self, tracer: Tracer, clock: Any) -> None:
        """Test min duration filter."""
        trace = tracer.get_trace(self._trace(tracer, clock))
        assert trace is not None
        console = _console()
        console.print(render_trace(trace, min_duration=5))

        out = _text(console)
        assert "load-user" in out
        assert "matched" not in out

    def test_verbose_lists_attributes(self, tracer: Tracer, clock: Any) -> None:
        """Test verbose lists attributes."""
        trace = tracer.get_trace(self._trace(tracer, clock))
        assert trace is not None
        console = _console()
        console.print(render_trace(trace, verbose=True))
        assert "db.system=sqlite" in _text(console)


class TestCliReporter:
    """Test the subscribing reporter."""

    def test_prints_completed_traces(self, tracer: Tracer) -> None:
        """Test prints completed traces."""
        console = _console()
        stop = create_cli_reporter(tracer, console=console)

        root = tracer.start_trace("GET /health", "request", {"pathname": "/health"})
        assert _text(console) == ""
        root.end()
        assert "/health" in _text(console)

        stop()
        tracer.start_trace("GET /other", "request", {"pathname": "/other"}).end()
        assert "/other" not in _text(console)
