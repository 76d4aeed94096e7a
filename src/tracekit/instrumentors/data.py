"""Data loading and caching instrumentation.

Creates one child span per loader and records cache operations as span
events on the enclosing span.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal, TypeVar

from tracekit.noop import NoopSpan
from tracekit.span import SpanHandle, run_in_span
from tracekit.types import SpanLayer

T = TypeVar("T")

CACHE_KEY_LIMIT = 100


@dataclass
class LoaderTraceInfo:
    """Timing facts about a loader that already ran.

    Attributes:
        key: Loader key.
        duration: Milliseconds the loader took.
        cache_hit: Whether the result came from cache, if known.
        source: Where the data came from (e.g. "db", "http").
        waiting_for: Loader keys this one depended on.
        error: Error message if the loader failed.
    """

    key: str
    duration: float
    cache_hit: bool | None = None
    source: str | None = None
    waiting_for: list[str] = field(default_factory=list)
    error: str | None = None


def trace_loader(
    parent: SpanHandle | NoopSpan, loader_key: str, loader_fn: Callable[[], T]
) -> T:
    """Run a loader inside a ``loader:<key>`` child span.

    Works for plain and coroutine functions alike; for a coroutine function
    the returned coroutine must be awaited and the span ends when it settles.
    """
    span = parent.child(f"loader:{loader_key}", SpanLayer.DATA)
    span.set_attribute("loader.key", loader_key)
    return run_in_span(span, lambda _span: loader_fn())  # type: ignore[arg-type]


def record_loader_metrics(
    parent: SpanHandle | NoopSpan, metrics: Iterable[LoaderTraceInfo]
) -> None:
    """Record loaders that already ran as ended child spans.

    Call after the data pipeline has finished.
    """
    for metric in metrics:
        span = parent.child(f"loader:{metric.key}", SpanLayer.DATA)
        span.set_attribute("loader.key", metric.key)
        span.set_attribute("loader.duration_ms", metric.duration)
        if metric.cache_hit is not None:
            span.set_attribute("cache.hit", metric.cache_hit)
        if metric.source:
            span.set_attribute("loader.source", metric.source)
        if metric.waiting_for:
            span.set_attribute("loader.waiting_for", ", ".join(metric.waiting_for))
        if metric.error:
            span.set_attribute("error.message", metric.error)
        span.end("error" if metric.error else None)


def trace_cache_operation(
    parent: SpanHandle | NoopSpan,
    operation: Literal["get", "set", "invalidate"],
    key: str,
    hit: bool | None = None,
) -> None:
    """Record a cache get/set/invalidate as a ``cache.<operation>`` event."""
    if len(key) > CACHE_KEY_LIMIT:
        key = key[:CACHE_KEY_LIMIT] + "..."
    attributes: dict[str, object] = {"key": key}
    if hit is not None:
        attributes["hit"] = hit
    parent.event(f"cache.{operation}", attributes)
