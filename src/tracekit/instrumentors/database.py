"""Database instrumentation.

Creates one ``db.<operation>`` child span per query, recording the statement
(first 200 characters), parameter count and, for list results, row count.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from tracekit.noop import NoopSpan
from tracekit.span import SpanHandle
from tracekit.types import SpanLayer

T = TypeVar("T")

STATEMENT_LIMIT = 200
TRACED_METHODS = frozenset({"query", "execute", "get", "all", "run"})

SpanGetter = Callable[[], "SpanHandle | NoopSpan | None"]


async def _run_query(
    span: SpanHandle | NoopSpan,
    operation: str,
    sql: str,
    params: Sequence[Any] | None,
    query: Callable[[], Awaitable[T]],
) -> T:
    span.set_attribute("db.operation", operation)
    span.set_attribute("db.statement", sql[:STATEMENT_LIMIT] if isinstance(sql, str) else "")
    if params is not None:
        span.set_attribute("db.param_count", len(params))
    try:
        result = await query()
    except BaseException as e:
        span.error(e)
        span.end()
        raise
    if isinstance(result, list):
        span.set_attribute("db.row_count", len(result))
    span.end()
    return result


async def trace_query(
    parent: SpanHandle | NoopSpan,
    operation: str,
    sql: str,
    query_fn: Callable[[], Awaitable[T]],
) -> T:
    """Run one query inside a ``db.<operation>`` child span."""
    span = parent.child(f"db.{operation}", SpanLayer.DATABASE)
    return await _run_query(span, operation, sql, None, query_fn)


class TracedAdapter:
    """Wraps a database adapter so its query methods open spans.

    ``query``, ``execute``, ``get``, ``all`` and ``run`` are traced under
    whatever span ``get_span`` returns at call time (typically read from the
    request context). With no span available the call goes straight through.
    Every other attribute is forwarded untouched.

    Args:
        adapter: Object exposing async ``method(sql, params=None)`` methods.
        get_span: Returns the span to attach queries to, or None.
    """

    def __init__(self, adapter: Any, get_span: SpanGetter) -> None:
        self._adapter = adapter
        self._get_span = get_span

    @property
    def wrapped(self) -> Any:
        return self._adapter

    def __getattr__(self, name: str) -> Any:
        value = getattr(self._adapter, name)
        if name not in TRACED_METHODS or not callable(value):
            return value

        @functools.wraps(value)
        async def traced(sql: str, params: Sequence[Any] | None = None) -> Any:
            parent = self._get_span()
            if parent is None:
                return await value(sql, params)
            span = parent.child(f"db.{name}", SpanLayer.DATABASE)
            return await _run_query(span, name, sql, params, lambda: value(sql, params))

        return traced
