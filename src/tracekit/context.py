"""Binding of the tracer and active span into a caller-owned request context.

The engine keeps no ambient "current span". Request-handling code that needs
one stores it in its own request-scoped key/value object; each concurrent
request owns its own context, which is what keeps flows isolated.

These are back references only: the tracer does not know which contexts
point at it, and discarding a context has no effect on the tracer.

Any object exposing ``get(key)`` and ``set(key, value)`` works as a context,
as does a plain ``dict`` (or any mutable mapping).
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tracekit.noop import NoopSpan, NoopTracer
    from tracekit.span import SpanHandle
    from tracekit.tracer import Tracer

TRACER_KEY = "__tracekit.tracer"
ACTIVE_SPAN_KEY = "__tracekit.active_span"


@runtime_checkable
class ContextStore(Protocol):
    """Request-scoped key/value store supplied by the caller."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class RequestContext:
    """Minimal request-scoped store for callers without one of their own."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def has(self, key: str) -> bool:
        return key in self._values

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


def _read(ctx: ContextStore | MutableMapping[str, Any], key: str) -> Any:
    # Both store shapes expose get(); only writes differ.
    return ctx.get(key)


def _write(ctx: ContextStore | MutableMapping[str, Any], key: str, value: Any) -> None:
    if isinstance(ctx, MutableMapping):
        ctx[key] = value
    else:
        ctx.set(key, value)


def set_tracer(ctx: ContextStore | MutableMapping[str, Any], tracer: Tracer | NoopTracer) -> None:
    """Remember the tracer for this request."""
    _write(ctx, TRACER_KEY, tracer)


def get_tracer(ctx: ContextStore | MutableMapping[str, Any]) -> Tracer | NoopTracer | None:
    """The tracer stored for this request, or None."""
    return _read(ctx, TRACER_KEY)


def set_active_span(
    ctx: ContextStore | MutableMapping[str, Any], span: SpanHandle | NoopSpan
) -> None:
    """Remember the span downstream instrumentation should attach to."""
    _write(ctx, ACTIVE_SPAN_KEY, span)


def get_active_span(
    ctx: ContextStore | MutableMapping[str, Any],
) -> SpanHandle | NoopSpan | None:
    """The active span stored for this request, or None."""
    return _read(ctx, ACTIVE_SPAN_KEY)
