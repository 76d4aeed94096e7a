"""No-op tracer.

Same surface as ``Tracer`` but records nothing, so instrumented code can run
with tracing switched off without any change.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar

from tracekit.types import Trace

T = TypeVar("T")


class NoopSpan:
    """Span handle whose every operation does nothing."""

    id = ""
    trace_id = ""
    parent_id = None
    is_root = False
    detached = True
    ended = False

    def child(self, name: str, layer: Any, attributes: Mapping[str, Any] | None = None) -> NoopSpan:
        return self

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        pass

    def event(self, name: str, attributes: Mapping[str, Any] | None = None) -> None:
        pass

    def error(self, exc: object) -> None:
        pass

    def end(self, status: Any = None) -> None:
        pass

    def __enter__(self) -> NoopSpan:
        return self

    def __exit__(self, *exc_info: Any) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoopSpan()"


NOOP_SPAN = NoopSpan()


class NoopTracer:
    """Tracer stand-in for production builds or disabled tracing."""

    def start_trace(self, name: str, layer: Any, metadata: Any = None) -> NoopSpan:
        return NOOP_SPAN

    def start_span(
        self, name: str, layer: Any, attributes: Any = None, parent: Any = None
    ) -> NoopSpan:
        return NOOP_SPAN

    def with_span(
        self,
        name: str,
        layer: Any,
        fn: Callable[[NoopSpan], T],
        parent: Any = None,
        attributes: Any = None,
    ) -> T:
        return fn(NOOP_SPAN)

    @contextmanager
    def span(
        self, name: str, layer: Any, parent: Any = None, attributes: Any = None
    ) -> Iterator[NoopSpan]:
        yield NOOP_SPAN

    def get_traces(self) -> list[Trace]:
        return []

    def get_trace(self, trace_id: str) -> Trace | None:
        return None

    def clear(self) -> None:
        pass

    def subscribe(self, observer: Callable[[Any], None]) -> Callable[[], None]:
        return lambda: None

    def merge_client_spans(self, trace_id: str, spans: Iterable[Any]) -> int:
        return 0

    @property
    def active_trace_count(self) -> int:
        return 0


noop_tracer = NoopTracer()
