"""Terminal reporter for completed traces.

Subscribes to a tracer and prints every completed trace as a tree:

    GET     /api/users/123  200  45.2ms
    ├── routing             1.2ms   matched /api/users/[id]
    ├── data               38.4ms
    │   ├── user           12.1ms   db
    │   └── comments        8.0ms   cache hit
    └── render              2.5ms
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from tracekit.bus import TraceEnded, TraceStreamEvent
from tracekit.types import Span, SpanId, SpanLayer, SpanStatus, Trace, layer_name

if TYPE_CHECKING:
    from tracekit.noop import NoopTracer
    from tracekit.tracer import Tracer

LAYER_STYLES: dict[str, str] = {
    SpanLayer.REQUEST.value: "white",
    SpanLayer.ROUTING.value: "cyan",
    SpanLayer.DATA.value: "blue",
    SpanLayer.DATABASE.value: "magenta",
    SpanLayer.AUTH.value: "yellow",
    SpanLayer.RPC.value: "cyan",
    SpanLayer.FORMS.value: "green",
    SpanLayer.ISLANDS.value: "magenta",
    SpanLayer.BUILD.value: "blue",
    SpanLayer.ERRORS.value: "red",
    SpanLayer.SIGNALS.value: "green",
    SpanLayer.CUSTOM.value: "bright_black",
}


def format_duration(ms: float) -> str:
    """Human-readable duration: microseconds below 1ms, seconds from 1000ms."""
    if ms < 1:
        return f"{ms * 1000:.0f}us"
    if ms < 1000:
        return f"{ms:.1f}ms"
    return f"{ms / 1000:.2f}s"


def duration_style(ms: float) -> str:
    if ms < 50:
        return "green"
    if ms < 200:
        return "yellow"
    return "red"


def status_style(code: int) -> str:
    if code < 300:
        return "green"
    if code < 400:
        return "cyan"
    if code < 500:
        return "yellow"
    return "red"


def span_summary(span: Span) -> str:
    """Short description of a span built from well-known attributes."""
    attrs = span.attributes
    parts: list[str] = []

    if attrs.get("route.pattern"):
        parts.append(f"matched {attrs['route.pattern']}")
    if attrs.get("cache.hit") is True:
        parts.append("cache hit")
    elif attrs.get("db.system"):
        parts.append(str(attrs["db.system"]))
    if attrs.get("auth.result"):
        parts.append(f"{attrs.get('auth.provider') or 'auth'} -> {attrs['auth.result']}")
    if attrs.get("rpc.procedure"):
        parts.append(str(attrs.get("rpc.type") or "query"))
    if span.status is SpanStatus.ERROR and attrs.get("error.message"):
        parts.append(str(attrs["error.message"]))
    if attrs.get("db.statement"):
        statement = str(attrs["db.statement"])
        parts.append(statement[:50] + "..." if len(statement) > 50 else statement)

    return "  ".join(parts)


def _status_code(trace: Trace) -> int:
    root = trace.root_span
    code = trace.metadata.status_code
    if code is None and root is not None:
        code = root.attributes.get("http.status_code")
    try:
        return int(code) if code is not None else 200
    except (TypeError, ValueError):
        return 200


def render_trace(
    trace: Trace,
    verbose: bool = False,
    layers: Iterable[SpanLayer | str] | None = None,
    min_duration: float = 0.0,
) -> Tree:
    """Build a rich tree for one trace.

    Args:
        trace: Trace to render.
        verbose: Also list every span's attributes.
        layers: Only show spans from these layers (all when empty).
        min_duration: Hide spans shorter than this many milliseconds.
    """
    root = trace.root_span
    method = trace.metadata.method or (root.name if root and not trace.metadata.pathname else "GET")
    pathname = trace.metadata.pathname or ""
    code = _status_code(trace)
    duration = trace.duration or 0.0

    header = Text()
    header.append(f"{method:<7} ", style="bold")
    header.append(pathname)
    header.append("  ")
    header.append(str(code), style=status_style(code))
    header.append("  ")
    header.append(format_duration(duration), style=duration_style(duration))
    tree = Tree(header, guide_style="bright_black")

    if root is None:
        return tree

    wanted = {layer_name(layer) for layer in layers or ()}
    seen: set[SpanId] = {root.id}

    def add_children(node: Tree, parent_id: SpanId) -> None:
        for span in trace.children_of(parent_id):
            if span.id in seen:
                continue
            seen.add(span.id)
            if wanted and span.layer not in wanted:
                continue
            span_duration = span.duration or 0.0
            if span_duration < min_duration:
                continue

            label = Text()
            label.append(f"{span.name:<16}", style=LAYER_STYLES.get(span.layer, "default"))
            label.append(f"{format_duration(span_duration):>8}", style=duration_style(span_duration))
            summary = span_summary(span)
            if summary:
                label.append(f"   {summary}", style="dim")
            child_node = node.add(label)
            if verbose:
                for key, value in span.attributes.items():
                    child_node.add(Text(f"{key}={value}", style="dim"))
            add_children(child_node, span.id)

    add_children(tree, root.id)
    return tree


def create_cli_reporter(
    tracer: Tracer | NoopTracer,
    verbose: bool = False,
    layers: Iterable[SpanLayer | str] | None = None,
    min_duration: float = 0.0,
    console: Console | None = None,
) -> Callable[[], None]:
    """Print every completed trace to the terminal.

    Returns:
        A function that stops reporting.
    """
    out = console or Console(stderr=True)
    layer_filter = list(layers or ())

    def on_event(event: TraceStreamEvent) -> None:
        if isinstance(event, TraceEnded):
            out.print(render_trace(event.trace, verbose, layer_filter, min_duration))
            out.print()

    return tracer.subscribe(on_event)
