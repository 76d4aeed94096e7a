"""Command-line interface for tracekit.

Renders exported traces in the terminal and runs a small traced demo.

Examples:
    tracekit show traces.json
    tracekit show trace.json --layer database --min-duration 5
    tracekit demo --requests 3
"""

import asyncio
import pathlib
import random
from typing import Any, Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console

from tracekit.config import get_settings
from tracekit.context import RequestContext, get_active_span, get_tracer, set_active_span, set_tracer
from tracekit.instrumentors import trace_cache_operation, trace_loader
from tracekit.reporter import create_cli_reporter, render_trace
from tracekit.telemetry import TRACE_FILE_LOADED, configure_logging, get_logger
from tracekit.tracer import Tracer, create_tracer
from tracekit.transport import deserialize_trace
from tracekit.types import SpanLayer, Trace

app = typer.Typer(help="tracekit - request tracing engine tools")
console = Console()
log = get_logger(__name__)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override TRACEKIT_LOG_LEVEL for this run"
    ),
) -> None:
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        log_dir=settings.log_dir,
        log_format=settings.log_format,
    )


def _load_traces(path: pathlib.Path) -> list[Trace]:
    data: Any = orjson.loads(path.read_bytes())
    documents = data.get("traces", [data]) if isinstance(data, dict) else data
    return [deserialize_trace(doc) for doc in documents]


@app.command(name="show")
def show_command(
    path: pathlib.Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show span attributes"),
    layer: Optional[list[str]] = typer.Option(
        None, "--layer", "-l", help="Only show spans from this layer (repeatable)"
    ),
    min_duration: float = typer.Option(
        0.0, "--min-duration", help="Hide spans shorter than this (ms)"
    ),
) -> None:
    """Render traces exported as JSON (one trace or {"traces": [...]})."""
    try:
        traces = _load_traces(path)
    except orjson.JSONDecodeError as e:
        console.print(f"[red]Not valid JSON:[/red] {e}")
        raise typer.Exit(code=1) from e
    except ValidationError as e:
        console.print(f"[red]Not a trace export:[/red] {e.error_count()} validation error(s)")
        raise typer.Exit(code=1) from e

    log.info(TRACE_FILE_LOADED, path=str(path), traces=len(traces))
    if not traces:
        console.print("[dim]No traces found.[/dim]")
        return
    for trace in traces:
        console.print(render_trace(trace, verbose, layer or [], min_duration))
        console.print()


async def _demo_request(ctx: RequestContext, pathname: str) -> None:
    tracer = get_tracer(ctx)
    parent = get_active_span(ctx)
    if tracer is None or parent is None:
        return

    with tracer.span("routing", SpanLayer.ROUTING, parent=parent) as routing:
        routing.set_attribute("route.pattern", pathname)

    async def load() -> list[int]:
        await asyncio.sleep(random.uniform(0.001, 0.02))
        return list(range(3))

    rows = await trace_loader(parent, "items", load)
    trace_cache_operation(parent, "set", f"{pathname}:items")

    async def query(span: Any) -> int:
        span.set_attribute("db.system", "sqlite")
        span.set_attribute("db.statement", "SELECT count(*) FROM items")
        await asyncio.sleep(random.uniform(0.001, 0.01))
        return len(rows)

    await tracer.with_span("db.count", SpanLayer.DATABASE, query, parent=parent)


async def _run_demo(tracer: Tracer, requests: int) -> None:
    async def handle(index: int) -> None:
        pathname = f"/items/{index}"
        ctx = RequestContext()
        root = tracer.start_trace(
            f"GET {pathname}", SpanLayer.REQUEST, {"method": "GET", "pathname": pathname}
        )
        set_tracer(ctx, tracer)
        set_active_span(ctx, root)
        try:
            await _demo_request(ctx, pathname)
        except Exception as e:
            root.error(e)
            root.set_attribute("http.status_code", 500)
            raise
        else:
            root.set_attribute("http.status_code", 200)
        finally:
            root.end()

    await asyncio.gather(*(handle(i) for i in range(requests)))


@app.command(name="demo")
def demo_command(
    requests: int = typer.Option(3, "--requests", "-n", min=1, help="Concurrent requests"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show span attributes"),
) -> None:
    """Trace a few concurrent fake requests and print them as they complete."""
    tracer = create_tracer()
    unsubscribe = create_cli_reporter(tracer, verbose=verbose, console=console)
    try:
        asyncio.run(_run_demo(tracer, requests))
    finally:
        unsubscribe()
    console.print(f"[dim]{len(tracer.get_traces())} trace(s) retained[/dim]")


if __name__ == "__main__":
    app()
