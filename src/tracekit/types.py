"""Core data model for traces and spans.

Spans are stored in an arena keyed by span id; parent and child links are
ids rather than object references, so walking a trace is always bounded by
its span count even if the links are malformed.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TraceId = str
SpanId = str
AttributeValue = Any


class SpanLayer(str, Enum):
    """Recommended layers a span can belong to.

    Layers are free-form; any string is accepted wherever a layer is expected.
    """

    REQUEST = "request"
    ROUTING = "routing"
    DATA = "data"
    FORMS = "forms"
    SIGNALS = "signals"
    RPC = "rpc"
    DATABASE = "database"
    AUTH = "auth"
    ISLANDS = "islands"
    BUILD = "build"
    ERRORS = "errors"
    CUSTOM = "custom"


class SpanStatus(str, Enum):
    """Final status of a span."""

    OK = "ok"
    ERROR = "error"


class TraceOrigin(str, Enum):
    """Where a trace was started."""

    SERVER = "server"
    CLIENT = "client"


def layer_name(layer: "SpanLayer | str") -> str:
    """Normalize a layer to its plain string value."""
    return layer.value if isinstance(layer, SpanLayer) else str(layer)


@dataclass
class SpanEvent:
    """A timestamped event recorded within a span.

    Attributes:
        name: Event name (e.g. "cache.get").
        timestamp: Milliseconds on the tracer's clock.
        attributes: Arbitrary key-value data.
    """

    name: str
    timestamp: float
    attributes: dict[str, AttributeValue] = field(default_factory=dict)


@dataclass
class Span:
    """One recorded unit of work.

    Mutable only while its handle is open; ``end_time`` and ``duration`` are
    None until then.
    """

    id: SpanId
    trace_id: TraceId
    parent_id: SpanId | None
    name: str
    layer: str
    start_time: float
    status: SpanStatus = SpanStatus.OK
    end_time: float | None = None
    duration: float | None = None
    attributes: dict[str, AttributeValue] = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    children: list[SpanId] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class TraceMetadata:
    """Caller-supplied facts about a trace, captured once at start.

    Attributes:
        origin: Whether the trace started on the server or a client.
        method: HTTP method, when the trace wraps a request.
        pathname: Request path.
        status_code: Response status code, if known at start.
        route_pattern: Matched route pattern.
        extra: Anything else the caller wants to keep with the trace.
    """

    origin: TraceOrigin = TraceOrigin.SERVER
    method: str | None = None
    pathname: str | None = None
    status_code: int | None = None
    route_pattern: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: dict[str, Any] | None) -> "TraceMetadata":
        """Build metadata from a loose mapping, keeping unknown keys in ``extra``.

        camelCase keys (``statusCode``, ``routePattern``) are accepted too.
        """
        if not values:
            return cls()
        aliases = {"statusCode": "status_code", "routePattern": "route_pattern"}
        known: dict[str, Any] = {}
        extra: dict[str, Any] = dict(values.get("extra") or {})
        for key, value in values.items():
            if key == "extra":
                continue
            name = aliases.get(key, key)
            if name in {"origin", "method", "pathname", "status_code", "route_pattern"}:
                known[name] = value
            else:
                extra[key] = value
        if "origin" in known:
            known["origin"] = TraceOrigin(known["origin"])
        return cls(extra=extra, **known)


@dataclass
class Trace:
    """A tree of spans sharing one root, plus aggregate timing.

    ``end_time``/``duration`` come from the root span when the trace is
    sealed and can only grow afterwards (client span reconciliation).
    """

    id: TraceId
    root_span_id: SpanId
    start_time: float
    metadata: TraceMetadata = field(default_factory=TraceMetadata)
    spans: dict[SpanId, Span] = field(default_factory=dict)
    end_time: float | None = None
    duration: float | None = None

    @property
    def root_span(self) -> Span | None:
        return self.spans.get(self.root_span_id)

    @property
    def span_count(self) -> int:
        return len(self.spans)

    @property
    def sealed(self) -> bool:
        return self.end_time is not None

    def children_of(self, span_id: SpanId) -> list[Span]:
        """Direct children of a span that are present in this trace, by start time."""
        parent = self.spans.get(span_id)
        if parent is None:
            return []
        found = {child_id: self.spans[child_id] for child_id in parent.children if child_id in self.spans}
        found.pop(span_id, None)
        return sorted(found.values(), key=lambda s: s.start_time)

    def walk(self) -> Iterator[tuple[Span, int]]:
        """Depth-first walk from the root yielding ``(span, depth)``.

        Each span is yielded at most once, so cycles cannot loop.
        """
        root = self.root_span
        if root is None:
            return
        seen: set[SpanId] = set()
        stack: list[tuple[Span, int]] = [(root, 0)]
        while stack and len(seen) < len(self.spans):
            span, depth = stack.pop()
            if span.id in seen:
                continue
            seen.add(span.id)
            yield span, depth
            for child in reversed(self.children_of(span.id)):
                if child.id not in seen:
                    stack.append((child, depth + 1))
