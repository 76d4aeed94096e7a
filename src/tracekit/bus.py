"""Synchronous publish/subscribe channel for trace lifecycle events.

Observers are called in subscription order, on the caller's thread, during
the engine call that produced the event. A failing observer is logged and
skipped; it never breaks tracing or the other observers.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, Union

from tracekit.telemetry import SUBSCRIBER_FAILED, get_logger
from tracekit.types import Span, SpanEvent, Trace, TraceId

log = get_logger(__name__)


@dataclass(frozen=True)
class TraceStarted:
    """A root span was opened and a new trace registered."""

    type: ClassVar[str] = "trace:start"
    trace: Trace


@dataclass(frozen=True)
class SpanStarted:
    """A span was opened."""

    type: ClassVar[str] = "span:start"
    span: Span


@dataclass(frozen=True)
class SpanEventRecorded:
    """A timestamped event was appended to an open span."""

    type: ClassVar[str] = "span:event"
    trace_id: TraceId
    span: Span
    event: SpanEvent


@dataclass(frozen=True)
class SpanEnded:
    """A span was closed."""

    type: ClassVar[str] = "span:end"
    span: Span


@dataclass(frozen=True)
class TraceEnded:
    """The root span closed and the trace was sealed.

    Also emitted for traces the duration filter keeps out of retention.
    """

    type: ClassVar[str] = "trace:end"
    trace: Trace


TraceStreamEvent = Union[TraceStarted, SpanStarted, SpanEventRecorded, SpanEnded, TraceEnded]
Observer = Callable[[TraceStreamEvent], None]


class EventBus:
    """Fan-out of trace stream events to registered observers."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._observers: list[_Subscription] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer.

        Args:
            observer: Called with every event emitted from now on.

        Returns:
            A function that removes this registration. Calling it more than
            once has no further effect.
        """
        token = _Subscription(observer)
        with self._lock:
            self._observers.append(token)

        def unsubscribe() -> None:
            with self._lock:
                token.active = False
                if token in self._observers:
                    self._observers.remove(token)

        return unsubscribe

    def emit(self, event: TraceStreamEvent) -> None:
        """Deliver an event to every current observer, in subscription order."""
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            # Skip observers unsubscribed earlier in this same delivery.
            if not observer.active:
                continue
            try:
                observer(event)
            except Exception as e:
                log.warning(
                    SUBSCRIBER_FAILED,
                    event_type=event.type,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._observers)


class _Subscription:
    """Identity wrapper so the same callable can be subscribed twice independently."""

    __slots__ = ("observer", "active")

    def __init__(self, observer: Observer) -> None:
        self.observer = observer
        self.active = True

    def __call__(self, event: TraceStreamEvent) -> None:
        self.observer(event)
