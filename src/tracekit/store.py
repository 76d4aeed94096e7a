"""Bounded, insertion-ordered container of sealed traces.

Eviction happens only synchronously inside ``insert``: memory is bounded by
``capacity`` at every point between calls. There is no background sweeping.
"""

import threading
from collections import OrderedDict

from tracekit.telemetry import TRACE_EVICTED, get_logger
from tracekit.types import Trace, TraceId

log = get_logger(__name__)


class RetentionStore:
    """FIFO window over the most recently sealed traces.

    Args:
        capacity: Maximum number of traces held at once (at least 1).
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._traces: OrderedDict[TraceId, Trace] = OrderedDict()
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def insert(self, trace: Trace) -> list[Trace]:
        """Store a sealed trace, evicting the oldest ones while over capacity.

        Re-inserting an id already held replaces it and moves it to the
        newest position.

        Args:
            trace: The sealed trace.

        Returns:
            The traces evicted to make room, oldest first.
        """
        evicted: list[Trace] = []
        with self._lock:
            self._traces.pop(trace.id, None)
            self._traces[trace.id] = trace
            while len(self._traces) > self._capacity:
                oldest = self.evict_oldest()
                if oldest is None:
                    break
                evicted.append(oldest)
        return evicted

    def evict_oldest(self) -> Trace | None:
        """Remove and return the oldest-inserted trace, or None when empty."""
        with self._lock:
            if not self._traces:
                return None
            _, trace = self._traces.popitem(last=False)
        log.debug(TRACE_EVICTED, trace_id=trace.id, capacity=self._capacity)
        return trace

    def get(self, trace_id: TraceId) -> Trace | None:
        with self._lock:
            return self._traces.get(trace_id)

    def get_all(self) -> list[Trace]:
        """All retained traces, oldest first."""
        with self._lock:
            return list(self._traces.values())

    def clear(self) -> None:
        with self._lock:
            self._traces.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._traces)

    def __contains__(self, trace_id: object) -> bool:
        with self._lock:
            return trace_id in self._traces

    def __repr__(self) -> str:
        return f"RetentionStore(size={len(self)}, capacity={self._capacity})"
