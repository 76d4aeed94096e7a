"""Shared fixtures for tracekit tests."""

import pytest

from tracekit import Tracer, create_tracer


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracer(clock: FakeClock) -> Tracer:
    return create_tracer(clock=clock)
