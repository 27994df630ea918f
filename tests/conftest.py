from __future__ import annotations

import pytest


class FakeClock:
    """Manually advanced replacement for time.monotonic / time.time."""

    def __init__(self, start: float = 1000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects backoff delays instead of sleeping."""

    return []
