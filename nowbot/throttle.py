from __future__ import annotations

from typing import Callable, Hashable
import threading
import time


class RequestThrottle:
    """Sliding-window limiter, one ordered timestamp list per subscriber.

    Stale timestamps are pruned lazily on each call. A rejected call is not
    recorded.
    """

    def __init__(
        self,
        *,
        name: str,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.max_requests = max(1, int(max_requests))
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: dict[Hashable, list[float]] = {}

    def _prune(self, subscriber_id: Hashable, now: float) -> list[float]:
        """Live timestamps for subscriber_id. Idle subscribers are dropped from the map."""

        window_start = now - self.window_seconds
        stamps = self._requests.get(subscriber_id)
        if not stamps:
            self._requests.pop(subscriber_id, None)
            return []
        # Timestamps are appended in order, so everything stale sits at the front.
        i = 0
        while i < len(stamps) and stamps[i] < window_start:
            i += 1
        if i == len(stamps):
            del self._requests[subscriber_id]
            return []
        if i:
            stamps = stamps[i:]
            self._requests[subscriber_id] = stamps
        return stamps

    def try_consume(self, subscriber_id: Hashable) -> bool:
        with self._lock:
            now = self._clock()
            stamps = self._prune(subscriber_id, now)
            if len(stamps) >= self.max_requests:
                return False
            if not stamps:
                self._requests[subscriber_id] = stamps
            stamps.append(now)
            return True

    def tracked_subscribers(self) -> int:
        with self._lock:
            return len(self._requests)

    def cleanup_expired(self) -> int:
        """Drop every subscriber whose window has fully elapsed; returns how many."""

        with self._lock:
            now = self._clock()
            before = len(self._requests)
            for subscriber_id in list(self._requests):
                self._prune(subscriber_id, now)
            return before - len(self._requests)

    def remaining(self, subscriber_id: Hashable) -> int:
        with self._lock:
            stamps = self._prune(subscriber_id, self._clock())
            return max(0, self.max_requests - len(stamps))

    def refund(self, subscriber_id: Hashable) -> None:
        """Undo the most recent admission (used when a sibling limit rejects)."""

        with self._lock:
            stamps = self._requests.get(subscriber_id)
            if stamps:
                stamps.pop()
                if not stamps:
                    del self._requests[subscriber_id]

    def reset(self, subscriber_id: Hashable) -> None:
        with self._lock:
            self._requests.pop(subscriber_id, None)


class ThrottleGroup:
    """Independent throttles that must all admit a request."""

    def __init__(self, throttles: list[RequestThrottle]):
        self._throttles = list(throttles)

    def admit(self, subscriber_id: Hashable) -> str | None:
        """Return None when admitted, else the name of the rejecting throttle."""

        consumed: list[RequestThrottle] = []
        for throttle in self._throttles:
            if throttle.try_consume(subscriber_id):
                consumed.append(throttle)
                continue
            for earlier in consumed:
                earlier.refund(subscriber_id)
            return throttle.name
        return None

    def try_consume(self, subscriber_id: Hashable) -> bool:
        return self.admit(subscriber_id) is None

    def cleanup_expired(self) -> int:
        return sum(throttle.cleanup_expired() for throttle in self._throttles)
