from __future__ import annotations

from typing import Hashable
import threading


class IdempotencyGuard:
    """Remembers recently processed update ids.

    When the set reaches capacity it is cleared wholesale instead of evicting
    the oldest ids. A very old id may then be processed twice; Telegram only
    redelivers recent updates, so that is accepted.
    """

    def __init__(self, *, capacity: int = 1000):
        self._capacity = max(1, int(capacity))
        self._seen: set[Hashable] = set()
        self._lock = threading.Lock()

    def check_and_mark(self, event_id: Hashable) -> bool:
        """True if event_id was already seen (caller must skip side effects)."""

        with self._lock:
            if event_id in self._seen:
                return True
            if len(self._seen) >= self._capacity:
                self._seen.clear()
            self._seen.add(event_id)
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


class InFlightTracker:
    """Keys currently being processed, so a double tap does not resolve twice."""

    def __init__(self) -> None:
        self._keys: set[Hashable] = set()
        self._lock = threading.Lock()

    def try_begin(self, key: Hashable) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def finish(self, key: Hashable) -> None:
        with self._lock:
            self._keys.discard(key)

    def is_processing(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._keys
