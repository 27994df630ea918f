from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable
import threading
import time


PENDING_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class PendingWorkItem:
    subscriber_id: Hashable
    payload: Any
    created_at: float


class PendingWorkCache:
    """One deferred item per subscriber, saved while the gate says "subscribe first".

    Rules:
    - save() always overwrites whatever the subscriber had pending.
    - Items older than the TTL are treated as absent and dropped on read.
    - Nothing is persisted; a restart forgets everything.
    """

    def __init__(self, *, ttl_seconds: float = PENDING_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._items: dict[Hashable, PendingWorkItem] = {}
        self._lock = threading.Lock()

    def _expired(self, item: PendingWorkItem, now: float) -> bool:
        return (now - item.created_at) >= self._ttl

    def _get_locked(self, subscriber_id: Hashable) -> PendingWorkItem | None:
        item = self._items.get(subscriber_id)
        if item is None:
            return None
        if self._expired(item, self._clock()):
            del self._items[subscriber_id]
            return None
        return item

    def save(self, subscriber_id: Hashable, payload: Any) -> PendingWorkItem:
        item = PendingWorkItem(subscriber_id=subscriber_id, payload=payload, created_at=self._clock())
        with self._lock:
            self._items[subscriber_id] = item
        return item

    def get(self, subscriber_id: Hashable) -> PendingWorkItem | None:
        with self._lock:
            return self._get_locked(subscriber_id)

    def pop(self, subscriber_id: Hashable) -> PendingWorkItem | None:
        """Read-and-clear in one step, so two confirmations cannot both resume."""

        with self._lock:
            item = self._get_locked(subscriber_id)
            if item is not None:
                del self._items[subscriber_id]
            return item

    def clear(self, subscriber_id: Hashable) -> None:
        with self._lock:
            self._items.pop(subscriber_id, None)

    def cleanup_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, item in self._items.items() if self._expired(item, now)]
            for k in stale:
                del self._items[k]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
