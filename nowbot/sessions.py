from __future__ import annotations

from typing import Callable
import threading

import requests


class ThreadLocalSessions:
    """One requests.Session per worker thread.

    Updates are handled on a thread pool; a Session and its connection pool are
    never shared between threads. close() is called once the pool has shut down.
    """

    def __init__(self, factory: Callable[[], requests.Session] = requests.Session):
        self._factory = factory
        self._local = threading.local()
        self._created: list[requests.Session] = []
        self._lock = threading.Lock()

    def get(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._factory()
            self._local.session = session
            with self._lock:
                self._created.append(session)
        return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._created)

    def close(self) -> None:
        with self._lock:
            created, self._created = self._created, []
        for session in created:
            session.close()
        self._local = threading.local()


def session_getter(
    session: requests.Session | None,
    sessions: ThreadLocalSessions | None,
) -> Callable[[], requests.Session]:
    """A pinned session wins (single-threaded callers, tests); otherwise one per calling thread."""

    if session is not None:
        return lambda: session
    return (sessions or ThreadLocalSessions()).get
