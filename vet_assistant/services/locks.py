"""Per-session mutual exclusion for the read-modify-write message cycle.

Only one message per session is processed at a time within this process.
Entries are reference counted and dropped once nobody holds or waits on
them, so the registry does not grow with the number of sessions ever seen.
Cross-process races are caught by the store's version check instead.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class SessionLocks:
    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        # session_id → (lock, number of holders + waiters)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        """Block until *session_id* is free, then hold it for the ``with`` body."""
        with self._registry_lock:
            lock, users = self._locks.get(session_id, (threading.Lock(), 0))
            self._locks[session_id] = (lock, users + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._registry_lock:
                _, users = self._locks[session_id]
                if users <= 1:
                    del self._locks[session_id]
                else:
                    self._locks[session_id] = (lock, users - 1)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
