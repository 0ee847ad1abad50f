# wipflow/services/locks.py

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class EntityLocks:
    """
    One re-entrant lock per entity key.

    Callers key by item id: an item owns its sub-assemblies exclusively, and
    a report against a sub-assembly may also touch the parent's welding
    buffer, so the item is the smallest unit that can be mutated safely.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
