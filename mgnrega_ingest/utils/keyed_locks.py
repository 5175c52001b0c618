"""Per-key lock registry.

Callers touching the same key serialize on that key's lock; unrelated keys
never contend. Only the registry bookkeeping is guarded globally, and that
critical section is a couple of dict operations.

A key's lock exists only while some caller holds or waits for it, so the
registry stays bounded by the number of in-flight keys however many distinct
keys pass through it.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyedLocks:
    """Reference-counted `threading.Lock` per key."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    def _acquire_entry(self, key: Hashable) -> _KeyLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
            return entry

    def _release_entry(self, key: Hashable, entry: _KeyLock) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        entry = self._acquire_entry(key)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(key, entry)

    def __len__(self) -> int:
        return len(self._locks)
