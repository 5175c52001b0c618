"""Generic in-memory cache with per-entry expiry.

Memoizes upstream responses so identical queries inside the TTL never reach
the upstream API. Expired entries are evicted lazily at lookup time;
`purge_expired()` is available for callers that want a periodic sweep.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger

from ..keyed_locks import KeyedLocks


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value and the absolute instant after which it is stale."""

    value: V
    expires_at: float


class ResponseCache(Generic[K, V]):
    """Key -> value store with a TTL per entry."""

    def __init__(
        self,
        default_ttl_seconds: float = 900.0,
        enabled: bool = True,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            default_ttl_seconds: TTL applied when `put` gets no explicit ttl
            enabled: When False, `get` always misses and `put` is a no-op
            clock: Monotonic time source (injectable for tests)
        """
        self.default_ttl_seconds = default_ttl_seconds
        self.enabled = enabled
        self._clock = clock
        self._store: dict[K, CacheEntry[V]] = {}
        self._locks = KeyedLocks()
        self._hits = 0
        self._misses = 0

    def get(self, key: K) -> V | None:
        """Return the value for `key` if present and not expired.

        A value is fresh while ``now <= expires_at``. A stale entry is removed
        inside the same critical section that observed it.
        """
        if not self.enabled:
            return None

        with self._locks.hold(key):
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() > entry.expires_at:
                self._store.pop(key, None)
                self._misses += 1
                logger.debug(f"Cache entry expired for key: {key}")
                return None
            self._hits += 1
            return entry.value

    def put(self, key: K, value: V, ttl: float | None = None) -> None:
        """Store `value`, replacing any previous entry for `key` wholesale."""
        if not self.enabled:
            return

        ttl_seconds = self.default_ttl_seconds if ttl is None else ttl
        with self._locks.hold(key):
            self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    def invalidate(self, key: K) -> bool:
        """Remove `key`. Returns True if an entry was present."""
        with self._locks.hold(key):
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        # Swap rather than mutate; concurrent readers keep a consistent view.
        self._store = {}

    def purge_expired(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        evicted = 0
        for key in list(self._store):
            with self._locks.hold(key):
                entry = self._store.get(key)
                if entry is not None and self._clock() > entry.expires_at:
                    self._store.pop(key, None)
                    evicted += 1
        if evicted:
            logger.info(f"Purged {evicted} expired cache entries")
        return evicted

    def stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "entries": len(self._store),
            "hits": self._hits,
            "misses": self._misses,
            "default_ttl_seconds": self.default_ttl_seconds,
        }

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"ResponseCache(size={len(self._store)}, ttl={self.default_ttl_seconds}s)"
