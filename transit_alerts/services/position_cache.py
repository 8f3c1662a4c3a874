"""Bounded cache for computed ephemeris snapshots.

Backed by ``cachetools``: an ``LRUCache`` by default, a ``TTLCache`` when
``ttl_seconds`` is set. Reads refresh recency; inserting past ``capacity``
evicts the least-recently-used entry; an entry older than the TTL counts as a
miss.

The monitor thread and request handlers share one instance, so every
operation takes the lock.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from cachetools import LRUCache, TTLCache

V = TypeVar("V")


class PositionCache(Generic[V]):
    def __init__(
        self,
        capacity: int = 1024,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        if ttl_seconds is None:
            self._store = LRUCache(maxsize=capacity)
        else:
            self._store = TTLCache(maxsize=capacity, ttl=ttl_seconds, timer=clock)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def _expire(self) -> None:
        # Caller holds the lock.
        if self.ttl_seconds is not None:
            self.expirations += len(self._store.expire())

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            self._expire()
            value = self._store.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._expire()
            if key not in self._store and len(self._store) >= self.capacity:
                self.evictions += 1
            self._store[key] = value

    def keys(self) -> List[Hashable]:
        with self._lock:
            self._expire()
            return list(self._store)

    def items(self) -> List[Tuple[Hashable, V]]:
        """Live ``(key, value)`` pairs."""
        with self._lock:
            self._expire()
            out = []
            for k in list(self._store):
                v = self._store.get(k)
                if v is not None:
                    out.append((k, v))
            return out

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            self._expire()
            return len(self._store)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._store

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._store),
                "capacity": self.capacity,
                "ttl_seconds": self.ttl_seconds,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expirations": self.expirations,
            }
