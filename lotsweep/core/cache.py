"""lotsweep.core.cache

Parsed price series, kept for the length of a sweep.

A grid of thousands of combinations over one asset should parse that asset's
file once. Keys embed the file's mtime, so a file replaced mid-sweep is a new
key rather than a stale hit; the TTL only bounds how long old parses linger.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

_MISSING = object()


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    size: int


class TTLCache:
    """Thread-safe TTL cache with hit/miss accounting."""

    def __init__(self, default_ttl_s: float = 3600.0, *, clock: Callable[[], float] = time.monotonic):
        self._default_ttl_s = float(default_ttl_s)
        self._clock = clock
        self._store: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: Hashable) -> Any:
        item = self._store.get(key)
        if item is None:
            return _MISSING
        expires_at, value = item
        if self._clock() >= expires_at:
            del self._store[key]
            return _MISSING
        return value

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            value = self._lookup(key)
            if value is _MISSING:
                self._misses += 1
                return default
            self._hits += 1
            return value

    def set(self, key: Hashable, value: Any, *, ttl_s: float | None = None) -> None:
        ttl = self._default_ttl_s if ttl_s is None else float(ttl_s)
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any], *, ttl_s: float | None = None) -> Any:
        """Cached value for ``key``, calling ``loader`` on a miss.

        The loader runs under the cache lock, so concurrent misses on one key
        load once. Loader exceptions propagate and nothing is cached.
        """

        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                self._hits += 1
                return value
            self._misses += 1
            value = loader()
            self.set(key, value, ttl_s=ttl_s)
            return value

    def prune(self) -> int:
        """Drop expired entries; returns how many went."""

        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._store.items() if now >= expires_at]
            for k in expired:
                del self._store[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._store))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
