"""In-memory TTL cache used for repository discovery and workflow detection."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TTLCache:
    """Thread-safe LRU cache where every entry expires a fixed time after it was stored."""

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._cache[key]
                logger.debug("Cache entry expired: %s", key)
                return None
            self._cache.move_to_end(key)
            return entry.value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = _CacheEntry(
                value=value,
                expires_at=self._clock() + (self._default_ttl if ttl is None else ttl),
            )
            # Evict LRU if over capacity
            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def invalidate_by_prefix(self, prefix: str) -> int:
        """Remove all keys matching a prefix. Returns count removed."""
        with self._lock:
            keys_to_remove = [k for k in self._cache if k.startswith(prefix)]
            for k in keys_to_remove:
                del self._cache[k]
            return len(keys_to_remove)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._cache.keys())

    def items(self) -> list[tuple[str, Any]]:
        """Unexpired entries, least recently used first."""
        now = self._clock()
        with self._lock:
            return [(k, e.value) for k, e in self._cache.items() if now < e.expires_at]

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            total = len(self._cache)
            fresh = sum(1 for entry in self._cache.values() if now < entry.expires_at)
            return {
                "total_entries": total,
                "fresh_entries": fresh,
                "expired_entries": total - fresh,
                "max_size": self._max_size,
                "ttl_seconds": self._default_ttl,
            }


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, expires_at: float):
        self.value = value
        self.expires_at = expires_at
