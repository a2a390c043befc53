"""Bounded LRU cache for constructed server instances.

The cache holds reconstructable service objects, never authoritative data:
a miss costs one construction and loses nothing. Balances and tokens that
matter live in the ledger and the upstream API.

Eviction scans every entry for the oldest ``last_accessed`` (O(N)), which is
fine for hundreds to low thousands of entries. A heap or an ordered linked
map is the upgrade path if capacity grows far beyond that.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry(Generic[V]):
    value: V
    last_accessed: float


class LRUCache(Generic[K, V]):
    """Least-recently-used cache with a fixed capacity.

    All operations run under one lock so the size bound and single-victim
    eviction hold even when called from several threads.
    """

    def __init__(self, max_size: int, clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._entries: dict[K, CacheEntry[V]] = {}
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self.evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: K) -> Optional[V]:
        """Return the cached value and mark it as recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            entry.last_accessed = self._clock()
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or replace a value, evicting the LRU entry when full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_lru()
            self._entries[key] = CacheEntry(value=value, last_accessed=self._clock())

    def _evict_lru(self) -> None:
        # Ties go to the first entry in insertion order
        oldest_key = None
        oldest_time = float("inf")
        for key, entry in self._entries.items():
            if entry.last_accessed < oldest_time:
                oldest_time = entry.last_accessed
                oldest_key = key

        if oldest_key is not None:
            del self._entries[oldest_key]
            self.evictions += 1
            logger.info(
                f"[Cache] Evicted {oldest_key!r} (size={len(self._entries)}, "
                f"max={self._max_size})"
            )

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
