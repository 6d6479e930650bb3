"""Time-bounded cache for search results with explicit eviction."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
import logging
import time
from typing import Generic, TypeVar


logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class TTLCache(Generic[K, V]):
    """Mapping of key -> (value, expiry) with lazy expiry and an LRU size bound.

    Nothing runs in the background: expired entries disappear when read or when
    ``evict_expired`` is called.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[K, tuple[V, float]] = OrderedDict()
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.stats.evictions += 1
            self.stats.misses += 1
            return None
        self._entries.move_to_end(key)
        self.stats.hits += 1
        return value

    def set(self, key: K, value: V) -> None:
        if self.ttl_seconds == 0:
            return
        self._entries[key] = (value, self._clock() + self.ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self.stats.evictions += 1

    def invalidate(self, predicate: Callable[[K], bool]) -> int:
        """Drop every entry whose key matches ``predicate``."""
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        self.stats.evictions += len(doomed)
        return len(doomed)

    def evict_expired(self) -> int:
        now = self._clock()
        return self.invalidate(lambda key: self._entries[key][1] <= now)

    def clear(self) -> None:
        if self._entries:
            logger.debug("Clearing %d cached search results", len(self._entries))
        self.stats.evictions += len(self._entries)
        self._entries.clear()
