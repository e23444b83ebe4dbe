"""
In-memory cache with frequency-weighted LRU eviction.

Ownership: the cache keeps its own copy of every payload. set() stores a copy of
what it is given and get() hands out a fresh copy, so callers may mutate what
they receive without touching the cached value.
"""
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar
import logging
import math
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    key: str
    payload: T
    timestamp: float
    access_count: int
    last_accessed: float


class LRUCache(Generic[T]):
    def __init__(
        self,
        capacity: int,
        copy_payload: Callable[[T], T],
        frequency_weight: float = 10.0,
        eviction_fraction: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Callable[[CacheEntry[T]], None] | None = None,
        name: str = "cache",
    ):
        """
        Args:
            capacity: number of entries kept before an eviction pass
            copy_payload: type-specific deep copy used on every get and set
            frequency_weight: recency, in clock units, that one access is worth
            eviction_fraction: share of entries removed per eviction pass
            clock: time source; injectable for tests
            on_evict: called with each evicted entry
            name: used in log messages
        """
        self.capacity = capacity
        self.copy_payload = copy_payload
        self.frequency_weight = frequency_weight
        self.eviction_fraction = eviction_fraction
        self.clock = clock
        self.on_evict = on_evict
        self.name = name
        self._entries: dict[str, CacheEntry[T]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)

    def has(self, key: str) -> bool:
        return key in self._entries

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Stored entry without copying or touching its statistics."""
        return self._entries.get(key)

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            logger.debug(f"{self.name} miss: {key}")
            return None
        self.hits += 1
        entry.access_count += 1
        entry.last_accessed = self.clock()
        return self.copy_payload(entry.payload)

    def set(self, key: str, payload: T) -> None:
        now = self.clock()
        previous = self._entries.get(key)
        self._entries[key] = CacheEntry(
            key=key,
            payload=self.copy_payload(payload),
            timestamp=now,
            access_count=previous.access_count + 1 if previous else 1,
            last_accessed=now,
        )
        if len(self._entries) > self.capacity:
            self.evict(protect=key)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def score(self, entry: CacheEntry[T]) -> float:
        return entry.last_accessed + entry.access_count * self.frequency_weight

    def evict(self, protect: str | None = None) -> list[str]:
        """
        Remove the lowest scoring entries in one pass.

        At least eviction_fraction of the entries go, and enough to get back to
        capacity. Neither the protected key (the one just written) nor the most
        recently accessed entry is removed.
        """
        size = len(self._entries)
        if size == 0:
            return []
        count = max(math.ceil(size * self.eviction_fraction), size - self.capacity)
        keep = {protect, max(self._entries.values(), key=lambda e: e.last_accessed).key}
        candidates = sorted(
            (entry for key, entry in self._entries.items() if key not in keep),
            key=self.score,
        )
        evicted = []
        for entry in candidates[:count]:
            del self._entries[entry.key]
            evicted.append(entry.key)
            if self.on_evict is not None:
                self.on_evict(entry)
        logger.debug(f"{self.name} evicted {len(evicted)} entries")
        return evicted

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }
