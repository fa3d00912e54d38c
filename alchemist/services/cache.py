"""
ResultCache - Async-safe cache of merge outcomes keyed by unordered element pair.

Features:
- Commutative keys: key(A, B) == key(B, A)
- Tri-state lookup: absent / present text / present no-result
- Optional LRU size cap and TTL (both off by default, entries live for the process)
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from loguru import logger

from alchemist.services.types import MergeOutcome

KEY_DELIMITER = "\x1f"


def pair_key(element_a: str, element_b: str) -> str:
    """Derive the cache key for an unordered element pair."""
    first, second = sorted((element_a.strip().casefold(), element_b.strip().casefold()))
    return f"{first}{KEY_DELIMITER}{second}"


class CacheState(str, Enum):
    """Outcome of a cache lookup."""

    ABSENT = "absent"
    TEXT = "text"
    NO_RESULT = "no-result"


@dataclass(frozen=True)
class CacheLookup:
    """Result from cache lookup. ``outcome`` is set unless state is ABSENT."""

    state: CacheState
    outcome: MergeOutcome | None = None

    @property
    def hit(self) -> bool:
        return self.state is not CacheState.ABSENT


ABSENT = CacheLookup(CacheState.ABSENT)


@dataclass
class CacheEntry:
    """A single cache entry with metadata."""

    outcome: MergeOutcome
    stored_at: float


class ResultCache:
    """
    Cache of merge outcomes.

    Usage:
        cache = ResultCache()
        key = pair_key("Fire", "Water")

        lookup = await cache.lookup(key)
        if lookup.hit:
            return lookup.outcome

        outcome = await dispatch(...)
        await cache.store(key, outcome)
    """

    def __init__(
        self,
        max_size: int = 0,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl or None
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def lookup(self, key: str) -> CacheLookup:
        """Get the cached outcome for a key, never collapsing no-result into a miss."""
        async with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._stats.misses += 1
                logger.debug(f"[ResultCache] MISS: {key!r}")
                return ABSENT

            if self._is_expired(entry):
                del self._entries[key]
                self._stats.misses += 1
                logger.debug(f"[ResultCache] EXPIRED: {key!r}")
                return ABSENT

            self._entries.move_to_end(key)

            if entry.outcome.is_no_result:
                self._stats.no_result_hits += 1
                logger.debug(f"[ResultCache] HIT (no-result): {key!r}")
                return CacheLookup(CacheState.NO_RESULT, entry.outcome)

            self._stats.hits += 1
            logger.debug(f"[ResultCache] HIT: {key!r}")
            return CacheLookup(CacheState.TEXT, entry.outcome)

    async def store(self, key: str, outcome: MergeOutcome) -> None:
        """Upsert an outcome; last write wins."""
        async with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif self._max_size and len(self._entries) >= self._max_size:
                self._evict_oldest()

            self._entries[key] = CacheEntry(outcome=outcome, stored_at=self._clock())
            logger.debug(f"[ResultCache] SET: {key!r} -> {outcome.text!r}")

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            logger.debug(f"[ResultCache] CLEAR: {count} entries removed")

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._ttl is not None and self._clock() - entry.stored_at > self._ttl

    def _evict_oldest(self) -> None:
        """Evict the least recently used entry."""
        key, _ = self._entries.popitem(last=False)
        self._stats.evictions += 1
        logger.debug(f"[ResultCache] EVICT: {key!r}")

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    no_result_hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.no_result_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.no_result_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "no_result_hits": self.no_result_hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
