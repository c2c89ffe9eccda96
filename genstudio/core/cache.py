"""
Bounded, time-limited memoization of successful generation results.

Entries are keyed by request fingerprint. When the cache is full, the entry
with the oldest creation time is evicted, regardless of how recently it was
read.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .models import GenerationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_MS = 60 * 60 * 1000


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry:
    """Cached response with its bookkeeping."""
    response: GenerationResult
    created_at: float
    hit_count: int = 0


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""
    hits: int
    misses: int
    size: int
    hit_rate: float


class ResponseCache:
    """In-memory LRU-by-age response cache with TTL expiry.

    Every operation is synchronous, so concurrent asyncio tasks sharing one
    instance never observe a half-applied update.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_ms: float = DEFAULT_TTL_MS,
        clock: Callable[[], float] = _now_ms,
    ):
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries (must be >= 1)
            ttl_ms: Entry lifetime in milliseconds (must be > 0)
            clock: Millisecond clock, injectable for tests

        Raises:
            ValueError: If max_size or ttl_ms is out of range
        """
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be > 0")
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def peek(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return the raw entry without touching stats, hit counts or expiry."""
        return self._entries.get(fingerprint)

    def get(self, fingerprint: str) -> Optional[GenerationResult]:
        """Return the cached result, or None on a miss.

        An entry older than the TTL is deleted and counted as a miss.
        """
        entry = self._entries.get(fingerprint)
        if entry is None:
            self._misses += 1
            logger.debug("Cache MISS: %s", fingerprint)
            return None

        age = self._clock() - entry.created_at
        if age > self.ttl_ms:
            del self._entries[fingerprint]
            self._misses += 1
            logger.debug("Cache EXPIRED: %s (age: %ds)", fingerprint, round(age / 1000))
            return None

        entry.hit_count += 1
        self._hits += 1
        logger.info(
            "Cache HIT: %s (hits: %d, age: %ds)",
            fingerprint,
            entry.hit_count,
            round(age / 1000),
        )
        return entry.response

    def set(self, fingerprint: str, response: GenerationResult) -> None:
        """Store a result, evicting the oldest entry if full and the key is new.

        Overwriting an existing key resets its hit count and creation time.
        """
        if len(self._entries) >= self.max_size and fingerprint not in self._entries:
            oldest_key = self._find_oldest_key()
            if oldest_key is not None:
                del self._entries[oldest_key]
                logger.debug("Cache EVICT: %s (LRU)", oldest_key)

        self._entries[fingerprint] = CacheEntry(response=response, created_at=self._clock())
        logger.debug("Cache SET: %s (size: %d/%d)", fingerprint, len(self._entries), self.max_size)

    def clear(self) -> int:
        """Remove every entry and return how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        logger.info("Cache CLEARED: %d entries removed", removed)
        return removed

    def clear_expired(self) -> int:
        """Remove entries older than the TTL and return how many were removed."""
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.created_at > self.ttl_ms
        ]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.info("Cache CLEANUP: %d expired entries removed", len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            hit_rate=self._hits / total if total > 0 else 0.0,
        )

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        logger.debug("Cache stats reset")

    def _find_oldest_key(self) -> Optional[str]:
        # Full scan; the cache is small and bounded.
        oldest_key = None
        oldest_time = float("inf")
        for key, entry in self._entries.items():
            if entry.created_at < oldest_time:
                oldest_time = entry.created_at
                oldest_key = key
        return oldest_key
