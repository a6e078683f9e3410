"""In-memory content cache for the fetch layer.

Entries are kept past their TTL so a failed fetch can still offer the last
good content as stale data.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from src.fetch.constants import DEFAULT_MAX_CACHE_ENTRIES
from src.fetch.models import FetchResult


logger = structlog.get_logger()


@dataclass(frozen=True)
class CacheEntry:
    """A cached fetch result and its expiry (monotonic ms)."""

    result: FetchResult
    expires_at_ms: float

    def is_fresh(self, now_ms: float) -> bool:
        """Check whether the entry is still within its TTL."""
        return now_ms < self.expires_at_ms


class ContentCache:
    """Bounded LRU cache of fetch results keyed by cache key."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of entries before LRU eviction.
            clock: Monotonic clock in seconds (injectable for tests).
        """
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._log = logger.bind(component="cache")

    def __len__(self) -> int:
        return len(self._entries)

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def get(self, key: str) -> FetchResult | None:
        """Return a fresh result for ``key``, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._now_ms()):
            return None
        self._entries.move_to_end(key)
        return entry.result

    def get_stale(self, key: str) -> FetchResult | None:
        """Return the last stored result for ``key`` regardless of TTL."""
        entry = self._entries.get(key)
        return entry.result if entry else None

    def set(self, key: str, result: FetchResult, ttl_ms: int) -> None:
        """Store a result for ``ttl_ms`` milliseconds.

        Args:
            key: Cache key.
            result: Result to cache.
            ttl_ms: Time to live in milliseconds.
        """
        self._entries[key] = CacheEntry(
            result=result,
            expires_at_ms=self._now_ms() + ttl_ms,
        )
        self._entries.move_to_end(key)

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._log.debug("cache_evicted", cache_key=evicted)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
