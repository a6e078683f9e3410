"""Unit tests for the in-memory content cache."""

import pytest

from src.fetch.cache import ContentCache
from src.fetch.models import FetchResult


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ContentCache:
    """Create a small cache driven by the fake clock."""
    return ContentCache(max_entries=2, clock=clock)


class TestContentCache:
    """Tests for ContentCache."""

    def test_fresh_entry_returned(self, cache: ContentCache) -> None:
        """A stored result is returned within its TTL."""
        result = FetchResult(content="<p>hi</p>")
        cache.set("k", result, ttl_ms=30000)

        assert cache.get("k") == result

    def test_expired_entry_not_fresh_but_stale(
        self, cache: ContentCache, clock: FakeClock
    ) -> None:
        """Past its TTL an entry is only available as stale data."""
        result = FetchResult(content="old")
        cache.set("k", result, ttl_ms=30000)

        clock.now += 31

        assert cache.get("k") is None
        assert cache.get_stale("k") == result

    def test_missing_key(self, cache: ContentCache) -> None:
        """Unknown keys miss in both lookups."""
        assert cache.get("nope") is None
        assert cache.get_stale("nope") is None

    def test_set_overwrites(self, cache: ContentCache) -> None:
        """A second set replaces the entry."""
        cache.set("k", FetchResult(content="a"), ttl_ms=1000)
        cache.set("k", FetchResult(content="b"), ttl_ms=1000)

        result = cache.get("k")
        assert result is not None
        assert result.content == "b"
        assert len(cache) == 1

    def test_lru_eviction(self, cache: ContentCache) -> None:
        """The least recently used entry is evicted first."""
        cache.set("a", FetchResult(content="a"), ttl_ms=1000)
        cache.set("b", FetchResult(content="b"), ttl_ms=1000)
        cache.get("a")
        cache.set("c", FetchResult(content="c"), ttl_ms=1000)

        assert cache.get_stale("a") is not None
        assert cache.get_stale("b") is None
        assert cache.get_stale("c") is not None

    def test_clear(self, cache: ContentCache) -> None:
        """Clear removes everything."""
        cache.set("a", FetchResult(content="a"), ttl_ms=1000)
        cache.clear()
        assert len(cache) == 0
