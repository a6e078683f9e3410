"""Unit tests for the HTTP content fetcher."""

import asyncio
from collections.abc import Callable

import httpx
import pytest

from src.fetch.cache import ContentCache
from src.fetch.client import HttpContentFetcher
from src.fetch.metrics import FetchMetrics
from src.fetch.models import FetchError, FetchErrorClass, FetchOptions, RetryPolicy


NO_RETRY = RetryPolicy(max_retries=0)


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_options(**overrides: object) -> FetchOptions:
    """Fetch options for http://backend.test/page."""
    values: dict[str, object] = {
        "url": "http://backend.test/page",
        "cache_key": "backend_test_page",
        "cache_ttl": 30000,
        "headers": {"x-tracer": "tracer-1"},
        "tracer": "tracer-1",
        "statsd_key": "backend_backend_test",
    }
    values.update(overrides)
    return FetchOptions(**values)


def make_fetcher(
    handler: Callable[[httpx.Request], httpx.Response],
    retry_policy: RetryPolicy = NO_RETRY,
    cache: ContentCache | None = None,
    user_agent: str | None = None,
) -> HttpContentFetcher:
    """Fetcher whose client answers through ``handler``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpContentFetcher(
        client=client,
        cache=cache,
        retry_policy=retry_policy,
        user_agent=user_agent,
    )


class TestFetchSuccess:
    """Tests for successful fetches."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        FetchMetrics.reset()

    def test_returns_content_and_lowercased_headers(self) -> None:
        """Body and headers come back, header names lower-cased."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, text="<p>fragment</p>", headers={"X-Custom": "yes"}
            )

        fetcher = make_fetcher(handler)
        result = asyncio.run(fetcher.fetch(make_options()))

        assert result.content == "<p>fragment</p>"
        assert result.headers["x-custom"] == "yes"
        assert result.cache_hit is False
        assert seen[0].headers["x-tracer"] == "tracer-1"

    def test_second_fetch_served_from_cache(self) -> None:
        """A fresh cache entry avoids the network."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            nonlocal calls
            calls += 1
            return httpx.Response(200, text="cached")

        fetcher = make_fetcher(handler)

        async def run() -> tuple[bool, bool]:
            first = await fetcher.fetch(make_options())
            second = await fetcher.fetch(make_options())
            return first.cache_hit, second.cache_hit

        assert asyncio.run(run()) == (False, True)
        assert calls == 1
        metrics = FetchMetrics.get_instance()
        assert metrics.cache_hits_total == 1
        assert metrics.cache_misses_total == 1

    def test_explicit_no_cache_bypasses_cache(self) -> None:
        """explicit_no_cache neither reads nor writes the cache."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            nonlocal calls
            calls += 1
            return httpx.Response(200, text="fresh")

        fetcher = make_fetcher(handler)
        options = make_options(explicit_no_cache=True)

        async def run() -> None:
            await fetcher.fetch(options)
            await fetcher.fetch(options)

        asyncio.run(run())

        assert calls == 2
        assert fetcher.cache.get_stale("backend_test_page") is None

    def test_zero_ttl_not_cached(self) -> None:
        """Results with a zero TTL are not stored."""
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="x"))

        asyncio.run(fetcher.fetch(make_options(cache_ttl=0)))

        assert len(fetcher.cache) == 0

    def test_repeated_set_cookie_joined_by_newline(self) -> None:
        """Multiple set-cookie headers survive flattening."""

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            return httpx.Response(
                200,
                text="",
                headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")],
            )

        fetcher = make_fetcher(handler)
        result = asyncio.run(fetcher.fetch(make_options()))

        assert result.headers["set-cookie"] == "a=1\nb=2"

    def test_default_user_agent_only_when_missing(self) -> None:
        """The fetcher's user agent fills in for a missing one."""
        agents: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            agents.append(request.headers["user-agent"])
            return httpx.Response(200, text="")

        fetcher = make_fetcher(handler, user_agent="cxproxy/test")

        async def run() -> None:
            await fetcher.fetch(make_options(explicit_no_cache=True))
            await fetcher.fetch(
                make_options(
                    explicit_no_cache=True,
                    headers={"user-agent": "Mozilla/5.0"},
                )
            )

        asyncio.run(run())

        assert agents == ["cxproxy/test", "Mozilla/5.0"]


class TestFetchFailure:
    """Tests for failed fetches."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        FetchMetrics.reset()

    def test_404_raises_without_retry(self) -> None:
        """A 404 becomes a non-retried HTTP_4XX FetchError."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            nonlocal calls
            calls += 1
            return httpx.Response(404, text="missing")

        fetcher = make_fetcher(handler, retry_policy=RetryPolicy(max_retries=2))

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(fetcher.fetch(make_options()))

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_class == FetchErrorClass.HTTP_4XX
        assert exc_info.value.stale is None
        assert calls == 1

    def test_5xx_retried_then_succeeds(self) -> None:
        """A transient 5xx is retried per the policy."""
        statuses = iter([503, 200])

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            return httpx.Response(next(statuses), text="recovered")

        policy = RetryPolicy(max_retries=1, base_delay_ms=0, jitter_factor=0.0)
        fetcher = make_fetcher(handler, retry_policy=policy)

        result = asyncio.run(fetcher.fetch(make_options()))

        assert result.content == "recovered"
        assert FetchMetrics.get_instance().retry_total == 1

    def test_timeout_classified(self) -> None:
        """Timeouts become NETWORK_TIMEOUT errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(fetcher.fetch(make_options()))

        assert exc_info.value.error_class == FetchErrorClass.NETWORK_TIMEOUT
        assert exc_info.value.status_code is None

    def test_connect_error_classified(self) -> None:
        """Refused connections become CONNECTION_ERROR errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(fetcher.fetch(make_options()))

        assert exc_info.value.error_class == FetchErrorClass.CONNECTION_ERROR

    def test_invalid_url_becomes_fetch_error(self) -> None:
        """URLs httpx cannot parse fail like any other fetch."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="never")

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(fetcher.fetch(make_options(url="http://layout:hero/")))

        assert exc_info.value.error_class == FetchErrorClass.UNKNOWN
        assert exc_info.value.message.startswith("Invalid URL")
        assert calls == []

    def test_failure_carries_stale_content(self) -> None:
        """An expired entry is attached to the error as stale data."""
        clock = FakeClock()
        cache = ContentCache(clock=clock)
        statuses = iter([200, 500])

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            status = next(statuses)
            return httpx.Response(
                status, text=f"body-{status}", headers={"x-custom": "old"}
            )

        fetcher = make_fetcher(handler, cache=cache)

        async def run() -> None:
            await fetcher.fetch(make_options())
            clock.now += 60
            await fetcher.fetch(make_options())

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(run())

        stale = exc_info.value.stale
        assert stale is not None
        assert stale.content == "body-200"
        assert stale.headers["x-custom"] == "old"
        assert exc_info.value.status_code == 500
        assert FetchMetrics.get_instance().stale_available_total == 1

    def test_rate_limited_parses_retry_after(self) -> None:
        """429 responses carry their Retry-After seconds."""

        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            return httpx.Response(429, headers={"retry-after": "3"})

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(fetcher.fetch(make_options()))

        assert exc_info.value.error_class == FetchErrorClass.RATE_LIMITED
        assert exc_info.value.retry_after == 3
