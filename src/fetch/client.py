"""Async HTTP content fetcher with caching, retries and stale fallback."""

import asyncio
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx
import structlog

from src.fetch.cache import ContentCache
from src.fetch.constants import (
    DEFAULT_MAX_CACHE_ENTRIES,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from src.fetch.metrics import FetchMetrics
from src.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchOptions,
    FetchResult,
    RetryPolicy,
)
from src.fetch.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()


class HttpContentFetcher:
    """Fetches backend content over HTTP.

    Provides:
    - Fresh-cache reads keyed by ``FetchOptions.cache_key``
    - ``explicit_no_cache`` bypass of the cache store
    - Configurable retry policy with exponential backoff
    - Stale cached content attached to every ``FetchError``
    - Metrics per ``statsd_key``
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        cache: ContentCache | None = None,
        retry_policy: RetryPolicy | None = None,
        user_agent: str | None = None,
        max_cache_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Shared async client; one is created when omitted.
            cache: Content cache; an in-memory one is created when omitted.
            retry_policy: Retry behavior for transient failures.
            user_agent: Default user agent when the options carry none.
            max_cache_entries: Size of the default cache.
        """
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._owns_client = client is None
        self._cache = cache or ContentCache(max_entries=max_cache_entries)
        self._retry_policy = retry_policy or RetryPolicy()
        self._user_agent = user_agent
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch")

    @property
    def cache(self) -> ContentCache:
        """Get the content cache."""
        return self._cache

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpContentFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch(self, options: FetchOptions) -> FetchResult:
        """Fetch content for ``options``.

        Args:
            options: Fetch options built by the request context builder.

        Returns:
            FetchResult with content and lower-cased headers.

        Raises:
            FetchError: On transport failure or a non-2xx status. The error
                carries stale cached content for the same key when present.
        """
        log = self._log.bind(
            tracer=options.tracer,
            type=options.type,
            statsd_key=options.statsd_key,
            url=redact_url_credentials(options.url),
            cache_key=options.cache_key,
        )

        if not options.explicit_no_cache:
            cached = self._cache.get(options.cache_key)
            if cached is not None:
                self._metrics.record_cache_hit()
                log.debug("cache_hit")
                return cached.model_copy(update={"cache_hit": True})
            self._metrics.record_cache_miss()

        start_time_ns = time.perf_counter_ns()
        try:
            result = await self._execute_with_retry(options, log)
        except FetchError as e:
            self._metrics.record_failure(e.error_class)
            stale = (
                None
                if options.explicit_no_cache
                else self._cache.get_stale(options.cache_key)
            )
            if stale is not None:
                self._metrics.record_stale_available()
            log.info(
                "fetch_failed",
                status_code=e.status_code,
                error_class=e.error_class.value,
                stale_available=stale is not None,
            )
            raise e.with_stale(stale) from e
        finally:
            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_duration(options.statsd_key, duration_ms)

        if not options.explicit_no_cache and options.cache_ttl > 0:
            self._cache.set(options.cache_key, result, options.cache_ttl)

        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.content_size,
            duration_ms=round(duration_ms, 2),
        )
        return result

    async def _execute_with_retry(
        self,
        options: FetchOptions,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Execute request with retry logic.

        Args:
            options: Fetch options.
            log: Bound logger.

        Returns:
            FetchResult from the first successful attempt.

        Raises:
            FetchError: When the final attempt fails.
        """
        policy = self._retry_policy
        attempt = 0

        while True:
            try:
                return await self._execute_single(options, log, attempt)
            except FetchError as e:
                if not policy.should_retry(e, attempt):
                    raise

                delay_s = policy.get_delay_ms(attempt) / 1000.0
                if e.error_class == FetchErrorClass.RATE_LIMITED and e.retry_after:
                    delay_s = min(e.retry_after, MAX_RETRY_AFTER_SECONDS)

                attempt += 1
                self._metrics.record_retry()
                log.debug(
                    "retry_attempt",
                    attempt=attempt,
                    delay_ms=int(delay_s * 1000),
                    max_retries=policy.max_retries,
                )
                await asyncio.sleep(delay_s)

    async def _execute_single(
        self,
        options: FetchOptions,
        log: structlog.stdlib.BoundLogger,
        attempt: int,
    ) -> FetchResult:
        """Execute a single HTTP GET.

        Args:
            options: Fetch options.
            log: Bound logger.
            attempt: Current attempt number.

        Returns:
            FetchResult for a 2xx response.

        Raises:
            FetchError: For transport errors and non-2xx responses.
        """
        headers = dict(options.headers)
        if self._user_agent and "user-agent" not in headers:
            headers["user-agent"] = self._user_agent

        log.debug("fetch_attempt", attempt=attempt, headers=redact_headers(headers))

        try:
            response = await self._client.get(
                options.url,
                headers=headers,
                timeout=options.timeout / 1000.0,
            )
        except httpx.TimeoutException as e:
            raise FetchError(
                message=f"Request timed out after {options.timeout}ms: {options.url}",
                error_class=FetchErrorClass.NETWORK_TIMEOUT,
            ) from e
        except httpx.ConnectError as e:
            raise FetchError(
                message=f"Connection failed: {e}",
                error_class=FetchErrorClass.CONNECTION_ERROR,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                message=f"Unexpected error: {e}",
                error_class=FetchErrorClass.UNKNOWN,
            ) from e
        except httpx.InvalidURL as e:
            # Not an HTTPError subclass; raised before any request is sent
            raise FetchError(
                message=f"Invalid URL: {e}",
                error_class=FetchErrorClass.UNKNOWN,
            ) from e

        self._metrics.record_request(
            options.statsd_key, response.status_code, len(response.content)
        )

        http_error = self._classify_http_error(response, options.url)
        if http_error is not None:
            raise http_error

        return FetchResult(
            content=response.text,
            headers=_flatten_headers(response.headers),
            status_code=response.status_code,
        )

    def _classify_http_error(
        self,
        response: httpx.Response,
        url: str,
    ) -> FetchError | None:
        """Classify an HTTP status code as a fetch error.

        Args:
            response: HTTP response.
            url: Requested URL (for the message).

        Returns:
            FetchError if the status is not 2xx, None otherwise.
        """
        status_code = response.status_code
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        safe_url = redact_url_credentials(url)

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                message=f"Rate limited (429) fetching {safe_url}",
                status_code=status_code,
                error_class=FetchErrorClass.RATE_LIMITED,
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                message=f"{status_code} returned from {safe_url}",
                status_code=status_code,
                error_class=FetchErrorClass.HTTP_4XX,
            )

        if status_code >= HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                message=f"{status_code} returned from {safe_url}",
                status_code=status_code,
                error_class=FetchErrorClass.HTTP_5XX,
            )

        # 1xx/3xx that survived redirect following
        return FetchError(
            message=f"Unexpected status {status_code} from {safe_url}",
            status_code=status_code,
            error_class=FetchErrorClass.UNKNOWN,
        )


def _flatten_headers(headers: httpx.Headers) -> dict[str, str]:
    """Collapse repeated headers into one comma-joined value.

    ``set-cookie`` is joined with newlines instead, since cookie
    values may themselves contain commas.
    """
    flat: dict[str, str] = {}
    for key in headers:
        values = headers.get_list(key)
        separator = "\n" if key == "set-cookie" else ", "
        flat[key] = separator.join(values)
    return flat


def _parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
        delta = dt - datetime.now(UTC)
        return max(0, int(delta.total_seconds()))
    except (ValueError, TypeError):
        return None
