"""Derivation of fetch options for backend and layout fetches."""

from urllib.parse import urlsplit

import structlog

from src.config.schemas import BackendConfig
from src.fetch.constants import FETCH_TYPE_BACKEND, FETCH_TYPE_LAYOUT
from src.fetch.models import FetchOptions
from src.proxy.constants import (
    DEFAULT_ACCEPT,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_TTL,
    DIRECT_REFERER,
    LAYOUT_CACHE_KEY_PREFIX,
    LAYOUT_CACHE_TTL_MS,
    UNKNOWN_USER_AGENT,
)
from src.proxy.errors import InvalidLayoutUrlError
from src.proxy.headers import HeaderPolicy, backend_host
from src.proxy.models import ProxyRequest
from src.utils.timeparse import time_to_millis
from src.utils.url import url_to_cache_key


logger = structlog.get_logger()

_LAYOUT_URL_SCHEMES = frozenset({"http", "https"})


def validate_layout_url(layout_url: str) -> str:
    """Check a rendered layout URL is an absolute http(s) URL.

    Raises:
        InvalidLayoutUrlError: If the URL is empty, relative, uses another
            scheme, has no host, or carries a malformed port.
    """
    url = layout_url.strip()
    if not url:
        raise InvalidLayoutUrlError(layout_url, "empty")
    parts = urlsplit(url)
    if parts.scheme.lower() not in _LAYOUT_URL_SCHEMES:
        raise InvalidLayoutUrlError(layout_url, "not an http(s) URL")
    if not parts.hostname:
        raise InvalidLayoutUrlError(layout_url, "missing host")
    try:
        parts.port  # noqa: B018
    except ValueError as e:
        raise InvalidLayoutUrlError(layout_url, str(e)) from e
    return url


def _duration_millis(value: int | str | None, default: int | str) -> int:
    """Milliseconds for a configured duration; unset or zero means default."""
    return time_to_millis(value or default) or time_to_millis(default)


class RequestContextBuilder:
    """Builds FetchOptions from a request and its backend.

    Pure apart from a debug log line per request.
    """

    def __init__(self, header_policy: HeaderPolicy) -> None:
        """Initialize the builder.

        Args:
            header_policy: Policy used for the outbound header set.
        """
        self._header_policy = header_policy

    def build_fetch_options(
        self,
        request: ProxyRequest,
        backend: BackendConfig,
    ) -> FetchOptions:
        """Build options for the fragment fetch.

        Args:
            request: Inbound request.
            backend: Selected backend.

        Returns:
            FetchOptions for the backend.
        """
        target_url = backend.target + ("" if backend.dont_pass_url else request.url)
        host = backend_host(backend)
        remote_ip = request.headers.get("x-forwarded-for") or request.remote_address

        logger.debug(
            "backend_request",
            component="proxy",
            method=request.method,
            url=request.url,
            backend=backend.name,
            tracer=request.tracer,
            referer=request.headers.get("referer") or DIRECT_REFERER,
            remote_ip=remote_ip,
            user_agent=request.headers.get("user-agent") or UNKNOWN_USER_AGENT,
        )

        return FetchOptions(
            url=target_url,
            cache_key=backend.cache_key or url_to_cache_key(target_url),
            cache_ttl=_duration_millis(backend.ttl, DEFAULT_TTL),
            timeout=_duration_millis(backend.timeout, DEFAULT_TIMEOUT_MS),
            explicit_no_cache=backend.no_cache or request.explicit_no_cache,
            headers=self._header_policy.build_outbound_headers(request, backend),
            tracer=request.tracer,
            type=FETCH_TYPE_BACKEND,
            statsd_key=f"backend_{url_to_cache_key(host)}",
        )

    def build_layout_options(
        self,
        request: ProxyRequest,
        backend: BackendConfig,
        layout_url: str,
    ) -> FetchOptions:
        """Build options for the layout fetch.

        The cache key depends on the layout URL alone, so every fragment
        that resolves to the same layout shares one cache entry.

        Args:
            request: Inbound request.
            backend: Backend that served the fragment (for its timeout).
            layout_url: Rendered layout URL.

        Returns:
            FetchOptions for the layout.

        Raises:
            InvalidLayoutUrlError: If ``layout_url`` is not an absolute
                http(s) URL.
        """
        layout_url = validate_layout_url(layout_url)
        layout_host = urlsplit(layout_url).hostname or "unknown"
        return FetchOptions(
            url=layout_url,
            cache_key=f"{LAYOUT_CACHE_KEY_PREFIX}{layout_url}",
            cache_ttl=LAYOUT_CACHE_TTL_MS,
            timeout=_duration_millis(backend.timeout, DEFAULT_TIMEOUT_MS),
            explicit_no_cache=request.explicit_no_cache,
            headers={"accept": DEFAULT_ACCEPT, "x-tracer": request.tracer},
            tracer=request.tracer,
            type=FETCH_TYPE_LAYOUT,
            statsd_key=f"layout_{url_to_cache_key(layout_host)}",
        )
