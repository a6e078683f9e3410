"""Content fetch layer with caching, retries and stale fallback.

This module provides the default content fetcher used by the proxy:
- In-memory TTL cache keyed by the proxy-derived cache key
- Stale cached content attached to fetch errors
- Configurable retry policy with exponential backoff
- Header redaction for logging
- Metrics collection per backend
"""

from src.fetch.cache import CacheEntry, ContentCache
from src.fetch.client import HttpContentFetcher
from src.fetch.constants import (
    DEFAULT_MAX_CACHE_ENTRIES,
    FETCH_TYPE_BACKEND,
    FETCH_TYPE_LAYOUT,
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


__all__ = [
    # Client
    "HttpContentFetcher",
    # Cache
    "CacheEntry",
    "ContentCache",
    # Models
    "FetchError",
    "FetchErrorClass",
    "FetchOptions",
    "FetchResult",
    "RetryPolicy",
    # Constants
    "DEFAULT_MAX_CACHE_ENTRIES",
    "FETCH_TYPE_BACKEND",
    "FETCH_TYPE_LAYOUT",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
