"""Data models for the content fetch layer."""

import random
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.fetch.constants import FETCH_TYPE_BACKEND


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for metrics and retry decisions.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - HTTP_4XX: Non-retryable 4xx client error (except 429)
    - HTTP_5XX: Retryable 5xx server error
    - RATE_LIMITED: 429 Too Many Requests
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    UNKNOWN = "UNKNOWN"


def _lower_keys(headers: dict[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


class FetchOptions(BaseModel):
    """Options for a single fetch attempt.

    Header names are normalized to lower case so lookups are
    case-insensitive. Transformers return a modified copy via
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1)]
    cache_key: Annotated[str, Field(min_length=1)]
    cache_ttl: Annotated[int, Field(ge=0, description="Cache TTL in ms")]
    timeout: Annotated[int, Field(gt=0, description="Timeout in ms")] = 5000
    explicit_no_cache: bool = False
    headers: dict[str, str] = Field(default_factory=dict)
    tracer: str = "no-tracer"
    type: str = FETCH_TYPE_BACKEND
    statsd_key: str = "backend"

    @field_validator("headers")
    @classmethod
    def normalize_header_names(cls, v: dict[str, str]) -> dict[str, str]:
        """Lower-case all header names."""
        return _lower_keys(v)


class FetchResult(BaseModel):
    """Content and headers returned by a successful fetch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    content: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    status_code: int = Field(default=200, ge=100, le=599)
    cache_hit: bool = False

    @field_validator("headers")
    @classmethod
    def normalize_header_names(cls, v: dict[str, str]) -> dict[str, str]:
        """Lower-case all header names."""
        return _lower_keys(v)

    @property
    def content_size(self) -> int:
        """Size of the content in bytes (UTF-8)."""
        return len(self.content.encode("utf-8"))


class FetchError(Exception):
    """A failed fetch.

    Carries the backend status code when one was received, and any stale
    cached result the fetcher still holds for the same cache key so the
    caller can decide to serve it.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_class: FetchErrorClass = FetchErrorClass.UNKNOWN,
        stale: FetchResult | None = None,
        retry_after: int | None = None,
    ) -> None:
        """Initialize the fetch error.

        Args:
            message: Human-readable message.
            status_code: HTTP status code if available.
            error_class: Classification of the error.
            stale: Stale cached result for the same key, if any.
            retry_after: Retry-After seconds (for 429).
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_class = error_class
        self.stale = stale
        self.retry_after = retry_after

    def with_stale(self, stale: FetchResult | None) -> "FetchError":
        """Return a copy of this error carrying stale data."""
        return FetchError(
            message=self.message,
            status_code=self.status_code,
            error_class=self.error_class,
            stale=stale,
            retry_after=self.retry_after,
        )


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses exponential backoff: delay = base_delay_ms * (exponential_base ^ attempt)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 1
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 100
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 2000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if attempt >= self.max_retries:
            return False

        retryable_classes = {
            FetchErrorClass.NETWORK_TIMEOUT,
            FetchErrorClass.CONNECTION_ERROR,
            FetchErrorClass.HTTP_5XX,
            FetchErrorClass.RATE_LIMITED,
        }

        return error.error_class in retryable_classes

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)
