"""Metrics collection for the content fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from src.fetch.models import FetchErrorClass


@dataclass
class FetchMetrics:
    """Metrics for content fetch operations.

    Singleton class that tracks fetch-related metrics, broken down by the
    ``statsd_key`` of each fetch where that is useful.
    """

    requests_total: dict[str, int] = field(default_factory=dict)
    status_codes_total: dict[int, int] = field(default_factory=dict)
    cache_hits_total: int = 0
    cache_misses_total: int = 0
    stale_available_total: int = 0
    retry_total: int = 0
    failures_total: dict[str, int] = field(default_factory=dict)
    bytes_total: int = 0
    duration_ms_total: dict[str, float] = field(default_factory=dict)

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(
        self, statsd_key: str, status_code: int, bytes_received: int
    ) -> None:
        """Record a completed backend request.

        Args:
            statsd_key: Metric dimension for the backend.
            status_code: HTTP status code.
            bytes_received: Number of bytes received.
        """
        self.requests_total[statsd_key] = self.requests_total.get(statsd_key, 0) + 1
        self.status_codes_total[status_code] = (
            self.status_codes_total.get(status_code, 0) + 1
        )
        self.bytes_total += bytes_received

    def record_cache_hit(self) -> None:
        """Record a fresh cache hit."""
        self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a cache miss."""
        self.cache_misses_total += 1

    def record_stale_available(self) -> None:
        """Record a failure for which stale content was offered."""
        self.stale_available_total += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        self.retry_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a fetch failure.

        Args:
            error_class: Classification of the failure.
        """
        key = error_class.value
        self.failures_total[key] = self.failures_total.get(key, 0) + 1

    def record_duration(self, statsd_key: str, duration_ms: float) -> None:
        """Record request duration.

        Args:
            statsd_key: Metric dimension for the backend.
            duration_ms: Duration in milliseconds.
        """
        self.duration_ms_total[statsd_key] = (
            self.duration_ms_total.get(statsd_key, 0.0) + duration_ms
        )

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "requests_total": dict(self.requests_total),
            "status_codes_total": dict(self.status_codes_total),
            "cache_hits_total": self.cache_hits_total,
            "cache_misses_total": self.cache_misses_total,
            "stale_available_total": self.stale_available_total,
            "retry_total": self.retry_total,
            "failures_total": dict(self.failures_total),
            "bytes_total": self.bytes_total,
            "duration_ms_total": dict(self.duration_ms_total),
        }
