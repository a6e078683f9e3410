"""Unit tests for retry policy decisions."""

import pytest

from src.fetch.models import FetchError, FetchErrorClass, RetryPolicy


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Defaults retry once with a short backoff."""
        policy = RetryPolicy()

        assert policy.max_retries == 1
        assert policy.base_delay_ms == 100
        assert policy.max_delay_ms == 2000
        assert policy.exponential_base == 2.0
        assert policy.jitter_factor == 0.1

    def test_rejects_out_of_range_values(self) -> None:
        """Bounds are enforced by the model."""
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=11)
        with pytest.raises(ValueError):
            RetryPolicy(exponential_base=0.5)


class TestShouldRetry:
    """Tests for retry decision logic."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a standard retry policy."""
        return RetryPolicy(max_retries=3)

    @pytest.mark.parametrize(
        "error_class",
        [
            FetchErrorClass.NETWORK_TIMEOUT,
            FetchErrorClass.CONNECTION_ERROR,
            FetchErrorClass.HTTP_5XX,
            FetchErrorClass.RATE_LIMITED,
        ],
    )
    def test_transient_errors_retried(
        self, policy: RetryPolicy, error_class: FetchErrorClass
    ) -> None:
        """Transient failures are retried until max_retries."""
        error = FetchError(message="transient", error_class=error_class)

        assert policy.should_retry(error, attempt=0) is True
        assert policy.should_retry(error, attempt=2) is True
        assert policy.should_retry(error, attempt=3) is False

    def test_no_retry_on_4xx(self, policy: RetryPolicy) -> None:
        """Client errors are final, 404 included."""
        for status in [400, 401, 403, 404, 410]:
            error = FetchError(
                message=f"{status} returned",
                status_code=status,
                error_class=FetchErrorClass.HTTP_4XX,
            )
            assert policy.should_retry(error, attempt=0) is False

    def test_no_retry_on_unknown(self, policy: RetryPolicy) -> None:
        """Unclassified errors are not retried."""
        error = FetchError(message="odd")
        assert policy.should_retry(error, attempt=0) is False

    def test_zero_max_retries(self) -> None:
        """Test policy with zero max retries."""
        policy = RetryPolicy(max_retries=0)
        error = FetchError(
            message="Server Error",
            status_code=500,
            error_class=FetchErrorClass.HTTP_5XX,
        )

        assert policy.should_retry(error, attempt=0) is False


class TestGetDelayMs:
    """Tests for retry delay calculation."""

    def test_exponential_backoff(self) -> None:
        """Delays double with each attempt."""
        policy = RetryPolicy(base_delay_ms=100, max_delay_ms=10000, jitter_factor=0.0)

        assert policy.get_delay_ms(0) == 100
        assert policy.get_delay_ms(1) == 200
        assert policy.get_delay_ms(2) == 400

    def test_max_delay_cap(self) -> None:
        """Delay is capped at max_delay_ms."""
        policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=1500, jitter_factor=0.0)

        assert policy.get_delay_ms(0) == 1000
        assert policy.get_delay_ms(1) == 1500
        assert policy.get_delay_ms(5) == 1500

    def test_jitter_bounds(self) -> None:
        """Jitter never exceeds jitter_factor of the delay."""
        policy = RetryPolicy(base_delay_ms=1000, jitter_factor=0.1, max_delay_ms=5000)

        for _ in range(10):
            assert 1000 <= policy.get_delay_ms(0) <= 1100
