"""Unit tests for proxy configuration schemas."""

import pytest
from pydantic import ValidationError

from src.config.schemas import BackendConfig, ProxyConfig, StatusCodeHandlerEntry


class TestBackendConfig:
    """Tests for BackendConfig."""

    @pytest.mark.unit
    def test_minimal_backend(self) -> None:
        """Only target is required."""
        backend = BackendConfig(target="http://backend.test")

        assert backend.name == "default"
        assert backend.pattern == ".*"
        assert backend.ttl is None
        assert backend.timeout is None
        assert backend.quiet_failure is False
        assert backend.cookie_whitelist is None

    @pytest.mark.unit
    def test_target_must_be_http(self) -> None:
        """Non-HTTP targets are rejected."""
        with pytest.raises(ValidationError, match="http:// or https://"):
            BackendConfig(target="ftp://backend.test")

    @pytest.mark.unit
    def test_invalid_pattern(self) -> None:
        """Patterns must compile."""
        with pytest.raises(ValidationError, match="Invalid regex"):
            BackendConfig(target="http://backend.test", pattern="(unclosed")

    @pytest.mark.unit
    def test_durations_validated(self) -> None:
        """ttl and timeout must parse as durations."""
        backend = BackendConfig(target="http://b.test", ttl="5m", timeout=2000)
        assert backend.ttl == "5m"
        assert backend.timeout == 2000

        with pytest.raises(ValidationError, match="Invalid duration"):
            BackendConfig(target="http://b.test", ttl="forever")

    @pytest.mark.unit
    def test_zero_durations_accepted(self) -> None:
        """Durations that parse to zero are valid and mean the default."""
        backend = BackendConfig(target="http://b.test", ttl="0s", timeout="0.4ms")

        assert backend.ttl == "0s"
        assert backend.timeout == "0.4ms"

    @pytest.mark.unit
    def test_header_names_lowercased(self) -> None:
        """Header name lists are matched case-insensitively."""
        backend = BackendConfig(
            target="http://b.test",
            headers=["X-Feature"],
            pass_through_headers=["Cache-Control"],
        )

        assert backend.headers == ["x-feature"]
        assert backend.pass_through_headers == ["cache-control"]

    @pytest.mark.unit
    def test_extra_fields_forbidden(self) -> None:
        """Unknown keys are rejected."""
        with pytest.raises(ValidationError):
            BackendConfig(target="http://b.test", tll="30s")

    @pytest.mark.unit
    def test_frozen(self) -> None:
        """Backends cannot be changed after loading."""
        backend = BackendConfig(target="http://b.test")
        with pytest.raises(ValidationError):
            backend.target = "http://other.test"  # type: ignore[misc]

    @pytest.mark.unit
    def test_matches(self) -> None:
        """Patterns are matched from the start of the URL."""
        backend = BackendConfig(target="http://b.test", pattern=r"/news/.*")

        assert backend.matches("/news/today") is True
        assert backend.matches("/sport/news/") is False


class TestProxyConfig:
    """Tests for ProxyConfig."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """An empty document is a valid configuration."""
        config = ProxyConfig()

        assert config.backends == []
        assert config.cdn.url is None
        assert config.cookies.whitelist is None
        assert config.status_code_handlers == {}
        assert config.enable_extension is False
        assert config.fetch.retry_policy.max_retries == 1

    @pytest.mark.unit
    def test_duplicate_backend_names_rejected(self) -> None:
        """Backend names must be unique."""
        with pytest.raises(ValidationError, match="Duplicate backend names"):
            ProxyConfig(
                backends=[
                    {"name": "a", "target": "http://a.test"},
                    {"name": "a", "target": "http://b.test"},
                ]
            )

    @pytest.mark.unit
    def test_select_backend_first_match_wins(self) -> None:
        """Backends are tried in order."""
        config = ProxyConfig(
            backends=[
                {"name": "news", "pattern": "/news", "target": "http://news.test"},
                {"name": "all", "target": "http://all.test"},
            ]
        )

        news = config.select_backend("/news/1")
        other = config.select_backend("/about")

        assert news is not None
        assert news.name == "news"
        assert other is not None
        assert other.name == "all"

    @pytest.mark.unit
    def test_select_backend_no_match(self) -> None:
        """No matching pattern gives None."""
        config = ProxyConfig(
            backends=[{"pattern": "/news", "target": "http://news.test"}]
        )
        assert config.select_backend("/about") is None

    @pytest.mark.unit
    def test_status_code_handler_keys_coerced(self) -> None:
        """YAML or JSON string keys become integer status codes."""
        config = ProxyConfig(
            status_code_handlers={"404": {"fn": "static", "data": {"body": "x"}}}
        )

        entry = config.handler_entry_for(404)

        assert entry == StatusCodeHandlerEntry(fn="static", data={"body": "x"})
        assert config.handler_entry_for(500) is None
        assert config.handler_entry_for(None) is None
