"""Root proxy configuration schema."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config.schemas.backend import BackendConfig
from src.fetch.constants import DEFAULT_MAX_CACHE_ENTRIES
from src.fetch.models import RetryPolicy


class CdnConfig(BaseModel):
    """CDN settings advertised to backends via ``x-cdn-url``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str | None = None


class CookieConfig(BaseModel):
    """Global cookie forwarding rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    whitelist: list[str] | None = None


class StatusCodeHandlerEntry(BaseModel):
    """Maps a backend status code to a registered handler.

    Attributes:
        fn: Name of the handler in the handler registry.
        data: Free-form data passed to the handler.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fn: Annotated[str, Field(min_length=1)]
    data: dict[str, Any] = Field(default_factory=dict)


class FetchSettings(BaseModel):
    """Settings for the default content fetcher."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = "cxproxy/0.1"
    max_cache_entries: Annotated[int, Field(ge=1, le=1_000_000)] = (
        DEFAULT_MAX_CACHE_ENTRIES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)


class ProxyConfig(BaseModel):
    """Root configuration for the composition proxy.

    Read-only once loaded; shared by every request.

    Attributes:
        backends: Backends, tried in order by ``pattern``.
        cdn: CDN settings.
        cookies: Global cookie whitelist.
        status_code_handlers: Backend status code to handler entry.
        enable_extension: Accept pre-composed content posted to the proxy.
        fetch: Default fetcher settings.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backends: list[BackendConfig] = Field(default_factory=list)
    cdn: CdnConfig = Field(default_factory=CdnConfig)
    cookies: CookieConfig = Field(default_factory=CookieConfig)
    status_code_handlers: dict[int, StatusCodeHandlerEntry] = Field(
        default_factory=dict
    )
    enable_extension: bool = False
    fetch: FetchSettings = Field(default_factory=FetchSettings)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "ProxyConfig":
        """Ensure all backend names are unique."""
        names = [b.name for b in self.backends]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            msg = f"Duplicate backend names found: {duplicates}"
            raise ValueError(msg)
        return self

    def select_backend(self, url: str) -> BackendConfig | None:
        """Get the first backend whose pattern matches a request URL.

        Args:
            url: Request path and query.

        Returns:
            Matching BackendConfig, or None if no match.
        """
        for backend in self.backends:
            if backend.matches(url):
                return backend
        return None

    def handler_entry_for(
        self, status_code: int | None
    ) -> StatusCodeHandlerEntry | None:
        """Get the handler entry configured for a status code."""
        if status_code is None:
            return None
        return self.status_code_handlers.get(status_code)
