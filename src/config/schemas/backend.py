"""Backend configuration schema."""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config.constants import VALID_URL_SCHEMES
from src.utils.timeparse import time_to_millis


Duration = int | str


class BackendConfig(BaseModel):
    """Configuration for a single content backend.

    Attributes:
        name: Human-readable backend name (used in logs).
        pattern: Regex matched against the request URL to select this backend.
        target: Base URL of the backend.
        host: Fixed ``host`` header; defaults to the target's hostname.
        cache_key: Fixed cache key; defaults to a key derived from the URL.
        ttl: Cache TTL as ms or a duration string (default ``30s``).
        timeout: Fetch timeout as ms or a duration string (default 5000).
        no_cache: Bypass the fetch cache for every request.
        accept: ``accept`` header override (default ``text/html``).
        headers: Request header names to copy to the backend request.
        pass_through_headers: Response header names copied back to the client.
        add_response_headers: Headers always added to the client response.
        cookie_whitelist: Cookie names forwarded to the backend; overrides
            the global whitelist when set.
        quiet_failure: Serve stale cached content when the backend fails.
        dont_pass_url: Do not append the request path to ``target``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=100)] = "default"
    pattern: Annotated[str, Field(min_length=1)] = ".*"
    target: Annotated[str, Field(min_length=1)]
    host: str | None = None
    cache_key: str | None = None
    ttl: Duration | None = None
    timeout: Duration | None = None
    no_cache: bool = False
    accept: str | None = None
    headers: list[str] = Field(default_factory=list)
    pass_through_headers: list[str] = Field(default_factory=list)
    add_response_headers: dict[str, str] = Field(default_factory=dict)
    cookie_whitelist: list[str] | None = None
    quiet_failure: bool = False
    dont_pass_url: bool = False

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        """Validate target starts with http:// or https://."""
        if not v.startswith(VALID_URL_SCHEMES):
            msg = "URL must start with http:// or https://"
            raise ValueError(msg)
        return v

    @field_validator("pattern")
    @classmethod
    def validate_regex(cls, v: str) -> str:
        """Validate that pattern is a valid regex."""
        try:
            re.compile(v)
        except re.error as e:
            msg = f"Invalid regex pattern: {e}"
            raise ValueError(msg) from e
        return v

    @field_validator("ttl", "timeout")
    @classmethod
    def validate_duration(cls, v: Duration | None) -> Duration | None:
        """Validate durations parse to milliseconds.

        Durations that parse to zero are accepted and mean the default.
        """
        if v is not None:
            time_to_millis(v)
        return v

    @field_validator("headers", "pass_through_headers")
    @classmethod
    def lower_header_names(cls, v: list[str]) -> list[str]:
        """Header names are matched case-insensitively."""
        return [name.lower() for name in v]

    def matches(self, url: str) -> bool:
        """Check if this backend serves a request URL.

        Args:
            url: Request path and query.

        Returns:
            True if the pattern matches.
        """
        return bool(re.match(self.pattern, url))
