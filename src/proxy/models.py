"""Request model for the composition proxy."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from src.proxy.constants import NO_TRACER


def template_vars_from_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Derive template variables from fetched response headers.

    Each header becomes a variable named after the lower-cased header.

    Args:
        headers: Fetched response headers.

    Returns:
        Mapping of variable name to header value.
    """
    return {key.lower(): value for key, value in headers.items()}


def parse_cookie_header(raw: str) -> dict[str, str]:
    """Parse a raw ``cookie`` header, preserving cookie order.

    Pairs without ``=`` are skipped; the first occurrence of a name wins.
    """
    cookies: dict[str, str] = {}
    for pair in raw.split(";"):
        name, sep, value = pair.strip().partition("=")
        if not sep or not name:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies.setdefault(name.strip(), value)
    return cookies


@dataclass
class ProxyRequest:
    """Inbound page request as seen by the composition controller.

    Attributes:
        method: HTTP method.
        url: Request path and query string.
        headers: Request headers with lower-cased names.
        cookies: Parsed cookies, in header order.
        body: Request body (used by pre-composed content posts).
        remote_address: Socket peer address.
        explicit_no_cache: Request-level cache bypass.
        template_vars: Variables for template rendering; only ever merged.
    """

    method: str = "GET"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    body: str = ""
    remote_address: str | None = None
    explicit_no_cache: bool = False
    template_vars: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.headers = {key.lower(): value for key, value in self.headers.items()}
        self.method = self.method.upper()

    @classmethod
    def from_raw(
        cls,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str = "",
        remote_address: str | None = None,
    ) -> "ProxyRequest":
        """Build a request from raw transport values, parsing cookies.

        Args:
            method: HTTP method.
            url: Request path and query string.
            headers: Raw request headers.
            body: Request body.
            remote_address: Socket peer address.

        Returns:
            ProxyRequest with parsed cookies.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        raw_cookie = lowered.get("cookie")
        return cls(
            method=method,
            url=url,
            headers=lowered,
            cookies=parse_cookie_header(raw_cookie) if raw_cookie else {},
            body=body,
            remote_address=remote_address,
        )

    @property
    def tracer(self) -> str:
        """Request-scoped correlation id."""
        return self.headers.get("x-tracer") or NO_TRACER

    @property
    def content_type(self) -> str:
        """Media type of the body, without parameters."""
        raw = self.headers.get("content-type", "")
        return raw.split(";", 1)[0].strip().lower()

    def merge_template_vars(self, new_vars: Mapping[str, Any]) -> None:
        """Merge variables into ``template_vars``.

        Existing keys are kept unless ``new_vars`` carries them too.
        """
        self.template_vars.update(new_vars)
