"""Header policy for backend requests and client responses."""

from collections.abc import Mapping
from urllib.parse import urlsplit

import structlog

from src.config.schemas import BackendConfig, ProxyConfig
from src.proxy.constants import (
    DEFAULT_ACCEPT,
    DEVICE_TYPE_TEMPLATE_KEY,
    HOP_BY_HOP_HEADERS,
    NO_FORWARDED_HOST,
    UNKNOWN_USER_AGENT,
)
from src.proxy.models import ProxyRequest
from src.proxy.response import ProxyResponse


logger = structlog.get_logger()

# Inbound headers copied to the backend only when present
_OPTIONAL_PASS_THROUGH = ("x-geoip-country-code", "x-csrf-token", "accept-language")


def filter_cookies(whitelist: list[str], cookies: Mapping[str, str]) -> str:
    """Build a cookie header from the whitelisted subset of ``cookies``.

    Cookies keep the order they had in the inbound header.

    Args:
        whitelist: Cookie names allowed through.
        cookies: Parsed inbound cookies.

    Returns:
        Header value such as ``a=1; b=2``.
    """
    allowed = set(whitelist)
    return "; ".join(
        f"{name}={value}" for name, value in cookies.items() if name in allowed
    )


def backend_host(backend: BackendConfig) -> str:
    """Resolve the ``host`` header sent to a backend."""
    return backend.host or urlsplit(backend.target).hostname or ""


class HeaderPolicy:
    """Derives backend request headers and applies response header rules.

    Allow rules come from configuration (cookie whitelist, backend
    ``headers`` and ``pass_through_headers``); hop-by-hop headers are
    always denied on the way back to the client.
    """

    def __init__(self, config: ProxyConfig) -> None:
        """Initialize the policy.

        Args:
            config: Read-only proxy configuration.
        """
        self._config = config

    def cookie_whitelist(self, backend: BackendConfig) -> list[str] | None:
        """Backend whitelist if set, else the global one."""
        if backend.cookie_whitelist is not None:
            return backend.cookie_whitelist
        return self._config.cookies.whitelist

    def build_outbound_headers(
        self,
        request: ProxyRequest,
        backend: BackendConfig,
    ) -> dict[str, str]:
        """Build the header set for the backend request.

        Args:
            request: Inbound request.
            backend: Selected backend.

        Returns:
            Lower-cased header mapping.
        """
        inbound = request.headers
        device = request.template_vars.get(DEVICE_TYPE_TEMPLATE_KEY)

        headers: dict[str, str] = {
            "x-forwarded-host": inbound.get("host") or NO_FORWARDED_HOST,
            "x-forwarded-for": (
                inbound.get("x-forwarded-for") or request.remote_address or ""
            ),
            "host": backend_host(backend),
            "accept": backend.accept or DEFAULT_ACCEPT,
            "x-tracer": request.tracer,
            "user-agent": inbound.get("user-agent") or UNKNOWN_USER_AGENT,
            "x-device": str(device) if device is not None else "",
        }

        for name in _OPTIONAL_PASS_THROUGH:
            if inbound.get(name):
                headers[name] = inbound[name]

        if self._config.cdn.url:
            headers["x-cdn-url"] = self._config.cdn.url

        raw_cookie = inbound.get("cookie")
        if request.cookies and raw_cookie:
            whitelist = self.cookie_whitelist(backend)
            cookie = (
                filter_cookies(whitelist, request.cookies) if whitelist else raw_cookie
            )
            if cookie:
                headers["cookie"] = cookie

        for name in backend.headers:
            headers[name] = inbound.get(name, "")

        return headers

    def apply_response_headers(
        self,
        response: ProxyResponse,
        backend: BackendConfig,
        fetched_headers: Mapping[str, str],
    ) -> None:
        """Copy configured and whitelisted headers onto the response.

        Args:
            response: Client response (headers not yet sent).
            backend: Selected backend.
            fetched_headers: Lower-cased headers of the fetched fragment.
        """
        for name, value in backend.add_response_headers.items():
            if value:
                response.set_header(name, value)

        for name in backend.pass_through_headers:
            if name in HOP_BY_HOP_HEADERS:
                logger.debug(
                    "pass_through_header_denied", component="proxy", header=name
                )
                continue
            value = fetched_headers.get(name)
            if value:
                response.set_header(name, value)

        set_cookie = fetched_headers.get("set-cookie")
        if set_cookie:
            response.set_header("set-cookie", set_cookie)
