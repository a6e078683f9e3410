"""Header redaction for fetch and proxy logging."""

import re


# Headers whose values must never appear in logs
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "proxy-authorization",
        "x-csrf-token",
        "x-api-key",
    }
)

REDACTED_VALUE = "[REDACTED]"

_URL_CREDENTIALS = re.compile(r"(https?://)([^:/@]+):([^@/]+)@")


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with sensitive values replaced.

    Args:
        headers: Outbound or fetched headers.

    Returns:
        New dictionary safe to log.
    """
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_url_credentials(url: str) -> str:
    """Mask ``user:password@`` credentials embedded in a backend URL."""
    return _URL_CREDENTIALS.sub(r"\1[REDACTED]:[REDACTED]@", url)
