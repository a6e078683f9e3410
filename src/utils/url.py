"""URL normalization for cache keys and metric names."""

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]+")


def canonicalize_url(url: str) -> str:
    """Canonicalize a URL so equivalent spellings compare equal.

    Canonicalization includes:
    - Lowercasing the scheme and host
    - Sorting query parameters (stable for repeated keys)
    - Dropping the fragment, which never reaches the backend

    Args:
        url: The URL to canonicalize.

    Returns:
        Canonicalized URL string.
    """
    if not url:
        return url

    parsed = urlsplit(url)
    query = ""
    if parsed.query:
        params = parse_qsl(parsed.query, keep_blank_values=True)
        query = urlencode(sorted(params), safe="")

    return urlunsplit(
        (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path, query, "")
    )


def url_to_cache_key(url: str) -> str:
    """Derive a cache key (or metric-safe name) from a URL or host name.

    The URL is canonicalized, its scheme dropped, and every run of
    non-alphanumeric characters collapsed to a single underscore. The
    mapping is deterministic, but not injective: URLs that differ only
    in punctuation, e.g. ``/a-b`` and ``/a_b``, or ``?v=1.2`` and
    ``?v=1_2``, share a key and therefore a cache entry.

    Args:
        url: Absolute URL, or a bare host name.

    Returns:
        Key such as ``example_com_page_a_1``.
    """
    canonical = canonicalize_url(url) if "://" in url else url.lower()
    without_scheme = canonical.split("://", 1)[-1]
    return _NON_ALPHANUMERIC.sub("_", without_scheme).strip("_")
