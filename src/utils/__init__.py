"""Shared helpers for durations and cache keys."""

from src.utils.timeparse import time_to_millis
from src.utils.url import canonicalize_url, url_to_cache_key


__all__ = ["canonicalize_url", "time_to_millis", "url_to_cache_key"]
