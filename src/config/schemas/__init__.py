"""Configuration schema definitions."""

from src.config.schemas.backend import BackendConfig
from src.config.schemas.proxy import (
    CdnConfig,
    CookieConfig,
    FetchSettings,
    ProxyConfig,
    StatusCodeHandlerEntry,
)


__all__ = [
    "BackendConfig",
    "CdnConfig",
    "CookieConfig",
    "FetchSettings",
    "ProxyConfig",
    "StatusCodeHandlerEntry",
]
