"""Configuration loading and validation module."""

from src.config.loader import ConfigLoader
from src.config.schemas import (
    BackendConfig,
    CdnConfig,
    CookieConfig,
    FetchSettings,
    ProxyConfig,
    StatusCodeHandlerEntry,
)
from src.config.state_machine import ConfigState, ConfigStateError


__all__ = [
    "BackendConfig",
    "CdnConfig",
    "ConfigLoader",
    "ConfigState",
    "ConfigStateError",
    "CookieConfig",
    "FetchSettings",
    "ProxyConfig",
    "StatusCodeHandlerEntry",
]
