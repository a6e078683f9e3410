"""Observability helpers for structured logging."""

from src.observability.logging import (
    bind_tracer_context,
    clear_tracer_context,
    configure_logging,
    get_logger,
)


__all__ = [
    "bind_tracer_context",
    "clear_tracer_context",
    "configure_logging",
    "get_logger",
]
