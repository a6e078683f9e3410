"""Status-code handler registry and built-in handlers.

Handlers are looked up by the ``fn`` name of a ``status_code_handlers``
entry. Each receives ``(request, response, template_vars, data, options,
error, writer)`` and owns the response from then on.
"""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any

from src.fetch.models import FetchOptions
from src.proxy.constants import HTTP_STATUS_FOUND, HTTP_STATUS_INTERNAL_SERVER_ERROR
from src.proxy.errors import HandlerRegistryFrozenError
from src.proxy.models import ProxyRequest
from src.proxy.protocols import StatusCodeHandler
from src.proxy.response import ProxyResponse


def redirect_handler(
    request: ProxyRequest,  # noqa: ARG001
    response: ProxyResponse,
    template_vars: dict[str, Any],  # noqa: ARG001
    data: dict[str, Any],
    options: FetchOptions | None,  # noqa: ARG001
    error: Exception,  # noqa: ARG001
    writer: Callable[[str], Awaitable[None]],  # noqa: ARG001
) -> None:
    """Redirect the client to ``data["url"]`` (status ``data["status"]``, 302)."""
    if response.headers_sent:
        return
    response.write_head(
        int(data.get("status", HTTP_STATUS_FOUND)),
        {"location": str(data["url"])},
    )
    response.end("")


def static_handler(
    request: ProxyRequest,  # noqa: ARG001
    response: ProxyResponse,
    template_vars: dict[str, Any],  # noqa: ARG001
    data: dict[str, Any],
    options: FetchOptions | None,  # noqa: ARG001
    error: Exception,
    writer: Callable[[str], Awaitable[None]],  # noqa: ARG001
) -> None:
    """Respond with a fixed body.

    ``data`` may carry ``status`` (defaults to the error's status code),
    ``body`` and ``content_type``.
    """
    if response.headers_sent:
        return
    status = data.get("status") or getattr(error, "status_code", None)
    response.write_head(
        int(status or HTTP_STATUS_INTERNAL_SERVER_ERROR),
        {"content-type": str(data.get("content_type", "text/html; charset=utf-8"))},
    )
    response.end(str(data.get("body", "")))


BUILTIN_HANDLERS: Mapping[str, StatusCodeHandler] = {
    "redirect": redirect_handler,
    "static": static_handler,
}


class HandlerRegistry:
    """Named status-code handlers.

    Populated at startup, then frozen; the controller only reads it.
    """

    def __init__(
        self,
        handlers: Mapping[str, StatusCodeHandler] | None = None,
        include_builtins: bool = True,
    ) -> None:
        """Initialize the registry.

        Args:
            handlers: Extra handlers by name; these override built-ins.
            include_builtins: Whether to register ``redirect`` and ``static``.
        """
        self._handlers: dict[str, StatusCodeHandler] = {}
        self._frozen = False
        if include_builtins:
            self._handlers.update(BUILTIN_HANDLERS)
        if handlers:
            self._handlers.update(handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def frozen(self) -> bool:
        """Whether the registry is read-only."""
        return self._frozen

    def register(self, name: str, handler: StatusCodeHandler) -> None:
        """Register a handler under ``name``.

        Raises:
            HandlerRegistryFrozenError: If the registry is frozen.
        """
        if self._frozen:
            raise HandlerRegistryFrozenError(name)
        self._handlers[name] = handler

    def freeze(self) -> "HandlerRegistry":
        """Make the registry read-only and return it."""
        self._frozen = True
        return self

    def get(self, name: str) -> StatusCodeHandler | None:
        """Get a handler by name."""
        return self._handlers.get(name)
