"""Error types for the composition proxy."""


class ProxyError(Exception):
    """Base exception for proxy errors.

    Carries an optional HTTP status code so recovery can treat proxy
    errors and fetch errors alike.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize the proxy error.

        Args:
            message: Human-readable error message (used as response body).
            status_code: HTTP status code to respond with, if known.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BackendNotFoundError(ProxyError):
    """No configured backend matches the request URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No backend configured for {url}", status_code=404)
        self.url = url


class TransformError(ProxyError):
    """The fetch-options transformer hook failed.

    Keeps the status code of the underlying error when it has one.
    """

    def __init__(self, cause: Exception) -> None:
        """Initialize the transform error.

        Args:
            cause: Exception raised by the transformer.
        """
        super().__init__(
            f"Options transformer failed: {cause}",
            status_code=getattr(cause, "status_code", None),
        )
        self.cause = cause


class HandlerError(ProxyError):
    """A registered status-code handler raised while handling an error."""

    def __init__(self, handler_name: str, cause: Exception) -> None:
        """Initialize the handler error.

        Args:
            handler_name: Registry name of the failing handler.
            cause: Exception raised by the handler.
        """
        super().__init__(f"Status code handler '{handler_name}' failed: {cause}")
        self.handler_name = handler_name
        self.cause = cause


class ResponseAlreadySentError(ProxyError):
    """A second write was attempted on a finished response."""

    def __init__(self, what: str) -> None:
        super().__init__(f"Cannot {what}: response already sent")


class HandlerRegistryFrozenError(ProxyError):
    """A handler was registered after the registry was frozen."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Cannot register handler '{name}': registry is frozen")
        self.name = name


class InvalidLayoutUrlError(ProxyError):
    """A rendered layout URL is not an absolute http(s) URL."""

    def __init__(self, layout_url: str, reason: str) -> None:
        """Initialize the layout URL error.

        Args:
            layout_url: The rendered URL (may be empty).
            reason: Why the URL was rejected.
        """
        super().__init__(
            f"Invalid layout URL {layout_url!r}: {reason}", status_code=500
        )
        self.layout_url = layout_url
        self.reason = reason


class FetcherError(ProxyError):
    """A content fetcher raised something other than FetchError."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Content fetcher failed: {cause}")
        self.cause = cause


class CompositionError(ProxyError):
    """An unexpected failure inside the controller itself."""

    def __init__(self, cause: Exception) -> None:
        super().__init__("Internal composition error", status_code=500)
        self.cause = cause
