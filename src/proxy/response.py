"""Response object and content emitter for the composition proxy."""

from collections.abc import Awaitable, Callable

import structlog

from src.proxy.constants import HTTP_STATUS_INTERNAL_SERVER_ERROR
from src.proxy.errors import ResponseAlreadySentError
from src.proxy.models import ProxyRequest
from src.proxy.protocols import TemplateRendererProtocol
from src.templating.renderer import TemplateRenderError


logger = structlog.get_logger()

ResponseWriter = Callable[[str], Awaitable[None]]


def error_status_code(error: Exception) -> int | None:
    """Status code carried by an error, if any."""
    status_code = getattr(error, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def error_message(error: Exception) -> str:
    """Message carried by an error."""
    message = getattr(error, "message", None)
    return message if isinstance(message, str) else str(error)


def write_raw_error(response: "ProxyResponse", error: Exception) -> bool:
    """Write an error's status code and message unless a response went out.

    Args:
        response: Client response.
        error: Error to report.

    Returns:
        True if the error was written.
    """
    if response.headers_sent or response.finished:
        return False
    response.write_head(
        error_status_code(error) or HTTP_STATUS_INTERNAL_SERVER_ERROR,
        {"content-type": "text/plain; charset=utf-8"},
    )
    response.end(error_message(error))
    return True


class ProxyResponse:
    """Outbound response that can be written exactly once.

    Header names are stored lower-cased. Once ``write_head`` has run,
    headers can no longer change; once ``end`` has run, nothing can be
    written again.
    """

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self.body = ""
        self._headers_sent = False
        self._finished = False
        self._write_count = 0

    @property
    def headers_sent(self) -> bool:
        """Whether the status line and headers have been written."""
        return self._headers_sent

    @property
    def finished(self) -> bool:
        """Whether the body has been written."""
        return self._finished

    @property
    def write_count(self) -> int:
        """Number of completed writes (0 or 1)."""
        return self._write_count

    def set_header(self, name: str, value: str) -> None:
        """Set a header before headers are sent.

        Raises:
            ResponseAlreadySentError: If headers were already sent.
        """
        if self._headers_sent:
            raise ResponseAlreadySentError(f"set header '{name}'")
        self.headers[name.lower()] = value

    def get_header(self, name: str) -> str | None:
        """Get a header value, case-insensitively."""
        return self.headers.get(name.lower())

    def write_head(
        self, status_code: int, headers: dict[str, str] | None = None
    ) -> None:
        """Write the status code and any extra headers.

        Raises:
            ResponseAlreadySentError: If headers were already sent.
        """
        if self._headers_sent:
            raise ResponseAlreadySentError("write head")
        for name, value in (headers or {}).items():
            self.set_header(name, value)
        self.status_code = status_code
        self._headers_sent = True

    def end(self, body: str = "") -> None:
        """Write the body and finish the response.

        Raises:
            ResponseAlreadySentError: If the response was already finished.
        """
        if self._finished:
            raise ResponseAlreadySentError("end response")
        if not self._headers_sent:
            self.write_head(self.status_code)
        self.body = body
        self._finished = True
        self._write_count += 1


class ContentEmitter:
    """Writes final page content to the response.

    When a renderer is configured the content is first rendered as a
    template against the request's template variables, which is how
    variables merged from fragment or stale headers reach the page.
    """

    def __init__(
        self,
        renderer: TemplateRendererProtocol | None = None,
        content_type: str = "text/html; charset=utf-8",
    ) -> None:
        """Initialize the emitter.

        Args:
            renderer: Optional template renderer for the final content.
            content_type: ``content-type`` set when none is present.
        """
        self._renderer = renderer
        self._content_type = content_type

    async def emit(
        self,
        request: ProxyRequest,
        response: ProxyResponse,
        content: str,
    ) -> TemplateRenderError | None:
        """Write ``content`` as the response body.

        If the content fails to render, the render error is written as a
        raw 500 in its place, so the response is still written once.

        Args:
            request: Inbound request (for template variables).
            response: Response to write.
            content: Final content.

        Returns:
            The render error when one replaced the content, else None.
        """
        if self._renderer is not None:
            try:
                content = self._renderer.render(content, request.template_vars)
            except TemplateRenderError as e:
                written = write_raw_error(response, e)
                logger.error(
                    "content_render_failed",
                    component="proxy",
                    tracer=request.tracer,
                    error=e.message,
                    response_written=written,
                )
                return e
        if not response.headers_sent and response.get_header("content-type") is None:
            response.set_header("content-type", self._content_type)
        response.end(content)
        logger.debug(
            "response_emitted",
            component="proxy",
            tracer=request.tracer,
            status_code=response.status_code,
            bytes=len(content.encode("utf-8")),
        )
        return None

    def writer_for(
        self, request: ProxyRequest, response: ProxyResponse
    ) -> ResponseWriter:
        """Bind the emitter to one request/response pair.

        The returned coroutine function is what status-code handlers
        receive as their response writer.
        """

        async def write(content: str) -> None:
            await self.emit(request, response, content)

        return write
