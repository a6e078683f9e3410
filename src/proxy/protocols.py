"""Protocol interfaces for the proxy's external collaborators."""

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from src.fetch.models import FetchOptions, FetchResult


if TYPE_CHECKING:
    from src.proxy.models import ProxyRequest
    from src.proxy.response import ProxyResponse


@runtime_checkable
class ContentFetcher(Protocol):
    """Protocol for content fetchers.

    The fetcher owns network access, retries, its cache store and
    request coalescing; the proxy only supplies the options.
    """

    async def fetch(self, options: FetchOptions) -> FetchResult:
        """Fetch content.

        Args:
            options: Fetch options.

        Returns:
            FetchResult with content and headers.

        Raises:
            FetchError: On failure, optionally carrying stale data.
        """
        ...


@runtime_checkable
class SlotExtractor(Protocol):
    """Protocol for slot extractors."""

    def extract_slots(self, content: str) -> dict[str, str]:
        """Extract named content blocks from HTML.

        Args:
            content: Fragment HTML.

        Returns:
            Mapping of slot name to content.

        Raises:
            ExtractionError: If the content cannot be processed.
        """
        ...


@runtime_checkable
class TemplateRendererProtocol(Protocol):
    """Protocol for template renderers."""

    def render(self, template: str, variables: Mapping[str, Any]) -> str:
        """Render a template string against variables.

        Raises:
            TemplateRenderError: If the template cannot be rendered.
        """
        ...


StatusCodeHandler = Callable[
    [
        "ProxyRequest",
        "ProxyResponse",
        dict[str, Any],
        dict[str, Any],
        FetchOptions | None,
        Exception,
        Callable[[str], Awaitable[None]],
    ],
    Awaitable[None] | None,
]

OptionsTransformer = Callable[["ProxyRequest", FetchOptions], Awaitable[FetchOptions]]
