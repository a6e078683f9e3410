"""Composition controller: fragment fetch, recovery and layout composition."""

from dataclasses import dataclass, replace

import structlog

from src.config.schemas import BackendConfig, ProxyConfig
from src.fetch.models import FetchError, FetchOptions, FetchResult
from src.observability.logging import bind_tracer_context, clear_tracer_context
from src.proxy.constants import (
    EXTENSION_CONTENT_TYPE,
    LAYOUT_HEADER,
    SLOTS_TEMPLATE_KEY,
)
from src.proxy.context import RequestContextBuilder
from src.proxy.errors import (
    BackendNotFoundError,
    CompositionError,
    FetcherError,
    InvalidLayoutUrlError,
    TransformError,
)
from src.proxy.handlers import HandlerRegistry
from src.proxy.headers import HeaderPolicy
from src.proxy.metrics import ProxyMetrics
from src.proxy.models import ProxyRequest, template_vars_from_headers
from src.proxy.protocols import (
    ContentFetcher,
    OptionsTransformer,
    SlotExtractor,
    TemplateRendererProtocol,
)
from src.proxy.recovery import ErrorRecoveryPolicy, RecoveryAction, log_failure
from src.proxy.response import (
    ContentEmitter,
    ProxyResponse,
    ResponseWriter,
    write_raw_error,
)
from src.proxy.state_machine import CompositionState, CompositionStateMachine
from src.slots.extractor import ExtractionError, HtmlSlotExtractor
from src.templating.renderer import TemplateRenderError, TemplateRenderer


logger = structlog.get_logger()


@dataclass(frozen=True)
class CompositionResult:
    """Outcome of one composed request.

    Attributes:
        state: Terminal state reached.
        recovery_action: Recovery action taken when the request failed.
        error: The failure, if any.
        layout_url: Rendered layout URL when a layout was requested.
    """

    state: CompositionState
    recovery_action: RecoveryAction | None = None
    error: Exception | None = None
    layout_url: str | None = None


def _with_layout_url(result: CompositionResult, layout_url: str) -> CompositionResult:
    return replace(result, layout_url=layout_url)


@dataclass
class _RequestScope:
    """Per-request collaborators threaded through the stages."""

    request: ProxyRequest
    response: ProxyResponse
    writer: ResponseWriter
    machine: CompositionStateMachine
    log: structlog.stdlib.BoundLogger


class CompositionController:
    """Composes pages from backend fragments and layouts.

    Each request runs through a fresh CompositionStateMachine:

        START -> FETCHING_FRAGMENT -> FRAGMENT_READY -> SIMPLE_EMIT
                                                     -> EXTRACTING_SLOTS
                                                     -> RENDERING_LAYOUT_URL
                                                     -> FETCHING_LAYOUT
                                                     -> LAYOUT_EMIT

    with FAILED reachable from every stage that can fail. The controller
    itself keeps no per-request state, so one instance serves all
    requests concurrently.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: ProxyConfig,
        fetcher: ContentFetcher,
        handlers: HandlerRegistry | None = None,
        slot_extractor: SlotExtractor | None = None,
        renderer: TemplateRendererProtocol | None = None,
        emitter: ContentEmitter | None = None,
        options_transformer: OptionsTransformer | None = None,
        metrics: ProxyMetrics | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Read-only proxy configuration.
            fetcher: Content fetcher for fragments and layouts.
            handlers: Status-code handler registry; frozen here.
            slot_extractor: Slot extractor (BeautifulSoup by default).
            renderer: Renderer for layout URLs (Jinja2 by default).
            emitter: Writer of final content.
            options_transformer: Async hook that may rewrite fetch options.
            metrics: Optional metrics instance.
        """
        self._config = config
        self._fetcher = fetcher
        self._handlers = (handlers or HandlerRegistry()).freeze()
        self._slot_extractor = slot_extractor or HtmlSlotExtractor()
        self._renderer = renderer or TemplateRenderer()
        self._emitter = emitter or ContentEmitter()
        self._options_transformer = options_transformer
        self._metrics = metrics or ProxyMetrics.get_instance()
        self._header_policy = HeaderPolicy(config)
        self._context_builder = RequestContextBuilder(self._header_policy)
        self._recovery = ErrorRecoveryPolicy(config, self._handlers, self._metrics)

    @property
    def config(self) -> ProxyConfig:
        """Get the proxy configuration."""
        return self._config

    async def handle(
        self,
        request: ProxyRequest,
        response: ProxyResponse,
        backend: BackendConfig | None = None,
    ) -> CompositionResult:
        """Compose the response for one request.

        Args:
            request: Inbound request.
            response: Client response; written exactly once.
            backend: Backend to use; selected by URL pattern when omitted.

        Returns:
            CompositionResult describing the terminal state.
        """
        scope = _RequestScope(
            request=request,
            response=response,
            writer=self._emitter.writer_for(request, response),
            machine=CompositionStateMachine(tracer=request.tracer),
            log=logger.bind(component="proxy", url=request.url),
        )
        bind_tracer_context(request.tracer)
        try:
            result = await self._start(scope, backend)
        except Exception as e:  # noqa: BLE001
            result = self._fail_unexpected(scope, e)
        finally:
            clear_tracer_context()

        self._metrics.record_response(result.state.value)
        return result

    def _is_extension_post(self, request: ProxyRequest) -> bool:
        return (
            self._config.enable_extension
            and request.method == "POST"
            and request.content_type == EXTENSION_CONTENT_TYPE
        )

    async def _start(
        self,
        scope: _RequestScope,
        backend: BackendConfig | None,
    ) -> CompositionResult:
        """START: short-circuit posted content, else build fetch options."""
        request = scope.request

        if self._is_extension_post(request):
            scope.machine.to_simple_emit()
            self._metrics.record_extension_post()
            return await self._emit(scope, request.body)

        backend = backend or self._config.select_backend(request.url)
        if backend is None:
            return await self._recover(scope, BackendNotFoundError(request.url))

        options = self._context_builder.build_fetch_options(request, backend)
        if self._options_transformer is not None:
            try:
                options = await self._options_transformer(request, options)
            except Exception as e:  # noqa: BLE001
                return await self._recover(scope, TransformError(e), backend=backend)

        return await self._fetch_fragment(scope, backend, options)

    async def _fetch_fragment(
        self,
        scope: _RequestScope,
        backend: BackendConfig,
        options: FetchOptions,
    ) -> CompositionResult:
        """FETCHING_FRAGMENT: fetch, then apply headers and branch on layout."""
        scope.machine.to_fetching_fragment()
        try:
            fragment = await self._fetcher.fetch(options)
        except FetchError as e:
            return await self._recover(
                scope, e, backend=backend, options=options, stale=e.stale
            )
        except Exception as e:  # noqa: BLE001
            return await self._recover(
                scope, FetcherError(e), backend=backend, options=options
            )

        scope.machine.to_fragment_ready()
        scope.request.merge_template_vars(template_vars_from_headers(fragment.headers))
        self._header_policy.apply_response_headers(
            scope.response, backend, fragment.headers
        )

        layout_template = fragment.headers.get(LAYOUT_HEADER)
        if layout_template is None:
            scope.machine.to_simple_emit()
            return await self._emit(scope, fragment.content)

        return await self._compose_layout(scope, backend, fragment, layout_template)

    async def _compose_layout(
        self,
        scope: _RequestScope,
        backend: BackendConfig,
        fragment: FetchResult,
        layout_template: str,
    ) -> CompositionResult:
        """EXTRACTING_SLOTS through LAYOUT_EMIT."""
        request = scope.request

        scope.machine.to_extracting_slots()
        try:
            slots = self._slot_extractor.extract_slots(fragment.content)
        except ExtractionError as e:
            return self._fail_raw(scope, e, "slot_extraction_failed")

        request.merge_template_vars({SLOTS_TEMPLATE_KEY: slots})

        scope.machine.to_rendering_layout_url()
        try:
            layout_url = self._renderer.render(layout_template, request.template_vars)
        except TemplateRenderError as e:
            return self._fail_raw(scope, e, "layout_url_render_failed")

        try:
            layout_options = self._context_builder.build_layout_options(
                request, backend, layout_url
            )
        except InvalidLayoutUrlError as e:
            result = self._fail_raw(scope, e, "layout_url_invalid")
            return _with_layout_url(result, layout_url)

        scope.log.debug(
            "layout_fetch",
            layout_url=layout_url,
            slot_names=sorted(slots),
            cache_key=layout_options.cache_key,
        )

        scope.machine.to_fetching_layout()
        try:
            layout = await self._fetcher.fetch(layout_options)
        except Exception as e:  # noqa: BLE001
            # Layout failures never fall back to the fragment's stale data
            error = e if isinstance(e, FetchError) else FetcherError(e)
            result = await self._recover(
                scope, error, backend=backend, options=layout_options
            )
            return _with_layout_url(result, layout_options.url)

        scope.machine.to_layout_emit()
        self._metrics.record_layout_composition()
        result = await self._emit(scope, layout.content)
        return _with_layout_url(result, layout_options.url)

    async def _emit(self, scope: _RequestScope, content: str) -> CompositionResult:
        """Write final content from an emit state."""
        render_error = await self._emitter.emit(
            scope.request, scope.response, content
        )
        if render_error is None:
            return CompositionResult(state=scope.machine.state)
        self._metrics.record_recovery(RecoveryAction.RAW_ERROR.value)
        return CompositionResult(
            state=scope.machine.state,
            recovery_action=RecoveryAction.RAW_ERROR,
            error=render_error,
        )

    async def _recover(
        self,
        scope: _RequestScope,
        error: Exception,
        backend: BackendConfig | None = None,
        options: FetchOptions | None = None,
        stale: FetchResult | None = None,
    ) -> CompositionResult:
        """FAILED via the recovery policy."""
        scope.machine.to_failed()
        action = await self._recovery.recover(
            error,
            stale,
            backend,
            scope.request,
            scope.response,
            options,
            scope.writer,
        )
        return CompositionResult(
            state=scope.machine.state, recovery_action=action, error=error
        )

    def _fail_raw(
        self,
        scope: _RequestScope,
        error: Exception,
        event: str,
    ) -> CompositionResult:
        """FAILED with a raw error response, bypassing recovery."""
        scope.machine.to_failed()
        written = write_raw_error(scope.response, error)
        log_failure(scope.log, event, error, response_written=written)
        self._metrics.record_recovery(RecoveryAction.RAW_ERROR.value)
        return CompositionResult(
            state=scope.machine.state,
            recovery_action=RecoveryAction.RAW_ERROR,
            error=error,
        )

    def _fail_unexpected(
        self,
        scope: _RequestScope,
        error: Exception,
    ) -> CompositionResult:
        """FAILED for an error no stage anticipated.

        The response is still answered with a raw 500 unless something
        has already been written.
        """
        if scope.machine.can_transition_to(CompositionState.FAILED):
            scope.machine.to_failed()
        wrapped = CompositionError(error)
        written = write_raw_error(scope.response, wrapped)
        scope.log.error(
            "composition_failed",
            state=scope.machine.state.value,
            error_type=type(error).__name__,
            error=str(error),
            response_written=written,
        )
        self._metrics.record_recovery(RecoveryAction.RAW_ERROR.value)
        return CompositionResult(
            state=scope.machine.state,
            recovery_action=RecoveryAction.RAW_ERROR,
            error=wrapped,
        )
