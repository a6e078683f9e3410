"""Recovery policy for failed fetches."""

import inspect
from enum import Enum

import structlog

from src.config.schemas import BackendConfig, ProxyConfig
from src.fetch.models import FetchOptions, FetchResult
from src.proxy.constants import HTTP_STATUS_NOT_FOUND
from src.proxy.errors import HandlerError
from src.proxy.handlers import HandlerRegistry
from src.proxy.metrics import ProxyMetrics
from src.proxy.models import ProxyRequest, template_vars_from_headers
from src.proxy.protocols import StatusCodeHandler
from src.proxy.response import (
    ProxyResponse,
    ResponseWriter,
    error_message,
    error_status_code,
    write_raw_error,
)


logger = structlog.get_logger()


class RecoveryAction(str, Enum):
    """How a failure was answered.

    - DELEGATE: A registered status-code handler took over the response
    - STALE_FALLBACK: Stale cached content was served (quiet failure)
    - RAW_ERROR: The status code and message were written directly
    """

    DELEGATE = "DELEGATE"
    STALE_FALLBACK = "STALE_FALLBACK"
    RAW_ERROR = "RAW_ERROR"


def log_failure(
    log: structlog.stdlib.BoundLogger,
    event: str,
    error: Exception,
    **fields: object,
) -> None:
    """Log a failure at warning level for 404s and error level otherwise."""
    status_code = error_status_code(error)
    log_fn = log.warning if status_code == HTTP_STATUS_NOT_FOUND else log.error
    log_fn(
        event,
        status_code=status_code,
        error_type=type(error).__name__,
        error=error_message(error),
        **fields,
    )


class ErrorRecoveryPolicy:
    """Selects and executes exactly one recovery action per failure.

    Priority: a registered status-code handler, then stale content for
    quiet-failure backends, then the raw error.
    """

    def __init__(
        self,
        config: ProxyConfig,
        handlers: HandlerRegistry,
        metrics: ProxyMetrics | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            config: Read-only proxy configuration.
            handlers: Frozen handler registry.
            metrics: Optional metrics instance.
        """
        self._config = config
        self._handlers = handlers
        self._metrics = metrics or ProxyMetrics.get_instance()

    def resolve_handler(
        self, error: Exception
    ) -> tuple[str, StatusCodeHandler, dict[str, object]] | None:
        """Find the handler configured for an error's status code.

        Returns:
            ``(name, handler, data)`` or None when no handler applies.
        """
        entry = self._config.handler_entry_for(error_status_code(error))
        if entry is None:
            return None
        handler = self._handlers.get(entry.fn)
        if handler is None:
            logger.warning(
                "status_code_handler_missing",
                component="proxy",
                status_code=error_status_code(error),
                fn=entry.fn,
            )
            return None
        return entry.fn, handler, dict(entry.data)

    async def recover(  # noqa: PLR0913
        self,
        error: Exception,
        stale: FetchResult | None,
        backend: BackendConfig | None,
        request: ProxyRequest,
        response: ProxyResponse,
        options: FetchOptions | None,
        writer: ResponseWriter,
    ) -> RecoveryAction:
        """Answer a failure.

        Args:
            error: The failure (FetchError, TransformError, ...).
            stale: Stale cached result offered by the fetcher.
            backend: Backend involved, if one was selected.
            request: Inbound request.
            response: Client response.
            options: Fetch options in use, if built.
            writer: Response writer bound to this request.

        Returns:
            The action taken.
        """
        log = logger.bind(
            component="proxy",
            tracer=request.tracer,
            url=request.url,
            backend=backend.name if backend else None,
        )

        action = await self._execute(
            error, stale, backend, request, response, options, writer, log
        )
        self._metrics.record_recovery(action.value)
        return action

    async def _execute(  # noqa: PLR0913
        self,
        error: Exception,
        stale: FetchResult | None,
        backend: BackendConfig | None,
        request: ProxyRequest,
        response: ProxyResponse,
        options: FetchOptions | None,
        writer: ResponseWriter,
        log: structlog.stdlib.BoundLogger,
    ) -> RecoveryAction:
        resolved = self.resolve_handler(error)
        if resolved is not None:
            name, handler, data = resolved
            log.info(
                "status_code_handler_delegated",
                status_code=error_status_code(error),
                fn=name,
            )
            try:
                outcome = handler(
                    request,
                    response,
                    request.template_vars,
                    data,
                    options,
                    error,
                    writer,
                )
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:  # noqa: BLE001
                handler_error = HandlerError(name, e)
                log_failure(log, "status_code_handler_failed", handler_error)
                write_raw_error(response, handler_error)
                return RecoveryAction.RAW_ERROR
            return RecoveryAction.DELEGATE

        if backend is not None and backend.quiet_failure and stale is not None:
            request.merge_template_vars(template_vars_from_headers(stale.headers))
            await writer(stale.content)
            self._metrics.record_stale_response()
            log_failure(
                log,
                "backend_failed_serving_stale",
                error,
                stale=True,
                cache_key=options.cache_key if options else None,
            )
            return RecoveryAction.STALE_FALLBACK

        written = write_raw_error(response, error)
        log_failure(log, "backend_failed", error, response_written=written)
        return RecoveryAction.RAW_ERROR
