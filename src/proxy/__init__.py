"""Fragment-composition proxy core.

Fetches a content fragment from a configured backend, recovers from
backend failure, applies header policy and, when the fragment declares
a ``cx-layout``, composes it into a layout using slots extracted from
the fragment.
"""

from src.proxy.constants import (
    EXTENSION_CONTENT_TYPE,
    LAYOUT_CACHE_KEY_PREFIX,
    LAYOUT_CACHE_TTL_MS,
    LAYOUT_HEADER,
    SLOTS_TEMPLATE_KEY,
)
from src.proxy.context import RequestContextBuilder
from src.proxy.controller import CompositionController, CompositionResult
from src.proxy.errors import (
    BackendNotFoundError,
    CompositionError,
    FetcherError,
    HandlerError,
    HandlerRegistryFrozenError,
    InvalidLayoutUrlError,
    ProxyError,
    ResponseAlreadySentError,
    TransformError,
)
from src.proxy.handlers import HandlerRegistry, redirect_handler, static_handler
from src.proxy.headers import HeaderPolicy, filter_cookies
from src.proxy.metrics import ProxyMetrics
from src.proxy.models import ProxyRequest, template_vars_from_headers
from src.proxy.recovery import ErrorRecoveryPolicy, RecoveryAction
from src.proxy.response import ContentEmitter, ProxyResponse
from src.proxy.state_machine import (
    CompositionState,
    CompositionStateMachine,
    CompositionStateTransitionError,
)


__all__ = [
    # Controller
    "CompositionController",
    "CompositionResult",
    # Policies
    "ErrorRecoveryPolicy",
    "HeaderPolicy",
    "RecoveryAction",
    "RequestContextBuilder",
    "filter_cookies",
    # Handlers
    "HandlerRegistry",
    "redirect_handler",
    "static_handler",
    # Models
    "ContentEmitter",
    "ProxyRequest",
    "ProxyResponse",
    "template_vars_from_headers",
    # State machine
    "CompositionState",
    "CompositionStateMachine",
    "CompositionStateTransitionError",
    # Errors
    "BackendNotFoundError",
    "CompositionError",
    "FetcherError",
    "HandlerError",
    "HandlerRegistryFrozenError",
    "InvalidLayoutUrlError",
    "ProxyError",
    "ResponseAlreadySentError",
    "TransformError",
    # Metrics
    "ProxyMetrics",
    # Constants
    "EXTENSION_CONTENT_TYPE",
    "LAYOUT_CACHE_KEY_PREFIX",
    "LAYOUT_CACHE_TTL_MS",
    "LAYOUT_HEADER",
    "SLOTS_TEMPLATE_KEY",
]
