"""多提供者 AI 调用层：按优先级故障转移，带熔断与指数退避重试。

ai-dispatch: Resilient multi-provider AI invocation.

Callers hand in an async operation; the dispatcher decides which provider
to call, when to retry, when to back off and when to mark a provider
unhealthy.
"""
from __future__ import annotations

from ai_dispatch.errors import (
    AiDispatchError,
    AllProvidersExhaustedError,
    ConfigurationError,
    DispatchCancelledError,
    ErrorKind,
    FatalProviderError,
    NoProvidersConfiguredError,
    ProviderError,
    RetryableProviderError,
    classify_error,
)
from ai_dispatch.providers import DispatchSettings, ProviderConfig, ProviderRegistry
from ai_dispatch.resilience import (
    CancelReason,
    CancelToken,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    DispatchAttempt,
    DispatchResult,
    ProviderDispatcher,
    RetryPolicy,
)
from ai_dispatch.telemetry import check_providers, get_logger

__version__ = "0.1.0"

__all__ = [
    # Errors
    "AiDispatchError",
    "AllProvidersExhaustedError",
    # Cancellation
    "CancelReason",
    "CancelToken",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ConfigurationError",
    "DispatchAttempt",
    "DispatchCancelledError",
    # Dispatch
    "DispatchResult",
    # Providers
    "DispatchSettings",
    "ErrorKind",
    "FatalProviderError",
    "NoProvidersConfiguredError",
    "ProviderConfig",
    "ProviderDispatcher",
    "ProviderError",
    "ProviderRegistry",
    "RetryPolicy",
    "RetryableProviderError",
    # Telemetry
    "check_providers",
    "classify_error",
    "get_logger",
    # Version
    "__version__",
]
