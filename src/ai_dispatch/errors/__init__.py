"""错误体系：提供者调用失败的结构化错误类型与重试分类。

Error hierarchy for ai-dispatch.

Provides structured error types and the retryable/fatal classification
used by the retry policy.
"""

from ai_dispatch.errors.base import (
    AiDispatchError,
    AllProvidersExhaustedError,
    ConfigurationError,
    DispatchCancelledError,
    ErrorContext,
    FatalProviderError,
    NoProvidersConfiguredError,
    ProviderError,
    RetryableProviderError,
)
from ai_dispatch.errors.classification import (
    RETRYABLE_MESSAGE_MARKERS,
    RETRYABLE_STATUS_CODES,
    ErrorKind,
    classify_error,
    error_message,
    error_status,
    is_retryable,
)

__all__ = [
    # Base errors
    "AiDispatchError",
    "AllProvidersExhaustedError",
    "ConfigurationError",
    "DispatchCancelledError",
    "ErrorContext",
    # Classification
    "ErrorKind",
    "FatalProviderError",
    "NoProvidersConfiguredError",
    "ProviderError",
    "RETRYABLE_MESSAGE_MARKERS",
    "RETRYABLE_STATUS_CODES",
    "RetryableProviderError",
    "classify_error",
    "error_message",
    "error_status",
    "is_retryable",
]
