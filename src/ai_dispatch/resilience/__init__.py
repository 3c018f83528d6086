"""
Resilience layer - Circuit breaker, retry, cancellation and failover.

This module provides the dispatch-time resilience patterns:
- CircuitBreaker: Closed/Open/Half-Open state machine per provider
- RetryPolicy: Bounded exponential backoff with retryable/fatal classification
- CancelToken: Cooperative cancellation with an optional deadline
- ProviderDispatcher: Priority-ordered sequential failover
- CircuitBreakerSnapshot: Point-in-time breaker state
"""

from ai_dispatch.resilience.cancel import (
    CancelReason,
    CancelState,
    CancelToken,
    create_cancel_token,
)
from ai_dispatch.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from ai_dispatch.resilience.dispatcher import DispatchResult, ProviderDispatcher
from ai_dispatch.resilience.retry import (
    AttemptOutcome,
    DispatchAttempt,
    RetryPolicy,
    with_retry,
)
from ai_dispatch.resilience.signals import CircuitBreakerSnapshot

__all__ = [
    # Retry
    "AttemptOutcome",
    # Cancellation
    "CancelReason",
    "CancelState",
    "CancelToken",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "DispatchAttempt",
    # Dispatcher
    "DispatchResult",
    "ProviderDispatcher",
    "RetryPolicy",
    "create_cancel_token",
    "with_retry",
]
