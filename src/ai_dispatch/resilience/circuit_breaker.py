"""
Circuit breaker for provider health tracking.

Implements the circuit breaker pattern with three states:
- Closed: Normal operation, calls pass through
- Open: Provider tripped, calls are skipped
- Half-Open: Timeout elapsed, a trial call is allowed

State machine:
    CLOSED    → (failure_count >= threshold)        → OPEN
    OPEN      → (timeout elapsed, on can_execute)   → HALF_OPEN
    HALF_OPEN → (on_success)                        → CLOSED
    HALF_OPEN → (on_failure)                        → OPEN
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ai_dispatch.resilience.signals import CircuitBreakerSnapshot
from ai_dispatch.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit
        timeout_ms: How long the circuit stays open before a trial call
    """

    failure_threshold: int = 5
    timeout_ms: int = 60000

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.timeout_ms < 0:
            raise ValueError("timeout_ms must be >= 0")


class CircuitBreaker:
    """Per-provider circuit breaker.

    The breaker never raises; callers ask ``can_execute()`` before an
    attempt and report the outcome with ``on_success()`` / ``on_failure()``.
    All three methods take the breaker's lock, so concurrent dispatches
    sharing a provider cannot lose updates.

    Example:
        >>> breaker = CircuitBreaker("google", CircuitBreakerConfig(failure_threshold=3))
        >>> if breaker.can_execute():
        ...     try:
        ...         result = await call_provider()
        ...     except Exception:
        ...         breaker.on_failure()
        ...     else:
        ...         breaker.on_success()
    """

    def __init__(
        self,
        provider: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            provider: Provider id, used in logs and snapshots
            config: Breaker configuration
            clock: Returns the current time in seconds (default: time.monotonic).
                   Inject a manual clock for deterministic tests.
        """
        self._provider = provider
        self._config = config or CircuitBreakerConfig()
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """Current state, without triggering the open-to-half-open check."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        with self._lock:
            return self._last_failure_time

    def can_execute(self) -> bool:
        """Check whether the provider may be attempted now.

        An open circuit whose timeout has elapsed moves to half-open as a
        side effect of this call.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._timeout_elapsed():
                    self._transition_to(CircuitState.HALF_OPEN)
                    return True
                return False

            return True

    def on_success(self) -> None:
        """Record a successful call: reset failures and close the circuit."""
        with self._lock:
            self._failure_count = 0
            self._transition_to(CircuitState.CLOSED)

    def on_failure(self) -> None:
        """Record a failed call; opens the circuit at the threshold."""
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._failure_count >= self._config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def time_until_retry(self) -> float | None:
        """Seconds until an open circuit admits a trial call.

        Returns:
            Remaining seconds, or None if the circuit is not open
        """
        with self._lock:
            return self._remaining_seconds()

    def reset(self) -> None:
        """Force the circuit back to closed with no recorded failures."""
        with self._lock:
            self._failure_count = 0
            self._last_failure_time = None
            self._transition_to(CircuitState.CLOSED)

    def snapshot(self) -> CircuitBreakerSnapshot:
        """Take a point-in-time snapshot of this breaker."""
        with self._lock:
            remaining = self._remaining_seconds()
            return CircuitBreakerSnapshot(
                provider=self._provider,
                state=self._state.value,
                failure_count=self._failure_count,
                failure_threshold=self._config.failure_threshold,
                timeout_ms=self._config.timeout_ms,
                last_failure_time=self._last_failure_time,
                cooldown_remaining_ms=(
                    remaining * 1000 if remaining is not None else None
                ),
            )

    # Lock must be held by the caller for everything below.

    def _timeout_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        elapsed_ms = (self._clock() - self._last_failure_time) * 1000
        return elapsed_ms > self._config.timeout_ms

    def _remaining_seconds(self) -> float | None:
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return None
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._config.timeout_ms / 1000 - elapsed)

    def _transition_to(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return

        previous = self._state
        self._state = new_state

        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker opened",
                provider=self._provider,
                previous_state=previous.value,
                failures=self._failure_count,
                timeout_ms=self._config.timeout_ms,
            )
        else:
            logger.info(
                "Circuit breaker state changed",
                provider=self._provider,
                previous_state=previous.value,
                state=new_state.value,
            )

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(provider={self._provider!r}, state={self._state.value}, "
            f"failures={self._failure_count}/{self._config.failure_threshold})"
        )
