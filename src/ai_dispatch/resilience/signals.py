"""
Resilience signals and snapshots.

Point-in-time views of breaker state for health reporting and logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Snapshot of circuit breaker state.

    Attributes:
        provider: Provider id the breaker belongs to
        state: Current state (closed, open, half_open)
        failure_count: Consecutive failures since the last success
        failure_threshold: Threshold for opening
        timeout_ms: Open duration before a trial call is allowed
        last_failure_time: Clock reading of the last failure
        cooldown_remaining_ms: Remaining open time in milliseconds
    """

    provider: str
    state: str
    failure_count: int
    failure_threshold: int
    timeout_ms: int
    last_failure_time: float | None = None
    cooldown_remaining_ms: float | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def is_half_open(self) -> bool:
        return self.state == "half_open"

    @property
    def health_score(self) -> float:
        """Score between 0.0 (open) and 1.0 (closed)."""
        if self.is_closed:
            return 1.0
        if self.is_half_open:
            return 0.5
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "state": self.state,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "timeout_ms": self.timeout_ms,
            "last_failure_time": self.last_failure_time,
            "cooldown_remaining_ms": self.cooldown_remaining_ms,
            "is_open": self.is_open,
            "health_score": self.health_score,
        }
