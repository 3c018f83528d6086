"""
Provider health reporting.

Maps each provider's circuit breaker state to a health status and
aggregates them into one report suitable for a health endpoint.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ai_dispatch.providers.registry import ProviderRegistry
    from ai_dispatch.resilience.signals import CircuitBreakerSnapshot


class HealthStatus(str, Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Health of a single provider.

    Attributes:
        name: Provider id
        status: Health status
        message: Status message
        timestamp: Check timestamp
        details: Breaker snapshot fields
    """

    name: str
    status: HealthStatus
    message: str = ""
    timestamp: float = field(default_factory=time.time)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "details": self.details,
        }


@dataclass
class AggregatedHealth:
    """Aggregated health status.

    Attributes:
        status: Overall health status
        checks: Per-provider results
        message: Summary message
        timestamp: Aggregation timestamp
    """

    status: HealthStatus
    checks: list[HealthCheckResult] = field(default_factory=list)
    message: str = ""
    timestamp: float = field(default_factory=time.time)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def get(self, name: str) -> HealthCheckResult | None:
        """Get the result for one provider."""
        for check in self.checks:
            if check.name == name:
                return check
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "message": self.message,
            "checks": [c.to_dict() for c in self.checks],
            "timestamp": self.timestamp,
        }


def _provider_status(snapshot: CircuitBreakerSnapshot) -> tuple[HealthStatus, str]:
    if snapshot.is_closed:
        return HealthStatus.HEALTHY, "circuit closed"
    if snapshot.is_half_open:
        return HealthStatus.DEGRADED, "circuit half-open, trial call allowed"
    if snapshot.cooldown_remaining_ms is not None and snapshot.cooldown_remaining_ms <= 0:
        return HealthStatus.DEGRADED, "circuit open, cooldown elapsed"
    return HealthStatus.UNHEALTHY, "circuit open"


def check_providers(registry: ProviderRegistry) -> AggregatedHealth:
    """Build a health report from the registry's breakers.

    Reading breaker snapshots does not move an open breaker to half-open.

    Args:
        registry: Provider registry

    Returns:
        AggregatedHealth with one check per registered provider
    """
    snapshots = registry.snapshot()
    checks: list[HealthCheckResult] = []

    for config in registry.providers:
        snapshot = snapshots[config.id]
        if not config.enabled:
            checks.append(
                HealthCheckResult(
                    name=config.id,
                    status=HealthStatus.UNKNOWN,
                    message="disabled",
                    details={"enabled": False},
                )
            )
            continue

        status, message = _provider_status(snapshot)
        checks.append(
            HealthCheckResult(
                name=config.id,
                status=status,
                message=message,
                details={"enabled": True, **snapshot.to_dict()},
            )
        )

    enabled = [c for c in checks if c.status != HealthStatus.UNKNOWN]
    if not enabled:
        return AggregatedHealth(
            status=HealthStatus.UNHEALTHY,
            checks=checks,
            message="no providers configured",
        )

    statuses = [c.status for c in enabled]
    if all(s == HealthStatus.UNHEALTHY for s in statuses):
        overall, message = HealthStatus.UNHEALTHY, "all providers unavailable"
    elif any(s != HealthStatus.HEALTHY for s in statuses):
        overall, message = HealthStatus.DEGRADED, "some providers unavailable"
    else:
        overall, message = HealthStatus.HEALTHY, "all providers available"

    return AggregatedHealth(status=overall, checks=checks, message=message)
