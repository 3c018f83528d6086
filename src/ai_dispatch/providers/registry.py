"""
Provider registry.

Owns the provider table and one circuit breaker per provider. The registry
is built once at process start and injected into the dispatcher; breaker
state is only changed through the breakers' own transition methods.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ai_dispatch.providers.config import (
    DispatchSettings,
    ProviderConfig,
    default_provider_configs,
    load_provider_configs,
)
from ai_dispatch.resilience.circuit_breaker import CircuitBreaker

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from pathlib import Path

    from ai_dispatch.resilience.signals import CircuitBreakerSnapshot


class ProviderRegistry:
    """Provider table plus per-provider circuit breakers.

    Example:
        >>> registry = ProviderRegistry.from_env()
        >>> registry.providers_in_priority_order()
        ['google', 'anthropic']
        >>> registry.breaker("google").can_execute()
        True
    """

    def __init__(
        self,
        configs: Iterable[ProviderConfig],
        clock: Callable[[], float] | None = None,
        settings: DispatchSettings | None = None,
    ) -> None:
        """Initialize registry.

        Args:
            configs: Provider configs in registration order
            clock: Clock shared by all breakers (default: time.monotonic)
            settings: Dispatch settings the registry was built with (default: none set)

        Raises:
            ValueError: If two configs share an id
        """
        self._settings = settings or DispatchSettings()
        self._configs: dict[str, ProviderConfig] = {}
        self._breakers: dict[str, CircuitBreaker] = {}

        for config in configs:
            if config.id in self._configs:
                raise ValueError(f"Duplicate provider id: {config.id}")
            self._configs[config.id] = config
            self._breakers[config.id] = CircuitBreaker(config.id, config.breaker, clock=clock)

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        settings: DispatchSettings | None = None,
        clock: Callable[[], float] | None = None,
    ) -> ProviderRegistry:
        """Build the default provider table gated on credentials in ``env``."""
        settings = settings or DispatchSettings.from_env(env)
        configs = [settings.apply(c) for c in default_provider_configs(env)]
        return cls(configs, clock=clock, settings=settings)

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        env: Mapping[str, str] | None = None,
        settings: DispatchSettings | None = None,
        clock: Callable[[], float] | None = None,
    ) -> ProviderRegistry:
        """Build a registry from a YAML provider file."""
        settings = settings or DispatchSettings.from_env(env)
        configs = [settings.apply(c) for c in load_provider_configs(path, env)]
        return cls(configs, clock=clock, settings=settings)

    @property
    def settings(self) -> DispatchSettings:
        """Settings used by dispatchers that are not given their own."""
        return self._settings

    @property
    def providers(self) -> list[ProviderConfig]:
        """All provider configs, enabled or not, in registration order."""
        return list(self._configs.values())

    @property
    def has_enabled_providers(self) -> bool:
        return any(c.enabled for c in self._configs.values())

    def get(self, provider_id: str) -> ProviderConfig:
        """Get a provider config.

        Raises:
            KeyError: If the provider is unknown
        """
        try:
            return self._configs[provider_id]
        except KeyError:
            raise KeyError(f"Unknown provider: {provider_id}") from None

    def breaker(self, provider_id: str) -> CircuitBreaker:
        """Get a provider's circuit breaker.

        Raises:
            KeyError: If the provider is unknown
        """
        try:
            return self._breakers[provider_id]
        except KeyError:
            raise KeyError(f"Unknown provider: {provider_id}") from None

    def providers_in_priority_order(self, preferred: str | None = None) -> list[str]:
        """Get enabled provider ids, lowest priority value first.

        Ties keep registration order. When ``preferred`` names an enabled
        provider it is moved to the front; otherwise it is ignored.

        Args:
            preferred: Optional provider id to try first

        Returns:
            Ordered provider ids
        """
        enabled = [c for c in self._configs.values() if c.enabled]
        ordered = [c.id for c in sorted(enabled, key=lambda c: c.priority)]

        if preferred in ordered:
            ordered.remove(preferred)
            ordered.insert(0, preferred)

        return ordered

    def snapshot(self) -> dict[str, CircuitBreakerSnapshot]:
        """Snapshot every breaker, keyed by provider id."""
        return {pid: breaker.snapshot() for pid, breaker in self._breakers.items()}

    def reset_breakers(self) -> None:
        """Close every breaker and clear failure counts."""
        for breaker in self._breakers.values():
            breaker.reset()

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    def __repr__(self) -> str:
        enabled = self.providers_in_priority_order()
        return f"ProviderRegistry(providers={list(self._configs)}, enabled={enabled})"
