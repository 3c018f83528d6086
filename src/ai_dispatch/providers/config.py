"""
Provider configuration.

Provider entries are immutable Pydantic models. A provider whose
``credential_env`` variable is missing from the environment is disabled at
load time, so it never enters the dispatch order.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ai_dispatch.errors import ConfigurationError
from ai_dispatch.resilience.circuit_breaker import CircuitBreakerConfig

ENV_PREFIX = "AI_DISPATCH_"


class ProviderConfig(BaseModel):
    """Static configuration of one AI provider."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, description="Registry key, e.g. 'google'")
    name: str = Field(description="Display name, e.g. 'Google AI'")
    enabled: bool = Field(default=True, description="Disabled providers are never dispatched")
    max_retries: int = Field(gt=0, description="Upper bound on attempts per dispatch")
    base_delay_ms: int = Field(default=1000, ge=0, description="First backoff delay")
    max_delay_ms: int = Field(default=15000, ge=0, description="Backoff cap")
    priority: int = Field(gt=0, description="Lower value is tried first")
    credential_env: str | None = Field(
        default=None, description="Environment variable whose presence enables the provider"
    )
    breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            return {**data, "name": data["id"]}
        return data

    @model_validator(mode="after")
    def _check_delays(self) -> ProviderConfig:
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        return self

    def with_credentials(self, env: Mapping[str, str] | None = None) -> ProviderConfig:
        """Return a copy whose ``enabled`` flag reflects the credential's presence.

        Args:
            env: Environment mapping (default: os.environ)
        """
        if self.credential_env is None:
            return self
        env = os.environ if env is None else env
        has_credential = bool(env.get(self.credential_env))
        return self.model_copy(update={"enabled": self.enabled and has_credential})


DEFAULT_PROVIDERS: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        id="google",
        name="Google AI",
        max_retries=5,
        base_delay_ms=1000,
        max_delay_ms=15000,
        priority=1,
        breaker=CircuitBreakerConfig(failure_threshold=5, timeout_ms=60000),
    ),
    ProviderConfig(
        id="anthropic",
        name="Anthropic",
        max_retries=3,
        base_delay_ms=1000,
        max_delay_ms=15000,
        priority=2,
        credential_env="ANTHROPIC_API_KEY",
    ),
    ProviderConfig(
        id="openai",
        name="OpenAI",
        max_retries=2,
        base_delay_ms=1000,
        max_delay_ms=15000,
        priority=3,
        credential_env="OPENAI_API_KEY",
    ),
)


def default_provider_configs(
    env: Mapping[str, str] | None = None,
) -> list[ProviderConfig]:
    """Get the built-in provider table with credential gating applied."""
    return [config.with_credentials(env) for config in DEFAULT_PROVIDERS]


def load_provider_configs(
    path: str | Path,
    env: Mapping[str, str] | None = None,
) -> list[ProviderConfig]:
    """Load a provider table from a YAML file.

    The file holds a ``providers`` mapping of provider id to fields::

        providers:
          google:
            name: Google AI
            max_retries: 5
            priority: 1
            breaker: {failure_threshold: 5, timeout_ms: 60000}

    Entries keep the file's order, which breaks priority ties.

    Args:
        path: YAML file path
        env: Environment used for credential gating

    Returns:
        Provider configs in file order

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read provider file: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in provider file: {path}") from e

    providers = data.get("providers") if isinstance(data, dict) else None
    if not isinstance(providers, dict) or not providers:
        raise ConfigurationError(
            f"Provider file must define a non-empty 'providers' mapping: {path}",
            key="providers",
        )

    configs: list[ProviderConfig] = []
    for provider_id, fields in providers.items():
        if not isinstance(fields, dict):
            raise ConfigurationError(
                f"Provider '{provider_id}' must be a mapping", key=str(provider_id)
            )
        try:
            config = ProviderConfig.model_validate({"id": str(provider_id), **fields})
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration for provider '{provider_id}': {e}",
                key=str(provider_id),
            ) from e
        configs.append(config.with_credentials(env))

    return configs


def _env_int(env: Mapping[str, str], name: str, minimum: int) -> int | None:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{ENV_PREFIX}{name} must be an integer, got {raw!r}", key=ENV_PREFIX + name
        ) from e
    if value < minimum:
        raise ConfigurationError(
            f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}", key=ENV_PREFIX + name
        )
    return value


@dataclass
class DispatchSettings:
    """Process-wide dispatch settings.

    Attributes:
        delay_between_providers_ms: Pause before falling through to the next provider
        breaker_failure_threshold: Overrides every provider's breaker threshold when set
        breaker_timeout_ms: Overrides every provider's breaker timeout when set
    """

    delay_between_providers_ms: int = 0
    breaker_failure_threshold: int | None = None
    breaker_timeout_ms: int | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> DispatchSettings:
        """Create settings from AI_DISPATCH_* environment variables.

        Raises:
            ConfigurationError: If a variable is not a valid integer
        """
        env = os.environ if env is None else env
        return cls(
            delay_between_providers_ms=_env_int(env, "PROVIDER_DELAY_MS", 0) or 0,
            breaker_failure_threshold=_env_int(env, "BREAKER_FAILURE_THRESHOLD", 1),
            breaker_timeout_ms=_env_int(env, "BREAKER_TIMEOUT_MS", 0),
        )

    def apply(self, config: ProviderConfig) -> ProviderConfig:
        """Apply breaker overrides to a provider config."""
        if self.breaker_failure_threshold is None and self.breaker_timeout_ms is None:
            return config

        breaker = CircuitBreakerConfig(
            failure_threshold=(
                self.breaker_failure_threshold
                if self.breaker_failure_threshold is not None
                else config.breaker.failure_threshold
            ),
            timeout_ms=(
                self.breaker_timeout_ms
                if self.breaker_timeout_ms is not None
                else config.breaker.timeout_ms
            ),
        )
        return config.model_copy(update={"breaker": breaker})
