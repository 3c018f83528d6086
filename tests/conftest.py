"""Root pytest fixtures for ai-dispatch tests."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from ai_dispatch.providers import ProviderConfig, ProviderRegistry
from ai_dispatch.resilience import CircuitBreakerConfig, ProviderDispatcher
from ai_dispatch.simulation import ManualClock, RecordingSleep
from ai_dispatch.telemetry import DispatchLogger, LogLevel, clear_log_context


def make_config(provider_id: str, priority: int = 1, **overrides: Any) -> ProviderConfig:
    """Build a provider config with small, test-friendly defaults."""
    fields: dict[str, Any] = {
        "id": provider_id,
        "max_retries": 1,
        "base_delay_ms": 1000,
        "max_delay_ms": 15000,
        "priority": priority,
    }
    fields.update(overrides)
    return ProviderConfig(**fields)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1000.0)


@pytest.fixture
def sleep(clock: ManualClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def config_factory() -> Callable[..., ProviderConfig]:
    return make_config


@pytest.fixture
def two_providers(clock: ManualClock) -> ProviderRegistry:
    """Primary (priority 1) and secondary (priority 2), breaker threshold 3."""
    breaker = CircuitBreakerConfig(failure_threshold=3, timeout_ms=60000)
    return ProviderRegistry(
        [
            make_config("primary", priority=1, breaker=breaker),
            make_config("secondary", priority=2, breaker=breaker),
        ],
        clock=clock,
    )


@pytest.fixture
def dispatcher(two_providers: ProviderRegistry, sleep: RecordingSleep) -> ProviderDispatcher:
    return ProviderDispatcher(two_providers, sleep=sleep)


@pytest.fixture
def log_stream() -> Iterator[io.StringIO]:
    """Route all ai-dispatch loggers to an in-memory JSON stream."""
    stream = io.StringIO()
    DispatchLogger.configure(level=LogLevel.DEBUG, format="json", stream=stream)
    yield stream
    DispatchLogger.configure(level=LogLevel.INFO, format="text")
    clear_log_context()
