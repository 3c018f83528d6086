"""
Integration tests for concurrent dispatches.

Independent dispatches share one registry and therefore one breaker per
provider.
"""

import asyncio

import pytest

from ai_dispatch.providers import ProviderRegistry
from ai_dispatch.resilience import CircuitBreakerConfig, CircuitState, ProviderDispatcher
from ai_dispatch.simulation import ScriptedOperation, ScriptedProvider


@pytest.fixture
def registry(config_factory) -> ProviderRegistry:
    breaker = CircuitBreakerConfig(failure_threshold=3, timeout_ms=60000)
    return ProviderRegistry(
        [
            config_factory("google", priority=1, breaker=breaker),
            config_factory("anthropic", priority=2, breaker=breaker),
        ]
    )


class TestConcurrency:
    """Tests for concurrent dispatch handling."""

    @pytest.mark.asyncio
    async def test_concurrent_dispatches_share_breaker(self, registry) -> None:
        """Test every concurrent failure is counted on the shared breaker."""
        operation = ScriptedOperation(
            ScriptedProvider.failing("google", ValueError("bad"), latency=0.01),
            ScriptedProvider.succeeding("anthropic", "ok", latency=0.01),
        )
        dispatcher = ProviderDispatcher(registry)

        results = await asyncio.gather(*(dispatcher.dispatch(operation) for _ in range(10)))

        assert results == ["ok"] * 10
        assert registry.breaker("google").failure_count == 10
        assert registry.breaker("google").state == CircuitState.OPEN

        report = await dispatcher.dispatch_with_report(operation)
        assert report.skipped == ["google"]
        assert operation.provider("google").calls == 10

    @pytest.mark.asyncio
    async def test_dispatch_is_sequential(self, registry) -> None:
        """Test at most one provider call is live per dispatch."""
        live = 0
        peak = 0

        async def operation(provider) -> str:
            nonlocal live, peak
            live += 1
            peak = max(peak, live)
            try:
                await asyncio.sleep(0.01)
                if provider.id == "google":
                    raise ValueError("bad")
                return provider.id
            finally:
                live -= 1

        assert await ProviderDispatcher(registry).dispatch(operation) == "anthropic"
        assert peak == 1

    @pytest.mark.asyncio
    async def test_dispatches_in_threads(self, registry) -> None:
        """Test dispatches on separate event loops share breakers safely."""
        operation = ScriptedOperation(
            ScriptedProvider.failing("google", ValueError("bad")),
            ScriptedProvider.succeeding("anthropic", "ok"),
        )
        dispatcher = ProviderDispatcher(registry)

        def run_one() -> str:
            return asyncio.run(dispatcher.dispatch(operation))

        results = await asyncio.gather(*(asyncio.to_thread(run_one) for _ in range(4)))

        assert results == ["ok"] * 4
        google_calls = operation.calls.count("google")
        assert 3 <= google_calls <= 4
        assert registry.breaker("google").failure_count == google_calls
