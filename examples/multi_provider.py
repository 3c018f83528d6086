#!/usr/bin/env python3
"""
Multi-provider dispatch example.

Demonstrates priority failover, retry with backoff, circuit breaking and
health reporting without calling real APIs: each provider is replaced by a
scripted fake.

Usage:
    export ANTHROPIC_API_KEY="your-api-key"   # enables the second provider
    export AI_DISPATCH_LOG_FORMAT=text
    python examples/multi_provider.py
"""

import asyncio
import json
import os

from ai_dispatch import (
    AllProvidersExhaustedError,
    DispatchSettings,
    ProviderDispatcher,
    ProviderError,
    ProviderRegistry,
    check_providers,
)
from ai_dispatch.simulation import ScriptedOperation, ScriptedProvider
from ai_dispatch.telemetry import DispatchLogger


async def failover_demo(dispatcher: ProviderDispatcher) -> None:
    """Google is overloaded, so the request falls through to Anthropic."""
    print("=== Failover ===")
    operation = ScriptedOperation(
        ScriptedProvider.failing("google", ProviderError("Model is overloaded", status_code=503)),
        ScriptedProvider.succeeding("anthropic", "Hola, ¿cómo estás?"),
    )

    result = await dispatcher.dispatch_with_report(operation, operation_name="translate")

    print(f"Answered by: {result.provider}")
    print(f"Value: {result.value}")
    print(f"Attempts: {len(result.attempts)}")
    print()


async def total_failure_demo(dispatcher: ProviderDispatcher) -> None:
    """Every provider is rate limited; show the user-facing message."""
    print("=== Total failure ===")
    operation = ScriptedOperation(
        ScriptedProvider.failing("google", ProviderError("quota", status_code=429)),
        ScriptedProvider.failing("anthropic", ProviderError("quota", status_code=429)),
    )

    try:
        await dispatcher.dispatch(operation, operation_name="transcribe")
    except AllProvidersExhaustedError as e:
        print(f"Error: {e}")
        print(f"User message: {e.user_message}")
    print()


async def main() -> None:
    DispatchLogger.configure_from_env()

    os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-demo")
    settings = DispatchSettings(delay_between_providers_ms=100)
    registry = ProviderRegistry.from_env(settings=settings)

    # Short backoff so the demo finishes quickly
    fast = {"base_delay_ms": 50, "max_delay_ms": 200}
    registry = ProviderRegistry(
        [c.model_copy(update=fast) for c in registry.providers],
    )
    dispatcher = ProviderDispatcher(registry, settings=settings)

    print(f"Dispatch order: {registry.providers_in_priority_order()}")
    print()

    await failover_demo(dispatcher)
    await total_failure_demo(dispatcher)

    print("=== Health ===")
    print(json.dumps(check_providers(registry).to_dict(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
