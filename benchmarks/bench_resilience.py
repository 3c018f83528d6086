#!/usr/bin/env python3
"""
Dispatch performance benchmarks.

Measures the overhead the breaker, retry policy and dispatcher add on top
of a bare provider call.
"""

import asyncio
import time
from typing import Any

from ai_dispatch.providers import ProviderConfig, ProviderRegistry
from ai_dispatch.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    ProviderDispatcher,
    RetryPolicy,
)
from ai_dispatch.simulation import RecordingSleep
from ai_dispatch.telemetry import DispatchLogger, LogLevel

CONFIGS = [
    ProviderConfig(id="google", name="Google AI", max_retries=5, priority=1),
    ProviderConfig(id="anthropic", name="Anthropic", max_retries=3, priority=2),
]


async def noop_operation(provider: ProviderConfig | None = None) -> str:
    """No-op operation for overhead measurement."""
    return "result"


def _result(name: str, iterations: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_baseline(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark baseline async operation."""
    start = time.perf_counter()
    for _ in range(iterations):
        await noop_operation()
    return _result("Baseline (no resilience)", iterations, time.perf_counter() - start)


async def benchmark_circuit_breaker(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark breaker bookkeeping around a call (closed state)."""
    breaker = CircuitBreaker("google", CircuitBreakerConfig())

    start = time.perf_counter()
    for _ in range(iterations):
        if breaker.can_execute():
            await noop_operation()
            breaker.on_success()
    return _result("CircuitBreaker (closed)", iterations, time.perf_counter() - start)


async def benchmark_retry_policy(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark retry policy overhead (no retries triggered)."""
    policy = RetryPolicy()
    config = CONFIGS[0]

    start = time.perf_counter()
    for _ in range(iterations):
        await policy.execute(noop_operation, config)
    return _result("RetryPolicy (no retries)", iterations, time.perf_counter() - start)


async def benchmark_dispatch_first_provider(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark a dispatch answered by the first provider."""
    dispatcher = ProviderDispatcher(ProviderRegistry(CONFIGS))

    start = time.perf_counter()
    for _ in range(iterations):
        await dispatcher.dispatch(noop_operation)
    return _result("Dispatch (first provider)", iterations, time.perf_counter() - start)


async def benchmark_dispatch_failover(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark a dispatch that exhausts the first provider's retries."""
    never_open = CircuitBreakerConfig(failure_threshold=10**9)
    registry = ProviderRegistry(
        [c.model_copy(update={"breaker": never_open}) for c in CONFIGS]
    )
    dispatcher = ProviderDispatcher(registry, sleep=RecordingSleep())

    async def operation(provider: ProviderConfig) -> str:
        if provider.id == "google":
            raise RuntimeError("overloaded")
        return "result"

    start = time.perf_counter()
    for _ in range(iterations):
        await dispatcher.dispatch(operation)
    return _result("Dispatch (failover after 5 retries)", iterations, time.perf_counter() - start)


async def benchmark_concurrent_dispatch(
    concurrency: int = 100, iterations: int = 1000
) -> dict[str, Any]:
    """Benchmark concurrent dispatches sharing one registry."""
    dispatcher = ProviderDispatcher(ProviderRegistry(CONFIGS))
    semaphore = asyncio.Semaphore(concurrency)

    async def task() -> None:
        async with semaphore:
            await dispatcher.dispatch(noop_operation)

    start = time.perf_counter()
    await asyncio.gather(*(task() for _ in range(iterations)))
    return _result(f"Concurrent ({concurrency} parallel)", iterations, time.perf_counter() - start)


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    DispatchLogger.configure(level=LogLevel.ERROR, format="text")

    print("=" * 60)
    print("Dispatch Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_baseline,
        benchmark_circuit_breaker,
        benchmark_retry_policy,
        benchmark_dispatch_first_provider,
        benchmark_dispatch_failover,
    ]

    baseline_latency = 0.0

    for bench in benchmarks:
        result = await bench()
        if result["name"].startswith("Baseline"):
            baseline_latency = result["latency_us"]

        overhead = ""
        if baseline_latency > 0 and not result["name"].startswith("Baseline"):
            overhead_us = result["latency_us"] - baseline_latency
            overhead_pct = (overhead_us / baseline_latency) * 100
            overhead = f" (+{overhead_us:.2f}µs, +{overhead_pct:.1f}%)"

        print(f"{result['name']}:")
        print(f"  Throughput: {result['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/op{overhead}")
        print()

    print("Concurrent Execution:")
    for concurrency in [10, 50, 100]:
        result = await benchmark_concurrent_dispatch(concurrency=concurrency)
        print(f"  {concurrency} parallel: {result['throughput_ops']:.0f} ops/sec")


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
