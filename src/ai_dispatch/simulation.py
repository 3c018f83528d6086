"""
Deterministic fakes for exercising dispatch without real providers.

- ManualClock: advanceable clock for breakers and cancel tokens
- RecordingSleep: records backoff and pause delays instead of waiting
- ScriptedProvider: replays a fixed sequence of results and errors
- ScriptedOperation: binds provider ids to scripted providers as a
  dispatch operation

Example:
    >>> clock = ManualClock()
    >>> sleep = RecordingSleep(clock)
    >>> registry = ProviderRegistry(configs, clock=clock)
    >>> dispatcher = ProviderDispatcher(registry, sleep=sleep)
    >>> operation = ScriptedOperation(
    ...     ScriptedProvider("google", RetryableProviderError("overloaded")),
    ...     ScriptedProvider("anthropic", "hello"),
    ... )
    >>> await dispatcher.dispatch(operation)
    'hello'
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from ai_dispatch.errors import FatalProviderError

if TYPE_CHECKING:
    from ai_dispatch.providers.config import ProviderConfig


class ManualClock:
    """Clock that only moves when told to.

    Calling the instance returns the current reading in seconds, so it can
    be passed anywhere a ``time.monotonic``-style callable is expected.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    @property
    def now(self) -> float:
        return self._now

    def advance(self, seconds: float = 0.0, *, ms: float | None = None) -> float:
        """Move the clock forward.

        Args:
            seconds: Seconds to advance
            ms: Milliseconds to advance, added to ``seconds``

        Returns:
            The new reading
        """
        delta = seconds + (ms / 1000 if ms is not None else 0.0)
        if delta < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += delta
        return self._now


class RecordingSleep:
    """Sleep replacement that records requested delays.

    Each call yields to the event loop once and, when a ``ManualClock`` is
    given, advances it by the requested amount.
    """

    def __init__(self, clock: ManualClock | None = None) -> None:
        self._clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)
        await asyncio.sleep(0)

    @property
    def delays_ms(self) -> list[int]:
        """Recorded delays in whole milliseconds."""
        return [round(s * 1000) for s in self.delays]

    @property
    def total(self) -> float:
        return sum(self.delays)


class ScriptedProvider:
    """Fake provider replaying a script of outcomes.

    Each outcome is either an exception (raised) or a value (returned).
    Once the script runs out the last outcome repeats.

    Attributes:
        provider_id: Provider this script answers for
        calls: Number of invocations so far
    """

    def __init__(
        self,
        provider_id: str,
        *outcomes: Any,
        latency: float = 0.0,
    ) -> None:
        """Initialize scripted provider.

        Args:
            provider_id: Provider id
            *outcomes: Values to return or exceptions to raise, in order
            latency: Real seconds to await before each outcome
        """
        if not outcomes:
            raise ValueError("ScriptedProvider needs at least one outcome")
        self.provider_id = provider_id
        self._outcomes = list(outcomes)
        self._latency = latency
        self.calls = 0

    @classmethod
    def failing(cls, provider_id: str, error: Exception, latency: float = 0.0) -> ScriptedProvider:
        """Provider that always raises ``error``."""
        return cls(provider_id, error, latency=latency)

    @classmethod
    def succeeding(cls, provider_id: str, value: Any, latency: float = 0.0) -> ScriptedProvider:
        """Provider that always returns ``value``."""
        return cls(provider_id, value, latency=latency)

    async def __call__(self) -> Any:
        index = min(self.calls, len(self._outcomes) - 1)
        self.calls += 1
        if self._latency:
            await asyncio.sleep(self._latency)

        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ScriptedOperation:
    """Dispatch operation routing each provider to its scripted fake.

    Attributes:
        calls: Provider ids in invocation order
    """

    def __init__(self, *providers: ScriptedProvider) -> None:
        self._providers = {p.provider_id: p for p in providers}
        self.calls: list[str] = []

    def provider(self, provider_id: str) -> ScriptedProvider:
        return self._providers[provider_id]

    async def __call__(self, config: ProviderConfig) -> Any:
        self.calls.append(config.id)
        scripted = self._providers.get(config.id)
        if scripted is None:
            raise FatalProviderError(
                f"No script for provider {config.id}", provider=config.id
            )
        return await scripted()
