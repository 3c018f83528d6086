"""提供者调度器：按优先级顺序、结合熔断与重试进行故障转移。

Provider dispatcher.

Runs one logical AI operation against the best available provider:
providers are tried strictly one at a time, in priority order. A provider
whose circuit is open is skipped without spending its retry budget; a
provider that fails after retries is charged a breaker failure and the
dispatch falls through to the next one.
"""

from __future__ import annotations

import asyncio
import functools
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ai_dispatch.errors import (
    AllProvidersExhaustedError,
    DispatchCancelledError,
    NoProvidersConfiguredError,
    error_message,
)
from ai_dispatch.resilience.retry import AttemptOutcome, DispatchAttempt, RetryPolicy
from ai_dispatch.telemetry.logger import LogContext, get_logger, log_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ai_dispatch.providers.config import DispatchSettings, ProviderConfig
    from ai_dispatch.providers.registry import ProviderRegistry
    from ai_dispatch.resilience.cancel import CancelToken

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class DispatchResult(Generic[T]):
    """Result of a successful dispatch.

    Attributes:
        value: Value returned by the winning provider
        provider: Id of the provider that succeeded
        attempts: Every attempt made, across providers, in order
        skipped: Providers bypassed because their circuit was open
        errors: Errors from providers that failed before the winner
    """

    value: T
    provider: str
    attempts: list[DispatchAttempt] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def fell_back(self) -> bool:
        """Whether any provider was skipped or failed before the winner."""
        return bool(self.errors or self.skipped)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without the value)."""
        return {
            "provider": self.provider,
            "attempts": [
                {
                    "provider": a.provider,
                    "attempt": a.attempt,
                    "delay_ms": a.delay_ms,
                    "outcome": a.outcome.value,
                }
                for a in self.attempts
            ],
            "skipped": list(self.skipped),
            "failed": list(self.errors),
        }


class ProviderDispatcher:
    """Priority-ordered, sequential failover across AI providers.

    Example:
        >>> registry = ProviderRegistry.from_env()
        >>> dispatcher = ProviderDispatcher(registry)
        >>>
        >>> async def transcribe(provider: ProviderConfig) -> str:
        ...     return await clients[provider.id].transcribe(audio)
        >>>
        >>> text = await dispatcher.dispatch(transcribe)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        retry_policy: RetryPolicy | None = None,
        settings: DispatchSettings | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            registry: Provider registry owning configs and breakers
            retry_policy: Retry policy (default: RetryPolicy with ``sleep``)
            settings: Dispatch settings (default: the registry's settings)
            sleep: Coroutine function taking seconds (default: asyncio.sleep)
        """
        self._registry = registry
        self._sleep = sleep or asyncio.sleep
        self._retry = retry_policy or RetryPolicy(sleep=self._sleep)
        settings = settings or registry.settings
        self._provider_delay_ms = settings.delay_between_providers_ms

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    async def dispatch(
        self,
        operation: Callable[[ProviderConfig], Awaitable[T]],
        *,
        preferred: str | None = None,
        cancel_token: CancelToken | None = None,
        operation_name: str | None = None,
    ) -> T:
        """Run ``operation`` on the first provider that succeeds.

        Args:
            operation: Async callable receiving the provider's config
            preferred: Optional provider id to try first
            cancel_token: Optional token aborting the whole dispatch
            operation_name: Name used in log context (e.g. 'translate')

        Returns:
            Value returned by the winning provider

        Raises:
            NoProvidersConfiguredError: If no provider is enabled
            AllProvidersExhaustedError: If every enabled provider was skipped or failed
            DispatchCancelledError: If the token fires
        """
        result = await self.dispatch_with_report(
            operation,
            preferred=preferred,
            cancel_token=cancel_token,
            operation_name=operation_name,
        )
        return result.value

    async def dispatch_with_report(
        self,
        operation: Callable[[ProviderConfig], Awaitable[T]],
        *,
        preferred: str | None = None,
        cancel_token: CancelToken | None = None,
        operation_name: str | None = None,
    ) -> DispatchResult[T]:
        """Like ``dispatch`` but also return the attempt log."""
        order = self._registry.providers_in_priority_order(preferred)
        if not order:
            logger.error("No AI providers are enabled", operation=operation_name)
            raise NoProvidersConfiguredError()

        context = LogContext(dispatch_id=uuid.uuid4().hex[:12], operation=operation_name)
        with log_context(context):
            return await self._run(order, operation, cancel_token, context)

    async def _run(
        self,
        order: list[str],
        operation: Callable[[ProviderConfig], Awaitable[T]],
        cancel_token: CancelToken | None,
        context: LogContext,
    ) -> DispatchResult[T]:
        attempts: list[DispatchAttempt] = []
        errors: dict[str, Exception] = {}
        skipped: list[str] = []
        pause_pending = False

        for provider_id in order:
            if cancel_token is not None and cancel_token.is_cancelled:
                self._raise_cancelled(cancel_token, errors)

            config = self._registry.get(provider_id)
            breaker = self._registry.breaker(provider_id)

            with log_context(context.for_provider(provider_id)):
                if not breaker.can_execute():
                    skipped.append(provider_id)
                    logger.info(
                        f"{config.name} skipped, circuit open",
                        retry_in_s=breaker.time_until_retry(),
                    )
                    continue

                # Only paused before a provider that will actually be called
                if pause_pending:
                    await self._pause(self._provider_delay_ms, cancel_token, errors)
                    pause_pending = False

                logger.debug(f"Attempting with {config.name}")
                try:
                    value = await self._retry.execute(
                        functools.partial(operation, config),
                        config,
                        on_attempt=attempts.append,
                        cancel_token=cancel_token,
                    )
                except DispatchCancelledError as e:
                    logger.warning(f"Dispatch cancelled during {config.name}", reason=e.reason)
                    raise DispatchCancelledError(e.reason, errors) from e
                except Exception as e:
                    breaker.on_failure()
                    errors[provider_id] = e
                    logger.warning(
                        f"{config.name} failed",
                        error=error_message(e),
                        attempts=sum(1 for a in attempts if a.provider == provider_id),
                    )
                    pause_pending = self._provider_delay_ms > 0
                    continue

                breaker.on_success()
                if errors or skipped:
                    logger.info(
                        f"Succeeded with {config.name} after "
                        f"{', '.join([*errors, *skipped])} unavailable",
                        failed=list(errors),
                        skipped=skipped,
                    )
                return DispatchResult(
                    value=value,
                    provider=provider_id,
                    attempts=attempts,
                    skipped=skipped,
                    errors=errors,
                )

        logger.error(
            "All AI providers failed",
            failed=list(errors),
            skipped=skipped,
            attempts=len(attempts),
            fatal=sum(1 for a in attempts if a.outcome == AttemptOutcome.FATAL_FAILURE),
        )
        raise AllProvidersExhaustedError(errors, skipped, attempts)

    async def _pause(
        self,
        delay_ms: int,
        cancel_token: CancelToken | None,
        errors: dict[str, Exception],
    ) -> None:
        if cancel_token is None:
            await self._sleep(delay_ms / 1000)
            return
        try:
            await cancel_token.guard(self._sleep(delay_ms / 1000))
        except DispatchCancelledError as e:
            raise DispatchCancelledError(e.reason, errors) from e

    @staticmethod
    def _raise_cancelled(cancel_token: CancelToken, errors: dict[str, Exception]) -> None:
        try:
            cancel_token.raise_if_cancelled()
        except DispatchCancelledError as e:
            raise DispatchCancelledError(e.reason, errors) from None
