"""
Retry policy with bounded exponential backoff.

Runs a single provider operation up to ``max_retries`` times. Retryable
errors are retried after ``min(base_delay_ms * 2**attempt, max_delay_ms)``;
fatal errors and the error from the last permitted attempt are re-raised
unchanged.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from ai_dispatch.errors import DispatchCancelledError, ErrorKind, classify_error, error_message
from ai_dispatch.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ai_dispatch.providers.config import ProviderConfig
    from ai_dispatch.resilience.cancel import CancelToken

T = TypeVar("T")

logger = get_logger(__name__)


class AttemptOutcome(str, Enum):
    """Outcome of a single provider attempt."""

    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class DispatchAttempt:
    """Record of one provider attempt, for observability only.

    Attributes:
        provider: Provider id
        attempt: Attempt number within this provider's turn (1-based)
        delay_ms: Backoff scheduled after this attempt (0 if none)
        outcome: Attempt outcome
        error: Error raised by the attempt, if any
    """

    provider: str
    attempt: int
    delay_ms: int
    outcome: AttemptOutcome
    error: Exception | None = None


class RetryPolicy:
    """Bounded exponential-backoff retry for one provider.

    The backoff sleep is cooperative (``asyncio.sleep`` by default) so other
    dispatches on the same loop keep running. Pass a custom ``sleep`` to
    avoid real delays in tests.

    Example:
        >>> policy = RetryPolicy()
        >>> result = await policy.execute(lambda: call_google(prompt), config)
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        """Initialize retry policy.

        Args:
            sleep: Coroutine function taking seconds (default: asyncio.sleep)
        """
        self._sleep = sleep or asyncio.sleep

    @staticmethod
    def calculate_delay(attempt: int, config: ProviderConfig) -> int:
        """Calculate the backoff delay after a failed attempt.

        Args:
            attempt: Attempt index (0-based)
            config: Provider configuration

        Returns:
            Delay in milliseconds
        """
        return min(config.base_delay_ms * (2 ** attempt), config.max_delay_ms)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        config: ProviderConfig,
        *,
        on_attempt: Callable[[DispatchAttempt], None] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Execute an operation with retry.

        Args:
            operation: Async operation bound to this provider
            config: Provider configuration (retry budget and backoff bounds)
            on_attempt: Optional callback receiving each attempt record
            cancel_token: Optional token aborting the call or the backoff

        Returns:
            Operation result

        Raises:
            DispatchCancelledError: If the token fires
            Exception: The operation's own error, unchanged, when it is
                fatal or the retry budget is spent
        """
        for attempt in range(config.max_retries):
            try:
                if cancel_token is not None:
                    result = await cancel_token.guard(operation())
                else:
                    result = await operation()
            except DispatchCancelledError:
                raise
            except Exception as e:
                kind = classify_error(e)
                last_attempt = attempt == config.max_retries - 1

                if kind == ErrorKind.FATAL or last_attempt:
                    self._report(
                        on_attempt,
                        DispatchAttempt(
                            provider=config.id,
                            attempt=attempt + 1,
                            delay_ms=0,
                            outcome=(
                                AttemptOutcome.FATAL_FAILURE
                                if kind == ErrorKind.FATAL
                                else AttemptOutcome.RETRYABLE_FAILURE
                            ),
                            error=e,
                        ),
                    )
                    logger.info(
                        f"{config.name} attempt {attempt + 1} failed, giving up",
                        provider=config.id,
                        attempt=attempt + 1,
                        kind=kind.value,
                        error=error_message(e),
                    )
                    raise

                delay_ms = self.calculate_delay(attempt, config)
                self._report(
                    on_attempt,
                    DispatchAttempt(
                        provider=config.id,
                        attempt=attempt + 1,
                        delay_ms=delay_ms,
                        outcome=AttemptOutcome.RETRYABLE_FAILURE,
                        error=e,
                    ),
                )
                logger.info(
                    f"{config.name} attempt {attempt + 1} failed, "
                    f"retrying in {delay_ms / 1000}s",
                    provider=config.id,
                    attempt=attempt + 1,
                    delay_ms=delay_ms,
                    error=error_message(e),
                )

                if cancel_token is not None:
                    await cancel_token.guard(self._sleep(delay_ms / 1000))
                else:
                    await self._sleep(delay_ms / 1000)
            else:
                self._report(
                    on_attempt,
                    DispatchAttempt(
                        provider=config.id,
                        attempt=attempt + 1,
                        delay_ms=0,
                        outcome=AttemptOutcome.SUCCESS,
                    ),
                )
                return result

        # max_retries >= 1 is validated on ProviderConfig
        raise AssertionError("unreachable")

    @staticmethod
    def _report(
        on_attempt: Callable[[DispatchAttempt], None] | None,
        attempt: DispatchAttempt,
    ) -> None:
        if on_attempt is not None:
            on_attempt(attempt)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: ProviderConfig,
    cancel_token: CancelToken | None = None,
) -> T:
    """Execute an operation with the default retry policy."""
    return await RetryPolicy().execute(operation, config, cancel_token=cancel_token)
