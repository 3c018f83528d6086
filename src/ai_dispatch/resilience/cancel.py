"""
Dispatch cancellation control.

Provides a cancellation token with an optional deadline that can be
threaded through a dispatch to abort in-flight calls, backoff sleeps and
inter-provider pauses.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from ai_dispatch.errors import DispatchCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Wall-clock time of cancellation
        metadata: Caller-supplied details
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for a dispatch.

    The token can be cancelled explicitly from another task, or carry a
    deadline after which it reports itself cancelled with reason TIMEOUT.

    Example:
        >>> token = CancelToken(timeout=30.0)
        >>> result = await dispatcher.dispatch(operation, cancel_token=token)
        >>>
        >>> # From another task
        >>> token.cancel(CancelReason.USER_REQUEST)
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize cancellation token.

        Args:
            timeout: Optional deadline, in seconds from now
            clock: Monotonic clock in seconds (default: time.monotonic)
        """
        self._clock = clock or time.monotonic
        self._state = CancelState()
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancelReason], Any]] = []
        self._deadline = self._clock() + timeout if timeout is not None else None

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if already cancelled
        """
        if self._state.cancelled:
            return False

        self._state.cancelled = True
        self._state.reason = reason
        self._state.timestamp = time.time()
        self._state.metadata.update(metadata)
        self._event.set()

        for callback in self._callbacks:
            callback(reason)

        return True

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested or the deadline has passed."""
        if not self._state.cancelled and self._deadline_passed():
            self.cancel(CancelReason.TIMEOUT)
        return self._state.cancelled

    @property
    def reason(self) -> CancelReason | None:
        return self._state.reason

    @property
    def state(self) -> CancelState:
        return self._state

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Register a callback invoked once on cancellation.

        Returns:
            Self for chaining
        """
        self._callbacks.append(callback)
        if self._state.cancelled and self._state.reason:
            callback(self._state.reason)
        return self

    def raise_if_cancelled(self) -> None:
        """Raise DispatchCancelledError if cancelled.

        Raises:
            DispatchCancelledError: If cancellation was requested
        """
        if self.is_cancelled:
            reason = self._state.reason or CancelReason.USER_REQUEST
            raise DispatchCancelledError(reason.value)

    async def wait(self) -> CancelReason:
        """Wait until cancellation is requested or the deadline passes."""
        remaining = self.remaining()
        if remaining is None:
            await self._event.wait()
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                self.cancel(CancelReason.TIMEOUT)
        return self._state.reason or CancelReason.USER_REQUEST

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        The awaitable is cancelled when the token fires before it completes.
        Whatever the awaitable then raises, the caller sees cancellation.

        Raises:
            DispatchCancelledError: If the token fired first
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)

        # Work interrupted by the token may end in its own error; report cancellation
        if waiter in done or (task.cancelled() and self._state.cancelled):
            self.raise_if_cancelled()
        return task.result()


def create_cancel_token(timeout_ms: int | None = None) -> CancelToken:
    """Create a token with a deadline given in milliseconds."""
    return CancelToken(timeout=timeout_ms / 1000 if timeout_ms is not None else None)
