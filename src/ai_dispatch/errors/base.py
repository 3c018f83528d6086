"""错误基类：提供分层错误体系和结构化错误上下文。

Base error classes for ai-dispatch.

Provides a layered error hierarchy:
- AiDispatchError: Base class for all library errors
- ProviderError: Errors raised by provider operations
- ConfigurationError: Invalid provider or dispatch configuration
- NoProvidersConfiguredError: Every provider is disabled
- AllProvidersExhaustedError: Every enabled provider was skipped or failed
- DispatchCancelledError: Dispatch aborted by a cancel token or deadline
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ai_dispatch.errors.classification import error_status

if TYPE_CHECKING:
    from ai_dispatch.resilience.retry import DispatchAttempt


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'provider', 'config', 'dispatch')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class AiDispatchError(Exception):
    """Base class for all ai-dispatch errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> AiDispatchError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ProviderError(AiDispatchError):
    """Error raised by an AI provider operation.

    Operations may raise any exception; this class is a convenience for
    adapters that want to attach an HTTP-equivalent status.

    Attributes:
        status_code: HTTP-equivalent status, if known
        provider: Provider id the error came from
        retryable: Explicit kind, or None to let classification decide
    """

    retryable: bool | None = None

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="provider")
        if status_code is not None:
            ctx.details["status_code"] = status_code
        if provider:
            ctx.details["provider"] = provider
        super().__init__(message, ctx)
        self.status_code = status_code
        self.provider = provider


class RetryableProviderError(ProviderError):
    """Transient provider failure (rate limit, overload, network)."""

    retryable = True


class FatalProviderError(ProviderError):
    """Provider failure that must not be retried."""

    retryable = False


class ConfigurationError(AiDispatchError):
    """Invalid provider table, YAML file or environment override."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        ctx = ErrorContext(source="config")
        if key:
            ctx.details["key"] = key
        super().__init__(message, ctx)
        self.key = key


class NoProvidersConfiguredError(AiDispatchError):
    """Raised when no provider is enabled, before any attempt is made."""

    def __init__(self, message: str = "No AI providers are enabled or configured") -> None:
        super().__init__(
            message,
            ErrorContext(
                source="dispatch",
                hint="set a provider API key in the environment",
            ),
        )

    @property
    def user_message(self) -> str:
        return "AI features are not configured on this server. Please contact support."


class AllProvidersExhaustedError(AiDispatchError):
    """Raised when every enabled provider was skipped or failed.

    Attributes:
        errors: Provider id to the error that ended its turn
        skipped: Provider ids bypassed because their circuit was open
        attempts: Every attempt made during the dispatch
    """

    def __init__(
        self,
        errors: dict[str, Exception],
        skipped: list[str] | None = None,
        attempts: list[DispatchAttempt] | None = None,
    ) -> None:
        self.errors = dict(errors)
        self.skipped = list(skipped or [])
        self.attempts = list(attempts or [])

        failed = ", ".join(self.errors) or "none"
        message = f"All AI providers exhausted (failed: {failed}"
        if self.skipped:
            message += f"; skipped: {', '.join(self.skipped)}"
        message += ")"

        ctx = ErrorContext(source="dispatch")
        ctx.details["failed"] = list(self.errors)
        ctx.details["skipped"] = self.skipped
        super().__init__(message, ctx)
        self.__cause__ = self.last_error

    @property
    def last_error(self) -> Exception | None:
        """The error from the last provider that was attempted."""
        if not self.errors:
            return None
        return list(self.errors.values())[-1]

    @property
    def user_message(self) -> str:
        """Single user-facing explanation of the failure."""
        last = self.last_error
        if last is None:
            return (
                "AI services are temporarily unavailable after repeated failures. "
                "Please try again in a few minutes."
            )

        text = str(last).lower()
        if "overloaded" in text:
            return (
                "AI services are currently overloaded. "
                "Please try again in a few minutes."
            )
        if error_status(last) == 429 or "429" in text or "too many requests" in text:
            return "Too many requests. Please wait a moment before trying again."
        if "network" in text or "timeout" in text:
            return (
                "Network connection issue. "
                "Please check your internet connection and try again."
            )
        return (
            f"The request failed with all available providers ({', '.join(self.errors)}). "
            "Please try again later or contact support."
        )


class DispatchCancelledError(AiDispatchError):
    """Raised when a dispatch is cancelled or its deadline passes.

    Attributes:
        reason: Cancellation reason value
        errors: Provider errors collected before cancellation
    """

    def __init__(
        self,
        reason: str,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        ctx = ErrorContext(source="dispatch")
        ctx.details["reason"] = reason
        super().__init__(f"Dispatch cancelled: {reason}", ctx)
        self.reason = reason
        self.errors = dict(errors or {})
