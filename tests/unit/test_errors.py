"""Tests for error hierarchy and retry classification."""

from __future__ import annotations

import httpx
import pytest

from ai_dispatch.errors import (
    AiDispatchError,
    AllProvidersExhaustedError,
    ConfigurationError,
    DispatchCancelledError,
    ErrorContext,
    ErrorKind,
    FatalProviderError,
    NoProvidersConfiguredError,
    ProviderError,
    RetryableProviderError,
    classify_error,
    error_status,
    is_retryable,
)


class StatusError(Exception):
    """Third-party style error exposing a numeric status."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


def http_status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1/generate")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(
        f"Server returned {status_code}", request=request, response=response
    )


class TestClassifyError:
    """Tests for classify_error."""

    @pytest.mark.parametrize("status", [429, 502, 503, 504])
    def test_retryable_status(self, status: int) -> None:
        assert classify_error(ProviderError("boom", status_code=status)) == ErrorKind.RETRYABLE

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 500])
    def test_fatal_status(self, status: int) -> None:
        assert classify_error(ProviderError("boom", status_code=status)) == ErrorKind.FATAL

    def test_status_attribute(self) -> None:
        assert is_retryable(StatusError("slow down", status=429))
        assert not is_retryable(StatusError("bad request", status=400))

    @pytest.mark.parametrize(
        "message",
        [
            "The model is Overloaded",
            "Request TIMEOUT after 30s",
            "network unreachable",
            "Service Unavailable",
            "upstream returned 503",
        ],
    )
    def test_retryable_message(self, message: str) -> None:
        assert classify_error(RuntimeError(message)) == ErrorKind.RETRYABLE

    def test_unmatched_message_is_fatal(self) -> None:
        assert classify_error(ValueError("invalid prompt")) == ErrorKind.FATAL

    def test_httpx_status_error(self) -> None:
        assert is_retryable(http_status_error(502))
        assert not is_retryable(http_status_error(422))
        assert error_status(http_status_error(429)) == 429

    def test_typed_kinds_win(self) -> None:
        assert is_retryable(RetryableProviderError("quota", status_code=400))
        assert not is_retryable(FatalProviderError("overloaded", status_code=503))

    def test_bool_status_ignored(self) -> None:
        error = StatusError("bad", status=400)
        error.status = True
        assert error_status(error) is None


class TestErrorHierarchy:
    """Tests for the error classes."""

    def test_all_derive_from_base(self) -> None:
        for cls in (
            ProviderError,
            ConfigurationError,
            NoProvidersConfiguredError,
            AllProvidersExhaustedError,
            DispatchCancelledError,
        ):
            assert issubclass(cls, AiDispatchError)

    def test_context_in_message(self) -> None:
        error = AiDispatchError("boom", ErrorContext(source="dispatch", hint="retry later"))
        assert str(error) == "boom [dispatch] (hint: retry later)"

    def test_with_hint(self) -> None:
        error = ConfigurationError("bad value", key="X").with_hint("use an integer")
        assert error.context.hint == "use an integer"
        assert error.context.details == {"key": "X"}

    def test_provider_error_details(self) -> None:
        error = ProviderError("rate limited", status_code=429, provider="google")

        assert error.status_code == 429
        assert error.provider == "google"
        assert error.context.details == {"status_code": 429, "provider": "google"}

    def test_no_providers_user_message(self) -> None:
        error = NoProvidersConfiguredError()
        assert "not configured" in error.user_message

    def test_cancelled(self) -> None:
        failure = RuntimeError("network down")
        error = DispatchCancelledError("timeout", {"google": failure})

        assert error.reason == "timeout"
        assert error.errors == {"google": failure}
        assert "timeout" in str(error)


class TestAllProvidersExhaustedError:
    """Tests for AllProvidersExhaustedError."""

    def test_attributes(self) -> None:
        first = RuntimeError("first")
        last = RuntimeError("last")
        error = AllProvidersExhaustedError({"google": first, "anthropic": last}, ["openai"])

        assert error.last_error is last
        assert error.__cause__ is last
        assert error.skipped == ["openai"]
        assert "google, anthropic" in str(error)
        assert "skipped: openai" in str(error)

    def test_all_skipped(self) -> None:
        error = AllProvidersExhaustedError({}, ["google", "anthropic"])

        assert error.last_error is None
        assert "temporarily unavailable" in error.user_message

    def test_user_message_overloaded(self) -> None:
        error = AllProvidersExhaustedError({"google": RuntimeError("Model is overloaded")})
        assert "overloaded" in error.user_message

    def test_user_message_rate_limited(self) -> None:
        error = AllProvidersExhaustedError({"google": http_status_error(429)})
        assert "Too many requests" in error.user_message

    def test_user_message_network(self) -> None:
        error = AllProvidersExhaustedError({"google": RuntimeError("network unreachable")})
        assert "Network connection" in error.user_message

    def test_user_message_generic(self) -> None:
        error = AllProvidersExhaustedError(
            {"google": ValueError("bad prompt"), "openai": ValueError("bad prompt")}
        )
        assert "google, openai" in error.user_message
