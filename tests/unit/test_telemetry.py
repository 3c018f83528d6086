"""Tests for telemetry module."""

from __future__ import annotations

import io
import json
import logging

import pytest

from ai_dispatch.providers import ProviderRegistry
from ai_dispatch.resilience import CircuitBreakerConfig
from ai_dispatch.simulation import ManualClock
from ai_dispatch.telemetry import (
    DispatchLogger,
    HealthStatus,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    check_providers,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context,
    set_log_context,
)


class TestLogContext:
    """Tests for LogContext."""

    def test_empty_context(self) -> None:
        """Test empty context."""
        ctx = LogContext()
        assert ctx.to_dict() == {}

    def test_context_with_fields(self) -> None:
        """Test context with fields."""
        ctx = LogContext(dispatch_id="d-1", operation="transcribe", provider="google")
        assert ctx.to_dict() == {
            "dispatch_id": "d-1",
            "operation": "transcribe",
            "provider": "google",
        }

    def test_context_with_extra(self) -> None:
        """Test context with extra fields."""
        ctx = LogContext(dispatch_id="d-1").with_extra(user="u-42")
        assert ctx.to_dict() == {"dispatch_id": "d-1", "user": "u-42"}

    def test_set_and_clear(self) -> None:
        set_log_context(LogContext(request_id="r-1", extra={"tenant": "acme"}))
        try:
            ctx = get_log_context()
            assert ctx.request_id == "r-1"
            assert ctx.extra == {"tenant": "acme"}
        finally:
            clear_log_context()
        assert get_log_context().to_dict() == {}

    def test_log_context_manager_restores(self) -> None:
        set_log_context(LogContext(request_id="outer"))
        try:
            with log_context(LogContext(dispatch_id="inner")):
                assert get_log_context().dispatch_id == "inner"
                assert get_log_context().request_id is None
            assert get_log_context().request_id == "outer"
        finally:
            clear_log_context()


class TestSensitiveDataMasker:
    """Tests for SensitiveDataMasker."""

    def test_mask_openai_key(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask("using sk-abcdefghijklmnopqrstuvwxyz123456")
        assert "abcdefghijklmnop" not in masked
        assert "REDACTED" in masked

    def test_mask_anthropic_key(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask("key sk-ant-REDACTED")
        assert "sk-ant-***REDACTED***" in masked

    def test_mask_google_key(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask("AIzaSyA1234567890abcdefghijklmnop")
        assert masked == "AIza***REDACTED***"

    def test_mask_env_assignment(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask("OPENAI_API_KEY=secretvalue")
        assert "secretvalue" not in masked

    def test_mask_bearer_token(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask("Authorization: Bearer abc.def.ghi")
        assert "abc.def.ghi" not in masked

    def test_mask_dict(self) -> None:
        masker = SensitiveDataMasker()
        masked = masker.mask_dict(
            {
                "provider": "google",
                "api_key": "plain",
                "nested": {"auth_token": "x", "attempt": 2},
            }
        )
        assert masked == {
            "provider": "google",
            "api_key": "***REDACTED***",
            "nested": {"auth_token": "***REDACTED***", "attempt": 2},
        }


class TestFormatters:
    """Tests for JsonFormatter and TextFormatter."""

    def _record(self, msg: str, **fields) -> logging.LogRecord:
        record = logging.LogRecord("ai_dispatch.test", logging.INFO, __file__, 1, msg, None, None)
        if fields:
            record.extra_fields = fields
        return record

    def test_json(self) -> None:
        with log_context(LogContext(dispatch_id="d-1")):
            line = JsonFormatter().format(self._record("hello", provider="google"))

        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["provider"] == "google"
        assert data["context"] == {"dispatch_id": "d-1"}
        assert data["timestamp"].endswith("Z")

    def test_text_appends_fields(self) -> None:
        line = TextFormatter().format(self._record("Bearer secret-token", attempt=2))

        assert "secret-token" not in line
        assert line.endswith("attempt=2")
        assert "| INFO     |" in line


class TestDispatchLogger:
    """Tests for DispatchLogger."""

    def test_get_logger(self) -> None:
        """Test getting a logger."""
        logger = get_logger("ai_dispatch.test.get")
        assert isinstance(logger, DispatchLogger)
        assert logger.name == "ai_dispatch.test.get"

    def test_level_filtering(self, log_stream: io.StringIO) -> None:
        logger = get_logger("ai_dispatch.test.level")
        DispatchLogger.configure(level=LogLevel.WARNING, format="json", stream=log_stream)

        logger.info("dropped")
        logger.warning("kept", provider="openai")

        lines = log_stream.getvalue().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["provider"] == "openai"

    def test_configure_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        stream = io.StringIO()
        monkeypatch.setenv("AI_DISPATCH_LOG_LEVEL", "debug")
        monkeypatch.setenv("AI_DISPATCH_LOG_FORMAT", "json")
        logger = get_logger("ai_dispatch.test.env")
        try:
            DispatchLogger.configure_from_env(stream=stream)
            logger.debug("visible")
        finally:
            DispatchLogger.configure(level=LogLevel.INFO, format="text")

        assert json.loads(stream.getvalue())["message"] == "visible"

    def test_configure_from_env_bad_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        stream = io.StringIO()
        monkeypatch.setenv("AI_DISPATCH_LOG_LEVEL", "chatty")
        monkeypatch.delenv("AI_DISPATCH_LOG_FORMAT", raising=False)
        logger = get_logger("ai_dispatch.test.env_bad")
        try:
            DispatchLogger.configure_from_env(stream=stream)
            logger.debug("hidden")
            logger.info("shown")
        finally:
            DispatchLogger.configure(level=LogLevel.INFO, format="text")

        output = stream.getvalue()
        assert "hidden" not in output
        assert "shown" in output

    def test_exception_logging(self, log_stream: io.StringIO) -> None:
        logger = get_logger("ai_dispatch.test.exc")
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            logger.exception("operation crashed")

        data = json.loads(log_stream.getvalue())
        assert data["level"] == "ERROR"
        assert "kaboom" in data["exception"]


class TestCheckProviders:
    """Tests for provider health reporting."""

    @pytest.fixture
    def registry(self, config_factory, clock: ManualClock) -> ProviderRegistry:
        breaker = CircuitBreakerConfig(failure_threshold=1, timeout_ms=60000)
        return ProviderRegistry(
            [
                config_factory("google", priority=1, breaker=breaker),
                config_factory("anthropic", priority=2, breaker=breaker),
                config_factory("openai", priority=3, enabled=False),
            ],
            clock=clock,
        )

    def test_all_healthy(self, registry: ProviderRegistry) -> None:
        health = check_providers(registry)

        assert health.status == HealthStatus.HEALTHY
        assert health.is_healthy
        assert health.get("google").status == HealthStatus.HEALTHY
        assert health.get("openai").status == HealthStatus.UNKNOWN

    def test_one_open_is_degraded(self, registry: ProviderRegistry) -> None:
        registry.breaker("google").on_failure()

        health = check_providers(registry)

        assert health.status == HealthStatus.DEGRADED
        assert health.get("google").status == HealthStatus.UNHEALTHY
        assert health.get("google").details["failure_count"] == 1

    def test_all_open_is_unhealthy(self, registry: ProviderRegistry) -> None:
        registry.breaker("google").on_failure()
        registry.breaker("anthropic").on_failure()

        assert check_providers(registry).status == HealthStatus.UNHEALTHY

    def test_cooldown_elapsed_is_degraded(
        self, registry: ProviderRegistry, clock: ManualClock
    ) -> None:
        registry.breaker("google").on_failure()
        clock.advance(61)

        health = check_providers(registry)

        assert health.get("google").status == HealthStatus.DEGRADED
        assert registry.breaker("google").state.value == "open"

    def test_half_open_is_degraded(
        self, registry: ProviderRegistry, clock: ManualClock
    ) -> None:
        registry.breaker("google").on_failure()
        clock.advance(61)
        registry.breaker("google").can_execute()

        assert check_providers(registry).get("google").status == HealthStatus.DEGRADED

    def test_no_enabled_providers(self, config_factory) -> None:
        registry = ProviderRegistry([config_factory("google", enabled=False)])

        health = check_providers(registry)

        assert health.status == HealthStatus.UNHEALTHY
        assert health.message == "no providers configured"

    def test_to_dict(self, registry: ProviderRegistry) -> None:
        data = check_providers(registry).to_dict()

        assert data["status"] == "healthy"
        assert [c["name"] for c in data["checks"]] == ["google", "anthropic", "openai"]
        assert json.dumps(data)
