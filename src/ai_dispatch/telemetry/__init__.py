"""
Telemetry module for ai-dispatch.

Provides structured logging and provider health reporting.
"""

from ai_dispatch.telemetry.health import (
    AggregatedHealth,
    HealthCheckResult,
    HealthStatus,
    check_providers,
)
from ai_dispatch.telemetry.logger import (
    DispatchLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context,
    set_log_context,
)

__all__ = [
    # Health
    "AggregatedHealth",
    # Logger
    "DispatchLogger",
    "HealthCheckResult",
    "HealthStatus",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "TextFormatter",
    "check_providers",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "log_context",
    "set_log_context",
]
