"""
Error classification for retry decisions.

Maps an arbitrary exception raised by a provider operation to one of two
kinds: retryable (transient) or fatal. The status code set and message
substrings below are part of the public retry contract.
"""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """Retry classification of a provider error."""

    RETRYABLE = "retryable"
    """Rate limit, overload, gateway or network failure."""

    FATAL = "fatal"
    """Anything else; aborts retrying immediately."""


RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({503, 429, 502, 504})

RETRYABLE_MESSAGE_MARKERS: tuple[str, ...] = (
    "overloaded",
    "timeout",
    "network",
    "service unavailable",
    "503",
)


def error_status(error: BaseException) -> int | None:
    """Extract an HTTP-equivalent status from an error.

    Looks at ``status_code`` and ``status`` attributes, then at the response
    of an ``httpx.HTTPStatusError``.

    Args:
        error: The exception

    Returns:
        Integer status or None
    """
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    return None


def error_message(error: BaseException) -> str:
    """Get the message text used for substring matching."""
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an error as retryable or fatal.

    An explicit boolean ``retryable`` attribute (set by the typed
    ``RetryableProviderError``/``FatalProviderError``) wins. Otherwise the
    error is retryable iff its status is one of 503, 429, 502, 504 or its
    lower-cased message contains one of the known transient markers.

    Args:
        error: The exception raised by the operation

    Returns:
        ErrorKind
    """
    explicit = getattr(error, "retryable", None)
    if isinstance(explicit, bool):
        return ErrorKind.RETRYABLE if explicit else ErrorKind.FATAL

    if error_status(error) in RETRYABLE_STATUS_CODES:
        return ErrorKind.RETRYABLE

    text = error_message(error).lower()
    if any(marker in text for marker in RETRYABLE_MESSAGE_MARKERS):
        return ErrorKind.RETRYABLE

    return ErrorKind.FATAL


def is_retryable(error: BaseException) -> bool:
    """Check if an error should be retried."""
    return classify_error(error) == ErrorKind.RETRYABLE
