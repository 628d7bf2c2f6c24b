"""Shared provider log-message helpers."""

from __future__ import annotations

import logging

from ..logging import log_event


def log_provider_error(provider: str, message: str) -> None:
    """Emit a standardized provider error log event."""
    log_event(
        "provider_log",
        level=logging.ERROR,
        provider=provider,
        message=message,
    )


def log_provider_info(provider: str, message: str) -> None:
    log_event(
        "provider_log",
        level=logging.INFO,
        provider=provider,
        message=message,
    )


def authentication_failed_message(error: Exception) -> str:
    """Build the standard authentication-failure message."""
    return f"Authentication failed: {error}"


def bad_request_message(error: Exception, *, detail: str | None = None) -> str:
    """Build provider bad-request message with optional detail hint."""
    if detail:
        return f"Bad request ({detail}): {error}"
    return f"Bad request: {error}"


def status_error_message(status_code: object, error: object) -> str:
    return f"API request failed with status {status_code}: {error}"


def connection_error_message(error: Exception) -> str:
    return f"Connection failed: {type(error).__name__}: {error}"


def timeout_message(error: Exception) -> str:
    return f"Request timed out: {error}"


def unexpected_error_message(error: Exception) -> str:
    """Build standardized unexpected-error message."""
    return f"Unexpected error: {type(error).__name__}: {error}"
