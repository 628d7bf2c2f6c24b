"""Structured logging primitives for llm-cli."""

from .events import (
    build_run_log_path,
    extract_http_error_context,
    log_event,
    setup_logging,
)
from .formatter import StructuredTextFormatter
from .sanitization import sanitize_error_message
from .schema import DEFAULT_EVENT_KEY_ORDER, EVENT_KEY_ORDER, LOG_PATH_FIELDS

__all__ = [
    "DEFAULT_EVENT_KEY_ORDER",
    "EVENT_KEY_ORDER",
    "LOG_PATH_FIELDS",
    "StructuredTextFormatter",
    "build_run_log_path",
    "extract_http_error_context",
    "log_event",
    "sanitize_error_message",
    "setup_logging",
]
