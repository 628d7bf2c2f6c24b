"""Structured plaintext log formatter.

Every record becomes one ``=== event ===`` block of ``key: value`` lines.
Records emitted through :func:`llm_cli.logging.log_event` carry a JSON payload
and are unpacked field by field; a few well-known third-party records (httpx
request lines, captured Python warnings) are decoded into named events; all
other records fall back to ``logger`` / ``message`` pairs.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..time_utils import utc_now_iso
from .sanitization import sanitize_error_message
from .schema import DEFAULT_EVENT_KEY_ORDER, EVENT_KEY_ORDER

_HTTPX_REQUEST_FORMAT = 'HTTP Request: %s %s "%s %d %s"'


def _decode_json_payload(message: str) -> Optional[dict[str, Any]]:
    if not (message.startswith("{") and message.endswith("}")):
        return None
    try:
        payload = json.loads(message)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _decode_httpx_request(record: logging.LogRecord) -> Optional[dict[str, Any]]:
    if record.name != "httpx" or str(record.msg) != _HTTPX_REQUEST_FORMAT:
        return None
    if not isinstance(record.args, tuple) or len(record.args) != 5:
        return None
    method, url, version, status, reason = record.args
    return {
        "event": "httpx_request",
        "http_method": str(method),
        "http_url": str(url),
        "http_version": str(version),
        "http_status": status if isinstance(status, int) else str(status),
        "http_reason": str(reason),
    }


def _decode_captured_warning(record: logging.LogRecord) -> Optional[dict[str, Any]]:
    if record.name != "py.warnings":
        return None
    return {"event": "python_warning", "message": record.getMessage().strip()}


class StructuredTextFormatter(logging.Formatter):
    """Format all log records as human-readable structured blocks."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._entries_written = 0

    @staticmethod
    def _format_value(value: Any) -> str:
        text = value if isinstance(value, str) else str(value)
        return sanitize_error_message(text).replace("\n", "\\n")

    @staticmethod
    def _ordered_keys(event_name: str, data: dict[str, Any]) -> list[str]:
        present = {k for k, v in data.items() if v is not None}
        preferred = [
            k for k in EVENT_KEY_ORDER.get(event_name, DEFAULT_EVENT_KEY_ORDER)
            if k in present
        ]
        return preferred + sorted(present.difference(preferred))

    def _record_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "ts_utc": utc_now_iso(),
            "level": record.levelname,
            "logger": record.name,
        }
        message = record.getMessage()
        decoded = (
            _decode_json_payload(message)
            or _decode_httpx_request(record)
            or _decode_captured_warning(record)
        )
        if decoded is None:
            decoded = {"event": record.name, "message": message}
        fields.update(decoded)
        return fields

    def format(self, record: logging.LogRecord) -> str:
        fields = self._record_fields(record)
        event_name = str(fields.pop("event", record.name))

        lines = [f"=== {event_name} ==="]
        lines.extend(
            f"{key}: {self._format_value(fields[key])}"
            for key in self._ordered_keys(event_name, fields)
        )
        if record.exc_info:
            lines.append("traceback:")
            lines.append(self.formatException(record.exc_info))

        block = "\n".join(lines)
        self._entries_written += 1
        # Separate consecutive entries with one blank line.
        return block if self._entries_written == 1 else "\n" + block
