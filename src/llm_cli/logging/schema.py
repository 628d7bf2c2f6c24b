"""Preferred key order per structured log event."""

LOG_PATH_FIELDS = frozenset(
    {
        "config_file",
        "log_file",
        "prompt_file",
        "credentials_file",
    }
)

DEFAULT_EVENT_KEY_ORDER: list[str] = ["ts", "ts_utc", "level", "logger"]

EVENT_KEY_ORDER: dict[str, list[str]] = {
    "app_start": [
        "ts",
        "level",
        "command",
        "profile",
        "provider",
        "model",
        "config_file",
        "log_file",
    ],
    "app_stop": [
        "ts",
        "level",
        "reason",
        "uptime_ms",
        "error_type",
        "error",
    ],
    "prompt_resolved": [
        "ts",
        "level",
        "role",
        "source",
        "prompt_file",
        "bytes",
        "truncated",
        "replacements",
    ],
    "provider_resolved": ["ts", "level", "provider", "model"],
    "ai_request": [
        "ts",
        "level",
        "provider",
        "model",
        "stream",
        "system_bytes",
        "user_bytes",
    ],
    "ai_response": [
        "ts",
        "level",
        "provider",
        "model",
        "stream",
        "outcome",
        "latency_ms",
        "output_bytes",
    ],
    "ai_error": [
        "ts",
        "level",
        "provider",
        "model",
        "stream",
        "latency_ms",
        "error_type",
        "error",
    ],
    "stream_end": [
        "ts",
        "level",
        "outcome",
        "tokens",
        "output_bytes",
        "latency_ms",
        "error_type",
        "error",
    ],
    "limit_exceeded": ["ts", "level", "kind", "mode", "size", "ceiling"],
    "diagnostic_warning": ["ts", "level", "category", "message"],
    "provider_log": ["ts", "level", "provider", "message"],
    "config_saved": ["ts", "level", "config_file", "current_profile"],
}
