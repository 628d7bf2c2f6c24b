"""Typed profile and limits models used at profile I/O boundaries."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..constants import (
    DEFAULT_MAX_PROMPT_SIZE_BYTES,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    LIMIT_MODE_STOP,
)
from ..errors import ConfigurationError
from ..limits import validate_mode


DEFAULT_TIMEOUT_SEC = 300

# Credential-ish fields are passed through to backends and never inspected
# by the prompt/response pipeline.
_STRING_FIELDS = (
    "endpoint",
    "api_key",
    "aws_region",
    "aws_access_key_id",
    "aws_secret_access_key",
    "project_id",
    "location",
    "credentials_file",
)

SECRET_FIELDS = frozenset({"api_key", "aws_secret_access_key"})


def _int_field(raw: Mapping[str, Any], key: str) -> int:
    value = raw.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"'limits.{key}' must be an integer")
    return value


@dataclass(frozen=True, slots=True)
class Limits:
    """Enable flag, stop/warn modes, and byte ceilings for prompt and response."""

    enabled: bool = False
    on_input_exceeded: str = ""
    on_output_exceeded: str = ""
    max_prompt_size_bytes: int = 0
    max_response_size_bytes: int = 0

    @classmethod
    def standard(cls) -> Limits:
        """Return the documented default limits."""
        return cls(
            enabled=True,
            on_input_exceeded=LIMIT_MODE_STOP,
            on_output_exceeded=LIMIT_MODE_STOP,
            max_prompt_size_bytes=DEFAULT_MAX_PROMPT_SIZE_BYTES,
            max_response_size_bytes=DEFAULT_MAX_RESPONSE_SIZE_BYTES,
        )

    def is_unset(self) -> bool:
        return self == Limits()

    def replace(self, **changes: Any) -> Limits:
        return dataclasses.replace(self, **changes)

    def with_overrides(
        self,
        *,
        on_input_exceeded: str | None = None,
        on_output_exceeded: str | None = None,
    ) -> Limits:
        """Return a copy with per-invocation mode overrides applied."""
        changes: dict[str, str] = {}
        if on_input_exceeded:
            changes["on_input_exceeded"] = validate_mode(on_input_exceeded)
        if on_output_exceeded:
            changes["on_output_exceeded"] = validate_mode(on_output_exceeded)
        return dataclasses.replace(self, **changes) if changes else self

    def validate(self) -> None:
        """Check that enabled limits carry valid modes and positive ceilings."""
        if not self.enabled:
            return
        try:
            validate_mode(self.on_input_exceeded)
            validate_mode(self.on_output_exceeded)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.max_prompt_size_bytes <= 0 or self.max_response_size_bytes <= 0:
            raise ConfigurationError(
                "max_prompt_size_bytes and max_response_size_bytes must be positive "
                "when limits are enabled"
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> Limits:
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ConfigurationError("'limits' must be a dictionary")
        enabled = raw.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ConfigurationError("'limits.enabled' must be a boolean")
        return cls(
            enabled=enabled,
            on_input_exceeded=str(raw.get("on_input_exceeded") or ""),
            on_output_exceeded=str(raw.get("on_output_exceeded") or ""),
            max_prompt_size_bytes=_int_field(raw, "max_prompt_size_bytes"),
            max_response_size_bytes=_int_field(raw, "max_response_size_bytes"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"enabled": self.enabled}
        if self.on_input_exceeded:
            data["on_input_exceeded"] = self.on_input_exceeded
        if self.on_output_exceeded:
            data["on_output_exceeded"] = self.on_output_exceeded
        if self.max_prompt_size_bytes:
            data["max_prompt_size_bytes"] = self.max_prompt_size_bytes
        if self.max_response_size_bytes:
            data["max_response_size_bytes"] = self.max_response_size_bytes
        return data


@dataclass(frozen=True, slots=True)
class Profile:
    """Backend identity, model, endpoint, credentials, and limits."""

    provider: str
    model: str
    endpoint: str = ""
    api_key: str = ""
    aws_region: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    project_id: str = ""
    location: str = ""
    credentials_file: str = ""
    timeout: int | float = DEFAULT_TIMEOUT_SEC
    limits: Limits = field(default_factory=Limits.standard)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Profile:
        """Create a typed profile from raw mapped profile data."""
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Profile must be a dictionary-like mapping")

        timeout = raw.get("timeout", DEFAULT_TIMEOUT_SEC)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigurationError("'timeout' must be a number")

        limits = Limits.from_dict(raw.get("limits"))
        if limits.is_unset():
            limits = Limits.standard()
        limits.validate()

        strings = {key: str(raw.get(key) or "") for key in _STRING_FIELDS}
        return cls(
            provider=str(raw.get("provider") or ""),
            model=str(raw.get("model") or ""),
            timeout=timeout,
            limits=limits,
            **strings,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize profile to the stored dict shape, omitting empty fields."""
        data: dict[str, Any] = {"provider": self.provider, "model": self.model}
        for key in _STRING_FIELDS:
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.timeout != DEFAULT_TIMEOUT_SEC:
            data["timeout"] = self.timeout
        data["limits"] = self.limits.to_dict()
        return data

    def replace(self, **changes: Any) -> Profile:
        return dataclasses.replace(self, **changes)
