"""Profile store: load, mutate, and save ``config.json``.

The file holds ``{"current_profile": name, "profiles": {name: profile}}``.
A missing file yields the built-in default configuration; nothing is written
until a command mutates the store.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .constants import (
    CONFIG_DIR,
    CONFIG_DIR_MODE,
    CONFIG_FILE_MODE,
    CONFIG_FILE_NAME,
    DEFAULT_MODEL,
    DEFAULT_PROFILE_NAME,
    DEFAULT_PROVIDER,
)
from .domain.profile import Limits, Profile
from .errors import ConfigurationError, ProfileNotFoundError
from .logging import log_event


def resolve_path(path: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    if path == "~" or path.startswith("~/") or path.startswith("~\\"):
        return str(Path(path).expanduser())
    return path


def get_config_path(override: Optional[str] = None) -> Path:
    """Return the config file path, honoring an explicit override."""
    if override:
        return Path(resolve_path(override))
    return Path(resolve_path(CONFIG_DIR)) / CONFIG_FILE_NAME


def default_profile() -> Profile:
    return Profile(
        provider=DEFAULT_PROVIDER,
        model=DEFAULT_MODEL,
        limits=Limits.standard(),
    )


@dataclass(slots=True)
class Config:
    """In-memory profile store."""

    current_profile: str = DEFAULT_PROFILE_NAME
    profiles: dict[str, Profile] = field(
        default_factory=lambda: {DEFAULT_PROFILE_NAME: default_profile()}
    )

    @classmethod
    def from_dict(cls, raw: Any) -> Config:
        if not isinstance(raw, dict):
            raise ConfigurationError("Config must be a JSON object")

        raw_profiles = raw.get("profiles") or {}
        if not isinstance(raw_profiles, dict):
            raise ConfigurationError("'profiles' must be a JSON object")

        profiles: dict[str, Profile] = {}
        for name, raw_profile in raw_profiles.items():
            try:
                profiles[str(name)] = Profile.from_dict(raw_profile)
            except ConfigurationError as e:
                raise ConfigurationError(f"profile '{name}': {e}") from e

        if DEFAULT_PROFILE_NAME not in profiles:
            profiles[DEFAULT_PROFILE_NAME] = default_profile()

        current = str(raw.get("current_profile") or DEFAULT_PROFILE_NAME)
        if current not in profiles:
            raise ProfileNotFoundError(f"current profile '{current}' not found")

        return cls(current_profile=current, profiles=profiles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_profile": self.current_profile,
            "profiles": {
                name: profile.to_dict() for name, profile in self.profiles.items()
            },
        }

    def get_profile(self, name: Optional[str] = None) -> Profile:
        """Return the named profile, or the active one when ``name`` is empty."""
        key = name or self.current_profile
        try:
            return self.profiles[key]
        except KeyError:
            raise ProfileNotFoundError(f"profile '{key}' not found") from None

    def use(self, name: str) -> None:
        self.get_profile(name)
        self.current_profile = name

    def add(self, name: str) -> Profile:
        """Create ``name`` as a copy of the default profile."""
        if name in self.profiles:
            raise ConfigurationError(f"profile '{name}' already exists")
        profile = self.profiles.get(DEFAULT_PROFILE_NAME) or default_profile()
        self.profiles[name] = profile
        return profile

    def remove(self, name: str) -> None:
        if name == DEFAULT_PROFILE_NAME:
            raise ConfigurationError("cannot remove the default profile")
        if name == self.current_profile:
            raise ConfigurationError(
                f"cannot remove the active profile '{name}'; switch to another first"
            )
        if name not in self.profiles:
            raise ProfileNotFoundError(f"profile '{name}' not found")
        del self.profiles[name]

    def set_value(self, key: str, value: str, name: Optional[str] = None) -> Profile:
        """Set one profile key from its command-line string form."""
        profile_name = name or self.current_profile
        profile = self.get_profile(profile_name)
        updated = apply_profile_setting(profile, key, value)
        self.profiles[profile_name] = updated
        return updated


_PROFILE_STRING_KEYS = (
    "provider",
    "model",
    "endpoint",
    "api_key",
    "aws_region",
    "aws_access_key_id",
    "aws_secret_access_key",
    "project_id",
    "location",
    "credentials_file",
)

_LIMIT_INT_KEYS = ("max_prompt_size_bytes", "max_response_size_bytes")
_LIMIT_MODE_KEYS = ("on_input_exceeded", "on_output_exceeded")

SETTABLE_KEYS = (
    *_PROFILE_STRING_KEYS,
    "timeout",
    "limits.enabled",
    *(f"limits.{k}" for k in _LIMIT_MODE_KEYS),
    *(f"limits.{k}" for k in _LIMIT_INT_KEYS),
)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ConfigurationError(f"invalid boolean value '{value}'")


def _parse_int(key: str, value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigurationError(f"'{key}' must be an integer (got '{value}')") from None
    if parsed < 0:
        raise ConfigurationError(f"'{key}' must not be negative")
    return parsed


def apply_profile_setting(profile: Profile, key: str, value: str) -> Profile:
    """Return a copy of ``profile`` with ``key`` set from a string value."""
    if key in _PROFILE_STRING_KEYS:
        return profile.replace(**{key: value})

    if key == "timeout":
        return profile.replace(timeout=_parse_int(key, value))

    if key.startswith("limits."):
        limit_key = key[len("limits."):]
        limits = profile.limits
        if limit_key == "enabled":
            limits = limits.replace(enabled=_parse_bool(value))
        elif limit_key in _LIMIT_MODE_KEYS:
            try:
                limits = limits.with_overrides(**{limit_key: value})
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        elif limit_key in _LIMIT_INT_KEYS:
            limits = limits.replace(**{limit_key: _parse_int(key, value)})
        else:
            raise ConfigurationError(f"unknown setting '{key}'")
        limits.validate()
        return profile.replace(limits=limits)

    raise ConfigurationError(
        f"unknown setting '{key}' (valid keys: {', '.join(SETTABLE_KEYS)})"
    )


def load_config(path: Path) -> Config:
    """Load the profile store, returning defaults when the file is missing."""
    if not path.exists():
        return Config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e

    return Config.from_dict(raw)


def save_config(config: Config, path: Path) -> None:
    """Write the profile store with owner-only permissions."""
    path.parent.mkdir(mode=CONFIG_DIR_MODE, parents=True, exist_ok=True)
    payload = json.dumps(config.to_dict(), indent=2, ensure_ascii=False) + "\n"

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload)
    os.chmod(path, CONFIG_FILE_MODE)

    log_event(
        "config_saved",
        level=logging.INFO,
        config_file=str(path),
        current_profile=config.current_profile,
    )
