"""Credential loaders for profile-referenced JSON files and the environment."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from .config import resolve_path
from .errors import ConfigurationError


def load_json_credentials(file_path: str) -> dict[str, Any]:
    """Load a JSON credentials file as a dict."""
    path = Path(resolve_path(file_path))

    if not path.exists():
        raise ConfigurationError(f"Credentials file not found: {file_path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {file_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Credentials file {file_path} must hold a JSON object")
    return data


def load_from_json(file_path: str, key_name: str) -> str:
    """Load one string credential from a JSON file (dot notation for nesting)."""
    data = load_json_credentials(file_path)

    value: Any = data
    for part in key_name.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            raise ConfigurationError(
                f"Key '{key_name}' not found in {file_path}\n"
                f"Available keys: {', '.join(data.keys())}"
            )

    if not isinstance(value, str):
        raise ConfigurationError(f"Key '{key_name}' in {file_path} is not a string")

    return value.strip()


def load_from_env(var_name: str) -> Optional[str]:
    """Return a stripped environment value, or None when unset or blank."""
    value = os.environ.get(var_name, "").strip()
    return value or None
