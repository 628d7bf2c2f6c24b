"""Shared helpers for provider implementations."""

from __future__ import annotations

from ..domain.profile import Profile
from ..errors import MissingProfileFieldError
from .types import Message


def build_messages(system_prompt: str, user_prompt: str) -> list[Message]:
    """Build the role/content payload, omitting an empty system prompt."""
    messages: list[Message] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return messages


def require_profile_fields(provider: str, profile: Profile, *fields: str) -> None:
    """Raise MissingProfileFieldError listing every empty required field."""
    missing = [name for name in fields if not str(getattr(profile, name, "") or "").strip()]
    if missing:
        raise MissingProfileFieldError(provider, missing)
