"""Domain models for llm-cli."""

from .profile import Limits, Profile

__all__ = ["Limits", "Profile"]
