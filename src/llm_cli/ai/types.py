"""Shared typed contracts for provider message exchange."""

from __future__ import annotations

from typing import Literal, TypedDict


class Message(TypedDict):
    """One chat message sent to a backend."""

    role: Literal["system", "user"]
    content: str
