"""Deterministic offline provider that echoes its prompts."""

from __future__ import annotations

import re

from ..domain.profile import Profile
from ..streaming.channel import CancellationToken, HandoffChannel

_WORDS = re.compile(r"\S+\s*|\s+")


class MockProvider:
    """Echo provider for trying the pipeline without a backend."""

    name = "mock"

    def __init__(self, profile: Profile):
        self.profile = profile

    @staticmethod
    def render(system_prompt: str, user_prompt: str) -> str:
        return (
            "\n--- Mock Response ---\n"
            f"System Prompt: {system_prompt}\n"
            f"User Prompt: {user_prompt}\n"
            "---------------------\n"
        )

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        return self.render(system_prompt, user_prompt)

    async def chat_stream(
        self,
        cancel: CancellationToken,
        system_prompt: str,
        user_prompt: str,
        sink: HandoffChannel,
    ) -> None:
        """Stream the echo word by word."""
        try:
            for piece in _WORDS.findall(self.render(system_prompt, user_prompt)):
                cancel.raise_if_cancelled()
                await sink.send(piece)
        finally:
            sink.close()
