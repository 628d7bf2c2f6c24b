"""Base interface for LLM backends.

Every backend binding implements this Protocol and is selected through the
provider registry, never by branching on the backend name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from ..domain.profile import Profile
    from ..streaming.channel import CancellationToken, HandoffChannel


class Provider(Protocol):
    """Protocol for backend implementations."""

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        """Perform one request/response exchange.

        Args:
            system_prompt: System prompt, may be empty
            user_prompt: User prompt

        Returns:
            The complete response text. Partial text is never returned.

        Raises:
            ProviderError: Network, authentication, or backend-reported failure
        """
        ...

    async def chat_stream(
        self,
        cancel: CancellationToken,
        system_prompt: str,
        user_prompt: str,
        sink: HandoffChannel,
    ) -> None:
        """Stream one response into ``sink``.

        Implementations push each token with ``await sink.send(token)``, stop
        once ``cancel`` is observed, close ``sink`` exactly once on every exit
        path, and raise their terminal error instead of returning it.
        """
        ...


ProviderFactory = Callable[["Profile"], Provider]
