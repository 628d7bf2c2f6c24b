"""Backend name to provider-factory registration table."""

from __future__ import annotations

import logging

from ..domain.profile import Profile
from ..errors import UnknownProviderError
from ..logging import log_event
from .base import Provider, ProviderFactory
from .bedrock_provider import BedrockProvider
from .mock_provider import MockProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .vertexai_provider import VertexAIProvider


class ProviderRegistry:
    """Maps a backend identifier to a factory bound to a profile.

    Resolution performs no network I/O. Factories only validate that the
    fields their backend needs are present.
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        if not name:
            raise ValueError("provider name must not be empty")
        if name in self._factories:
            raise ValueError(f"provider '{name}' is already registered")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def resolve(self, profile: Profile) -> Provider:
        """Build the provider named by ``profile.provider``.

        Raises:
            UnknownProviderError: The backend name is not registered.
            UnsupportedModelError: The backend does not support the model.
            MissingProfileFieldError: A required profile field is empty.
        """
        factory = self._factories.get(profile.provider)
        if factory is None:
            raise UnknownProviderError(profile.provider)
        provider = factory(profile)
        log_event(
            "provider_resolved",
            level=logging.INFO,
            provider=profile.provider,
            model=profile.model,
        )
        return provider


def build_default_registry() -> ProviderRegistry:
    """Return a registry with every built-in backend registered."""
    registry = ProviderRegistry()
    registry.register("ollama", OllamaProvider)
    registry.register("openai", OpenAIProvider)
    registry.register("vertexai", VertexAIProvider)
    registry.register("bedrock", BedrockProvider.from_profile)
    registry.register("mock", MockProvider)
    return registry
