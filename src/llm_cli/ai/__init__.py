"""LLM backend bindings, the provider registry and the request runtime."""

from .base import Provider, ProviderFactory
from .registry import ProviderRegistry, build_default_registry
from .runtime import resolve_provider, send_prompt

__all__ = [
    "Provider",
    "ProviderFactory",
    "ProviderRegistry",
    "build_default_registry",
    "resolve_provider",
    "send_prompt",
]
