"""Custom exception and warning hierarchy for llm-cli."""

from __future__ import annotations


class LLMCliError(Exception):
    """Base exception for app-specific failures."""


class ConfigurationError(LLMCliError):
    """Profile/configuration errors. Always fatal, never retried."""


class UnknownProviderError(ConfigurationError):
    """Backend name is not registered."""

    def __init__(self, provider: str):
        super().__init__(f"provider '{provider}' not recognized")
        self.provider = provider


class UnsupportedModelError(ConfigurationError):
    """Backend is known but the requested model is not supported by it."""

    def __init__(self, provider: str, model: str):
        super().__init__(
            f"model '{model}' is not supported by the '{provider}' provider yet"
        )
        self.provider = provider
        self.model = model


class MissingProfileFieldError(ConfigurationError):
    """A profile field required by the selected backend is empty."""

    def __init__(self, provider: str, fields: list[str]):
        joined = ", ".join(fields)
        super().__init__(f"{provider} provider requires profile field(s): {joined}")
        self.provider = provider
        self.fields = list(fields)


class ProfileNotFoundError(ConfigurationError):
    """Named profile does not exist in the profile store."""


class LimitExceededError(LLMCliError):
    """Input or output crossed its byte ceiling under ``stop`` mode."""

    def __init__(self, kind: str, size: int, ceiling: int):
        label = "prompt" if kind == "input" else "response"
        super().__init__(
            f"{label} size ({size} bytes) exceeds max_{label}_size_bytes "
            f"({ceiling} bytes)"
        )
        self.kind = kind
        self.size = size
        self.ceiling = ceiling


class ProviderError(LLMCliError):
    """Network, authentication, or backend-reported failure."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class CancellationError(LLMCliError):
    """The operation was cancelled before it finished."""


class PromptSourceError(LLMCliError):
    """A prompt could not be obtained from its selected source."""


class LLMCliWarning(UserWarning):
    """Base class for non-fatal diagnostics reported on the diagnostic sink."""


class SanitizationWarning(LLMCliWarning):
    """Invalid UTF-8 was replaced with U+FFFD."""


class TruncationWarning(LLMCliWarning):
    """Data was cut to fit a byte ceiling under ``warn`` mode."""
