"""OpenAI-compatible provider implementation.

Uses the Chat Completions API through the ``openai`` SDK, so it works with
api.openai.com and with local servers exposing the same API (LM Studio,
vLLM, llama.cpp server, ...).

The profile model may be a comma-separated priority list. ``auto`` selects
the first model the server lists under ``/v1/models``; a named candidate is
used when the server lists it. When the listing cannot be fetched, the first
concrete candidate is used as-is.
"""

from __future__ import annotations

from typing import Any, Optional

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
)

from ..credentials import load_from_env, load_from_json
from ..domain.profile import Profile
from ..errors import LLMCliError, ProviderError
from ..streaming.channel import CancellationToken, HandoffChannel
from .provider_logging import (
    authentication_failed_message,
    bad_request_message,
    connection_error_message,
    log_provider_error,
    log_provider_info,
    status_error_message,
    timeout_message,
    unexpected_error_message,
)
from .provider_utils import build_messages, require_profile_fields
from .timeouts import build_ai_httpx_timeout

AUTO_MODEL = "auto"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
CREDENTIALS_KEY_NAME = "openai_api_key"

# Local OpenAI-compatible servers accept any key; the SDK requires one.
_PLACEHOLDER_API_KEY = "not-needed"


def normalize_base_url(endpoint: str) -> Optional[str]:
    """Turn a configured endpoint into an SDK ``base_url`` ending in ``/v1``.

    Accepts a full ``.../v1/chat/completions`` URL, a ``.../v1`` URL, or a
    bare server URL. Returns None for an empty endpoint (SDK default).
    """
    base = endpoint.strip().rstrip("/")
    if not base:
        return None
    for suffix in ("/chat/completions", "/v1"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return f"{base}/v1"


def parse_model_priority(setting: str) -> list[str]:
    return [part.strip() for part in setting.split(",") if part.strip()]


def resolve_api_key(profile: Profile) -> str:
    """API key from the profile, then a credentials file, then the environment."""
    if profile.api_key:
        return profile.api_key
    if profile.credentials_file:
        return load_from_json(profile.credentials_file, CREDENTIALS_KEY_NAME)
    return load_from_env(OPENAI_API_KEY_ENV) or _PLACEHOLDER_API_KEY


class OpenAIProvider:
    """OpenAI-compatible Chat Completions provider."""

    name = "openai"

    def __init__(self, profile: Profile):
        """Initialize OpenAI provider.

        Args:
            profile: Profile carrying model, endpoint, credentials and timeout
        """
        require_profile_fields(self.name, profile, "model")
        self.profile = profile
        self.candidates = parse_model_priority(profile.model)
        self._resolved_model: Optional[str] = None

        # No SDK retries: failures surface immediately.
        self.client: Any = AsyncOpenAI(
            api_key=resolve_api_key(profile),
            base_url=normalize_base_url(profile.endpoint),
            timeout=build_ai_httpx_timeout(profile.timeout),
            max_retries=0,
        )

    async def _list_models(self) -> list[str]:
        models: list[str] = []
        async for model in self.client.models.list():
            models.append(model.id)
        return models

    async def resolve_model(self) -> str:
        """Resolve the priority list to one model id (cached per provider)."""
        if self._resolved_model is not None:
            return self._resolved_model

        needs_listing = len(self.candidates) > 1 or AUTO_MODEL in self.candidates
        if not needs_listing and self.candidates:
            self._resolved_model = self.candidates[0]
            return self._resolved_model

        available: Optional[list[str]]
        try:
            available = await self._list_models()
        except APIError as e:
            log_provider_info(self.name, f"Model listing unavailable: {e}")
            available = None

        resolved: Optional[str] = None
        if available is not None:
            listed = set(available)
            for candidate in self.candidates:
                if candidate == AUTO_MODEL:
                    if available:
                        resolved = available[0]
                        break
                elif candidate in listed:
                    resolved = candidate
                    break
        else:
            resolved = next((c for c in self.candidates if c != AUTO_MODEL), None)

        if resolved is None:
            raise ProviderError(
                self.name,
                "could not resolve a valid model from the priority list: "
                f"[{self.profile.model}]",
            )

        log_provider_info(self.name, f"Resolved model '{self.profile.model}' -> '{resolved}'")
        self._resolved_model = resolved
        return resolved

    def _provider_error(self, error: Exception) -> ProviderError:
        """Log an SDK failure and translate it to ``ProviderError``."""
        if isinstance(error, AuthenticationError):
            message = authentication_failed_message(error)
        elif isinstance(error, BadRequestError):
            message = bad_request_message(error, detail="check model name and context length")
        elif isinstance(error, APITimeoutError):
            message = timeout_message(error)
        elif isinstance(error, APIConnectionError):
            message = connection_error_message(error)
        elif isinstance(error, APIStatusError):
            message = status_error_message(error.status_code, error)
        else:
            message = unexpected_error_message(error)
        log_provider_error(self.name, message)
        return ProviderError(self.name, message)

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        """Send one non-streaming chat completion request."""
        try:
            model = await self.resolve_model()
            response = await self.client.chat.completions.create(
                model=model,
                messages=build_messages(system_prompt, user_prompt),
                stream=False,
            )
            if not response.choices:
                raise ProviderError(self.name, "no choices returned from openai-compatible api")

            finish_reason = response.choices[0].finish_reason
            if finish_reason and finish_reason != "stop":
                log_provider_info(self.name, f"finish_reason={finish_reason}")
            return response.choices[0].message.content or ""
        except LLMCliError:
            raise
        except Exception as e:
            raise self._provider_error(e) from e

    async def chat_stream(
        self,
        cancel: CancellationToken,
        system_prompt: str,
        user_prompt: str,
        sink: HandoffChannel,
    ) -> None:
        """Stream content deltas into ``sink``."""
        try:
            model = await self.resolve_model()
            cancel.raise_if_cancelled()
            stream = await self.client.chat.completions.create(
                model=model,
                messages=build_messages(system_prompt, user_prompt),
                stream=True,
            )
            try:
                async for chunk in stream:
                    cancel.raise_if_cancelled()
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        await sink.send(content)
            finally:
                await stream.close()
        except LLMCliError:
            raise
        except Exception as e:
            raise self._provider_error(e) from e
        finally:
            sink.close()
