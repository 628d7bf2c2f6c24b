"""Vertex AI (Gemini) provider implementation."""

from __future__ import annotations

import logging
from typing import Any, Optional

from google import genai
from google.genai import types
from google.genai.errors import APIError, ClientError, ServerError
from google.oauth2 import service_account

from ..config import resolve_path
from ..domain.profile import Profile
from ..errors import ConfigurationError, LLMCliError, ProviderError
from ..logging import log_event
from ..streaming.channel import CancellationToken, HandoffChannel
from .provider_logging import (
    log_provider_error,
    status_error_message,
    unexpected_error_message,
)
from .provider_utils import require_profile_fields
from .timeouts import timeout_ms

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Finish reasons that end a response without a usable answer.
_BLOCKED_FINISH_REASONS = {"SAFETY", "RECITATION", "PROHIBITED_CONTENT", "BLOCKLIST"}


def _finish_reason(response: Any) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return str(getattr(reason, "name", reason))


class VertexAIProvider:
    """Gemini models served through a Google Cloud project."""

    name = "vertexai"

    def __init__(self, profile: Profile):
        """Initialize Vertex AI provider.

        Args:
            profile: Profile carrying project_id, location, model and an
                optional service-account credentials file

        The SDK client is created on first use; without a credentials file
        Application Default Credentials apply.
        """
        require_profile_fields(self.name, profile, "project_id", "location", "model")
        self.profile = profile
        self.client: Any = None

    def _load_credentials(self) -> Any:
        if not self.profile.credentials_file:
            return None
        path = resolve_path(self.profile.credentials_file)
        try:
            return service_account.Credentials.from_service_account_file(
                path, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                f"Could not load service account credentials from {path}: {e}"
            ) from e

    def _get_client(self) -> Any:
        if self.client is None:
            ms = timeout_ms(self.profile.timeout)
            self.client = genai.Client(
                vertexai=True,
                project=self.profile.project_id,
                location=self.profile.location,
                credentials=self._load_credentials(),
                http_options=types.HttpOptions(timeout=ms) if ms else None,
            )
        return self.client

    def _config(self, system_prompt: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_prompt if system_prompt else None,
        )

    def _provider_error(self, error: Exception) -> ProviderError:
        """Log an SDK failure and translate it to ``ProviderError``."""
        if isinstance(error, ClientError):
            status_code = getattr(error, "code", None)
            message = f"Client error ({status_code}): {error}"
            if status_code == 403:
                message += " Permission denied - check project access and credentials."
            elif status_code == 404:
                message += " Model not found in this location."
        elif isinstance(error, ServerError):
            message = f"Server error ({getattr(error, 'code', None)}): {error}"
        elif isinstance(error, APIError):
            message = status_error_message(getattr(error, "code", None), error)
        else:
            message = unexpected_error_message(error)
        log_provider_error(self.name, message)
        return ProviderError(self.name, message)

    def _check_finish(self, response: Any) -> None:
        reason = _finish_reason(response)
        if reason in _BLOCKED_FINISH_REASONS:
            raise ProviderError(self.name, f"response blocked (finish_reason={reason})")
        if reason == "MAX_TOKENS":
            log_event(
                "provider_log",
                level=logging.WARNING,
                provider=self.name,
                message="Response truncated due to max tokens",
            )

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        """Send one non-streaming generate_content request."""
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.profile.model,
                contents=user_prompt,
                config=self._config(system_prompt),
            )
            self._check_finish(response)
            return response.text or ""
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
        """Stream generated text chunks into ``sink``."""
        try:
            stream = await self._get_client().aio.models.generate_content_stream(
                model=self.profile.model,
                contents=user_prompt,
                config=self._config(system_prompt),
            )
            async for chunk in stream:
                cancel.raise_if_cancelled()
                self._check_finish(chunk)
                if chunk.text:
                    await sink.send(chunk.text)
        except LLMCliError:
            raise
        except Exception as e:
            raise self._provider_error(e) from e
        finally:
            sink.close()
