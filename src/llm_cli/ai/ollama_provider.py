"""Ollama provider implementation.

Talks to the ``/api/chat`` endpoint of a local or remote Ollama server.
Streaming responses arrive as newline-delimited JSON objects.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from ..domain.profile import Profile
from ..errors import LLMCliError, ProviderError
from ..streaming.channel import CancellationToken, HandoffChannel
from .provider_logging import (
    connection_error_message,
    log_provider_error,
    status_error_message,
    timeout_message,
    unexpected_error_message,
)
from .provider_utils import build_messages, require_profile_fields
from .timeouts import build_ai_httpx_timeout

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434/api/chat"


class OllamaProvider:
    """Ollama provider implementation."""

    name = "ollama"

    def __init__(
        self,
        profile: Profile,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama provider.

        Args:
            profile: Profile carrying model, endpoint and timeout
            transport: Optional httpx transport (used by tests)
        """
        require_profile_fields(self.name, profile, "model")
        self.profile = profile
        self.endpoint = profile.endpoint or DEFAULT_OLLAMA_ENDPOINT
        self.timeout = build_ai_httpx_timeout(profile.timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _payload(self, system_prompt: str, user_prompt: str, stream: bool) -> dict[str, Any]:
        return {
            "model": self.profile.model,
            "messages": build_messages(system_prompt, user_prompt),
            "stream": stream,
        }

    def _provider_error(self, error: Exception) -> ProviderError:
        """Log an SDK/HTTP failure and translate it to ``ProviderError``."""
        if isinstance(error, httpx.TimeoutException):
            message = timeout_message(error)
        elif isinstance(error, httpx.HTTPStatusError):
            message = status_error_message(error.response.status_code, error.response.text)
        elif isinstance(error, httpx.TransportError):
            message = connection_error_message(error)
        else:
            message = unexpected_error_message(error)
        return self._backend_failure(message)

    def _backend_failure(self, message: str) -> ProviderError:
        log_provider_error(self.name, message)
        return ProviderError(self.name, message)

    @staticmethod
    def _backend_error(data: Any) -> Optional[str]:
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return None

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        """Send one non-streaming chat request and return the full answer."""
        try:
            async with self._client() as client:
                response = await client.post(
                    self.endpoint,
                    json=self._payload(system_prompt, user_prompt, stream=False),
                )
                if response.status_code != 200:
                    raise self._backend_failure(
                        status_error_message(response.status_code, response.text)
                    )
                try:
                    data = response.json()
                except ValueError as e:
                    raise self._backend_failure(f"error decoding ollama response: {e}") from e

            backend_error = self._backend_error(data)
            if backend_error:
                raise self._backend_failure(backend_error)
            message = data.get("message") or {}
            return str(message.get("content") or "")
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
        """Stream NDJSON chunks from ``/api/chat`` into ``sink``."""
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self.endpoint,
                    json=self._payload(system_prompt, user_prompt, stream=True),
                ) as response:
                    if response.status_code != 200:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise self._backend_failure(
                            status_error_message(response.status_code, body)
                        )

                    async for line in response.aiter_lines():
                        cancel.raise_if_cancelled()
                        if not line.strip():
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError as e:
                            raise self._backend_failure(
                                f"error decoding ollama stream response: {e}"
                            ) from e

                        backend_error = self._backend_error(data)
                        if backend_error:
                            raise self._backend_failure(backend_error)

                        content = (data.get("message") or {}).get("content") or ""
                        if content:
                            await sink.send(content)
                        if data.get("done"):
                            break
        except LLMCliError:
            raise
        except Exception as e:
            raise self._provider_error(e) from e
        finally:
            sink.close()
