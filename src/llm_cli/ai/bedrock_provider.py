"""Amazon Bedrock provider for Nova models (``messages-v1`` schema).

boto3 is synchronous, so every call into the runtime client runs in a
worker thread. Streaming pulls one event at a time from the response
stream so cancellation is observed between events.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..credentials import load_json_credentials
from ..domain.profile import Profile
from ..errors import ConfigurationError, LLMCliError, ProviderError, UnsupportedModelError
from ..streaming.channel import CancellationToken, HandoffChannel
from .provider_logging import (
    connection_error_message,
    log_provider_error,
    status_error_message,
    unexpected_error_message,
)
from .provider_utils import require_profile_fields

NOVA_MODEL_PREFIX = "amazon.nova"
NOVA_SCHEMA_VERSION = "messages-v1"

INFERENCE_CONFIG = {
    "maxTokens": 500,
    "temperature": 0.7,
    "topP": 0.9,
    "topK": 20,
}


def is_nova_model(model: str) -> bool:
    return model.startswith(NOVA_MODEL_PREFIX)


def build_nova_request(system_prompt: str, user_prompt: str) -> dict[str, Any]:
    """Build a Nova ``messages-v1`` request body."""
    body: dict[str, Any] = {
        "schemaVersion": NOVA_SCHEMA_VERSION,
        "messages": [{"role": "user", "content": [{"text": user_prompt}]}],
    }
    if system_prompt:
        body["system"] = [{"text": system_prompt}]
    body["inferenceConfig"] = dict(INFERENCE_CONFIG)
    return body


def parse_nova_response(data: Any) -> str:
    """Return ``output.message.content[0].text`` or raise on an error body."""
    if not isinstance(data, dict):
        raise ValueError("unexpected response body")
    if "output" not in data and data.get("message"):
        kind = data.get("type") or "error"
        raise ProviderError(BedrockProvider.name, f"{kind}: {data['message']}")
    content = ((data.get("output") or {}).get("message") or {}).get("content") or []
    if not content:
        raise ProviderError(BedrockProvider.name, "no content in response")
    return str(content[0].get("text") or "")


def parse_nova_stream_chunk(data: Any) -> str:
    """Text of a ``contentBlockDelta`` event; other events carry none."""
    if not isinstance(data, dict):
        return ""
    delta = (data.get("contentBlockDelta") or {}).get("delta") or {}
    return str(delta.get("text") or "")


class BedrockProvider:
    """Bedrock runtime provider (Nova family)."""

    name = "bedrock"

    def __init__(self, profile: Profile):
        require_profile_fields(self.name, profile, "aws_region", "model")
        self.profile = profile
        self.client: Any = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "BedrockProvider":
        """Build a provider, rejecting models outside the Nova family."""
        require_profile_fields(cls.name, profile, "aws_region", "model")
        if not is_nova_model(profile.model):
            raise UnsupportedModelError(cls.name, profile.model)
        return cls(profile)

    def _static_credentials(self) -> tuple[Optional[str], Optional[str]]:
        key_id = self.profile.aws_access_key_id
        secret = self.profile.aws_secret_access_key
        if key_id and secret:
            return key_id, secret
        if self.profile.credentials_file:
            data = load_json_credentials(self.profile.credentials_file)
            key_id = data.get("aws_access_key_id")
            secret = data.get("aws_secret_access_key")
            if not key_id or not secret:
                raise ConfigurationError(
                    f"Credentials file {self.profile.credentials_file} must define "
                    "aws_access_key_id and aws_secret_access_key"
                )
            return str(key_id), str(secret)
        # Default AWS credential chain.
        return None, None

    def _get_client(self) -> Any:
        if self.client is None:
            key_id, secret = self._static_credentials()
            self.client = boto3.client(
                "bedrock-runtime",
                region_name=self.profile.aws_region,
                aws_access_key_id=key_id,
                aws_secret_access_key=secret,
            )
        return self.client

    def _request_kwargs(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "modelId": self.profile.model,
            "contentType": "application/json",
            "accept": "application/json",
            "body": json.dumps(build_nova_request(system_prompt, user_prompt)),
        }

    def _provider_error(self, error: Exception) -> ProviderError:
        """Log a botocore failure and translate it to ``ProviderError``."""
        if isinstance(error, ClientError):
            details = error.response.get("Error", {})
            status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            message = status_error_message(
                status_code, f"{details.get('Code', 'ClientError')}: {details.get('Message', error)}"
            )
        elif isinstance(error, BotoCoreError):
            message = connection_error_message(error)
        else:
            message = unexpected_error_message(error)
        log_provider_error(self.name, message)
        return ProviderError(self.name, message)

    async def chat(self, system_prompt: str, user_prompt: str) -> str:
        """Invoke the model once and return the full answer."""
        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.invoke_model, **self._request_kwargs(system_prompt, user_prompt)
            )
            raw = await asyncio.to_thread(response["body"].read)
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ProviderError(self.name, f"error decoding bedrock response: {e}") from e
            return parse_nova_response(data)
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
        """Stream ``contentBlockDelta`` text into ``sink``."""
        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.invoke_model_with_response_stream,
                **self._request_kwargs(system_prompt, user_prompt),
            )
            events = iter(response["body"])
            while True:
                cancel.raise_if_cancelled()
                event = await asyncio.to_thread(next, events, None)
                if event is None:
                    break
                if "chunk" not in event:
                    # Modeled stream exceptions arrive as their own event keys.
                    kind, detail = next(iter(event.items()))
                    message = detail.get("message", detail) if isinstance(detail, dict) else detail
                    raise ProviderError(self.name, f"{kind}: {message}")
                try:
                    data = json.loads(event["chunk"]["bytes"])
                except json.JSONDecodeError as e:
                    raise ProviderError(
                        self.name, f"error decoding bedrock stream chunk: {e}"
                    ) from e
                text = parse_nova_stream_chunk(data)
                if text:
                    await sink.send(text)
        except LLMCliError:
            raise
        except Exception as e:
            raise self._provider_error(e) from e
        finally:
            sink.close()
