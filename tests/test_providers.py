"""Tests for backend bindings with their SDK clients and HTTP transports mocked."""

from __future__ import annotations

import asyncio
import io
import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError
from openai import APIConnectionError, AuthenticationError

from llm_cli.ai.bedrock_provider import (
    BedrockProvider,
    build_nova_request,
    parse_nova_response,
)
from llm_cli.ai.mock_provider import MockProvider
from llm_cli.ai.ollama_provider import DEFAULT_OLLAMA_ENDPOINT, OllamaProvider
from llm_cli.ai.openai_provider import (
    OpenAIProvider,
    normalize_base_url,
    parse_model_priority,
    resolve_api_key,
)
from llm_cli.ai.timeouts import build_ai_httpx_timeout, timeout_ms
from llm_cli.ai.vertexai_provider import VertexAIProvider
from llm_cli.errors import ConfigurationError, ProviderError, UnsupportedModelError
from llm_cli.streaming.channel import CancellationToken, HandoffChannel
from test_helpers import make_profile


async def _drain(provider, system_prompt: str = "", user_prompt: str = "hi") -> list[str]:
    """Run a provider's chat_stream against a consumer and collect tokens."""
    token = CancellationToken()
    channel = HandoffChannel(token)
    task = asyncio.create_task(provider.chat_stream(token, system_prompt, user_prompt, channel))
    items = [item async for item in channel]
    await task
    assert channel.closed
    return items


class _AsyncIter:
    def __init__(self, items):
        self._items = list(items)
        self.close = AsyncMock()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


# ============================================================================
# Timeouts
# ============================================================================


def test_zero_timeout_means_no_limit():
    assert build_ai_httpx_timeout(0) is None
    assert timeout_ms(0) is None


def test_timeout_helpers_convert_seconds():
    timeout = build_ai_httpx_timeout(45)
    assert timeout.read == 45
    assert timeout_ms(1.5) == 1500


# ============================================================================
# Ollama
# ============================================================================


def _ollama(handler, **profile_fields) -> OllamaProvider:
    profile = make_profile(provider="ollama", model="llama3", **profile_fields)
    return OllamaProvider(profile, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_ollama_chat_posts_messages_and_returns_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "pong"}})

    answer = await _ollama(handler).chat("be brief", "ping")

    assert answer == "pong"
    assert seen["url"] == DEFAULT_OLLAMA_ENDPOINT
    assert seen["body"] == {
        "model": "llama3",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "ping"},
        ],
        "stream": False,
    }


@pytest.mark.asyncio
async def test_ollama_chat_omits_empty_system_prompt():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": {"content": "ok"}})

    await _ollama(handler, endpoint="http://gpu-box:11434/api/chat").chat("", "ping")
    assert seen["body"]["messages"] == [{"role": "user", "content": "ping"}]


@pytest.mark.asyncio
async def test_ollama_chat_reports_http_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="model 'llama3' not found")

    with pytest.raises(ProviderError, match="404"):
        await _ollama(handler).chat("", "ping")


@pytest.mark.asyncio
async def test_ollama_chat_reports_backend_error_field():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "out of memory"})

    with pytest.raises(ProviderError, match="out of memory"):
        await _ollama(handler).chat("", "ping")


def _provider_log_messages(caplog) -> list[str]:
    payloads = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.getMessage().startswith("{")
    ]
    return [p["message"] for p in payloads if p.get("event") == "provider_log"]


@pytest.mark.asyncio
async def test_ollama_backend_failures_are_logged_before_raising(caplog):
    def status_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="server exploded")

    def error_field_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b'{"error": "out of memory"}\n')

    with caplog.at_level(logging.ERROR):
        with pytest.raises(ProviderError, match="500"):
            await _ollama(status_handler).chat("", "ping")
        with pytest.raises(ProviderError, match="500"):
            await _drain(_ollama(status_handler))
        with pytest.raises(ProviderError, match="out of memory"):
            await _ollama(error_field_handler).chat("", "ping")
        with pytest.raises(ProviderError, match="out of memory"):
            await _drain(_ollama(error_field_handler))

    messages = _provider_log_messages(caplog)
    assert len(messages) == 4
    assert "server exploded" in messages[0]
    assert messages[3] == "out of memory"


@pytest.mark.asyncio
async def test_ollama_connection_failure_becomes_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError, match="Connection failed"):
        await _ollama(handler).chat("", "ping")


@pytest.mark.asyncio
async def test_ollama_stream_yields_ndjson_content():
    lines = [
        {"message": {"content": "Hel"}, "done": False},
        {"message": {"content": ""}, "done": False},
        {"message": {"content": "lo"}, "done": False},
        {"message": {"content": ""}, "done": True},
    ]
    body = "\n".join(json.dumps(line) for line in lines).encode()

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["stream"] is True
        return httpx.Response(200, content=body)

    assert await _drain(_ollama(handler)) == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_ollama_stream_rejects_malformed_line():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b'{"message": {"content": "a"}}\nnot json\n')

    with pytest.raises(ProviderError, match="decoding"):
        await _drain(_ollama(handler))


# ============================================================================
# OpenAI-compatible
# ============================================================================


def _openai(model: str = "gpt-4o-mini", **fields) -> OpenAIProvider:
    provider = OpenAIProvider(
        make_profile(provider="openai", model=model, api_key="sk-test", **fields)
    )
    provider.client = MagicMock()
    return provider


def _completion(content: str, finish_reason: str = "stop"):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=content))
        ]
    )


def _delta(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    ("endpoint", "expected"),
    [
        ("", None),
        ("https://api.openai.com/v1/chat/completions", "https://api.openai.com/v1"),
        ("http://localhost:1234/v1/", "http://localhost:1234/v1"),
        ("http://localhost:8000", "http://localhost:8000/v1"),
    ],
)
def test_normalize_base_url(endpoint, expected):
    assert normalize_base_url(endpoint) == expected


def test_parse_model_priority_strips_blanks():
    assert parse_model_priority(" a , ,auto,b ") == ["a", "auto", "b"]


def test_api_key_falls_back_to_credentials_file_then_environment(tmp_path, monkeypatch):
    creds = tmp_path / "creds.json"
    creds.write_text(json.dumps({"openai_api_key": " sk-from-file "}), encoding="utf-8")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    assert resolve_api_key(make_profile(api_key="sk-inline")) == "sk-inline"
    assert resolve_api_key(make_profile(credentials_file=str(creds))) == "sk-from-file"
    assert resolve_api_key(make_profile()) == "sk-from-env"

    monkeypatch.delenv("OPENAI_API_KEY")
    assert resolve_api_key(make_profile()) == "not-needed"


@pytest.mark.asyncio
async def test_openai_chat_returns_first_choice():
    provider = _openai()
    provider.client.chat.completions.create = AsyncMock(return_value=_completion("hi there"))

    assert await provider.chat("sys", "hello") == "hi there"

    kwargs = provider.client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["stream"] is False
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}


@pytest.mark.asyncio
async def test_openai_single_model_skips_listing():
    provider = _openai("local-model")
    provider.client.models.list = MagicMock(side_effect=AssertionError("should not list"))
    assert await provider.resolve_model() == "local-model"


@pytest.mark.asyncio
async def test_openai_auto_picks_first_listed_model():
    provider = _openai("auto")
    provider.client.models.list = MagicMock(
        return_value=_AsyncIter([SimpleNamespace(id="m1"), SimpleNamespace(id="m2")])
    )
    assert await provider.resolve_model() == "m1"
    assert await provider.resolve_model() == "m1"
    provider.client.models.list.assert_called_once()


@pytest.mark.asyncio
async def test_openai_priority_list_picks_first_available_candidate():
    provider = _openai("missing-model, m2, auto")
    provider.client.models.list = MagicMock(
        return_value=_AsyncIter([SimpleNamespace(id="m1"), SimpleNamespace(id="m2")])
    )
    assert await provider.resolve_model() == "m2"


@pytest.mark.asyncio
async def test_openai_listing_failure_uses_first_concrete_candidate():
    provider = _openai("auto, fallback-model")
    request = httpx.Request("GET", "http://localhost/v1/models")
    provider.client.models.list = MagicMock(side_effect=APIConnectionError(request=request))
    assert await provider.resolve_model() == "fallback-model"


@pytest.mark.asyncio
async def test_openai_unresolvable_model_is_provider_error():
    provider = _openai("auto, other")
    provider.client.models.list = MagicMock(return_value=_AsyncIter([]))
    provider.client.chat.completions.create = AsyncMock()

    with pytest.raises(ProviderError, match="priority list"):
        await provider.chat("", "hello")
    provider.client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_openai_authentication_error_is_mapped():
    provider = _openai()
    response = httpx.Response(
        401, request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )
    provider.client.chat.completions.create = AsyncMock(
        side_effect=AuthenticationError("invalid api key", response=response, body=None)
    )

    with pytest.raises(ProviderError, match="Authentication failed") as exc_info:
        await provider.chat("", "hello")
    assert exc_info.value.provider == "openai"


@pytest.mark.asyncio
async def test_openai_stream_sends_non_empty_deltas_and_closes_stream():
    provider = _openai()
    stream = _AsyncIter([_delta("Hel"), _delta(None), SimpleNamespace(choices=[]), _delta("lo")])
    provider.client.chat.completions.create = AsyncMock(return_value=stream)

    assert await _drain(provider) == ["Hel", "lo"]
    assert provider.client.chat.completions.create.await_args.kwargs["stream"] is True
    stream.close.assert_awaited_once()


# ============================================================================
# Vertex AI
# ============================================================================


def _vertex() -> VertexAIProvider:
    provider = VertexAIProvider(
        make_profile(
            provider="vertexai",
            model="gemini-1.5-flash",
            project_id="proj",
            location="us-central1",
        )
    )
    provider.client = MagicMock()
    return provider


def _gemini_response(text, finish_reason="STOP"):
    return SimpleNamespace(
        text=text,
        candidates=[
            SimpleNamespace(
                finish_reason=SimpleNamespace(name=finish_reason) if finish_reason else None
            )
        ],
    )


@pytest.mark.asyncio
async def test_vertex_chat_passes_system_instruction():
    provider = _vertex()
    provider.client.aio.models.generate_content = AsyncMock(return_value=_gemini_response("hi"))

    assert await provider.chat("be terse", "hello") == "hi"

    kwargs = provider.client.aio.models.generate_content.await_args.kwargs
    assert kwargs["model"] == "gemini-1.5-flash"
    assert kwargs["contents"] == "hello"
    assert kwargs["config"].system_instruction == "be terse"


@pytest.mark.asyncio
async def test_vertex_safety_block_is_provider_error():
    provider = _vertex()
    provider.client.aio.models.generate_content = AsyncMock(
        return_value=_gemini_response(None, finish_reason="SAFETY")
    )
    with pytest.raises(ProviderError, match="SAFETY"):
        await provider.chat("", "hello")


@pytest.mark.asyncio
async def test_vertex_stream_yields_chunk_text():
    provider = _vertex()
    chunks = _AsyncIter([_gemini_response("Hel", None), _gemini_response("lo", "STOP")])
    provider.client.aio.models.generate_content_stream = AsyncMock(return_value=chunks)

    assert await _drain(provider) == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_vertex_unexpected_error_is_wrapped():
    provider = _vertex()
    provider.client.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("boom"))
    with pytest.raises(ProviderError, match="Unexpected error: RuntimeError: boom"):
        await provider.chat("", "hello")


def test_vertex_missing_credentials_file_is_configuration_error(tmp_path):
    provider = VertexAIProvider(
        make_profile(
            provider="vertexai",
            model="gemini",
            project_id="proj",
            location="us-central1",
            credentials_file=str(tmp_path / "missing.json"),
        )
    )
    with pytest.raises(ConfigurationError, match="service account"):
        provider._get_client()


# ============================================================================
# Bedrock (Nova)
# ============================================================================


def _bedrock(**fields) -> BedrockProvider:
    values = {"provider": "bedrock", "model": "amazon.nova-lite-v1:0", "aws_region": "us-east-1"}
    values.update(fields)
    provider = BedrockProvider.from_profile(make_profile(**values))
    provider.client = MagicMock()
    return provider


def _nova_body(text: str) -> dict:
    return {
        "output": {"message": {"role": "assistant", "content": [{"text": text}]}},
        "stopReason": "end_turn",
    }


def _chunk(text: str) -> dict:
    payload = {"contentBlockDelta": {"delta": {"text": text}, "contentBlockIndex": 0}}
    return {"chunk": {"bytes": json.dumps(payload).encode()}}


def test_from_profile_rejects_non_nova_models():
    profile = make_profile(provider="bedrock", model="meta.llama3", aws_region="us-east-1")
    with pytest.raises(UnsupportedModelError):
        BedrockProvider.from_profile(profile)


def test_nova_request_shape():
    assert build_nova_request("sys", "hello") == {
        "schemaVersion": "messages-v1",
        "messages": [{"role": "user", "content": [{"text": "hello"}]}],
        "system": [{"text": "sys"}],
        "inferenceConfig": {"maxTokens": 500, "temperature": 0.7, "topP": 0.9, "topK": 20},
    }
    assert "system" not in build_nova_request("", "hello")


def test_parse_nova_response_reports_error_body():
    with pytest.raises(ProviderError, match="ValidationException: bad input"):
        parse_nova_response({"message": "bad input", "type": "ValidationException"})


@pytest.mark.asyncio
async def test_bedrock_chat_invokes_model_with_nova_body():
    provider = _bedrock()
    provider.client.invoke_model.return_value = {
        "body": io.BytesIO(json.dumps(_nova_body("pong")).encode())
    }

    assert await provider.chat("", "ping") == "pong"

    kwargs = provider.client.invoke_model.call_args.kwargs
    assert kwargs["modelId"] == "amazon.nova-lite-v1:0"
    assert json.loads(kwargs["body"])["messages"][0]["content"] == [{"text": "ping"}]


@pytest.mark.asyncio
async def test_bedrock_client_error_is_mapped():
    provider = _bedrock()
    provider.client.invoke_model.side_effect = ClientError(
        {
            "Error": {"Code": "AccessDeniedException", "Message": "no access"},
            "ResponseMetadata": {"HTTPStatusCode": 403},
        },
        "InvokeModel",
    )
    with pytest.raises(ProviderError, match="403.*AccessDeniedException: no access"):
        await provider.chat("", "ping")


@pytest.mark.asyncio
async def test_bedrock_stream_yields_content_block_deltas():
    provider = _bedrock()
    provider.client.invoke_model_with_response_stream.return_value = {
        "body": [
            {"chunk": {"bytes": json.dumps({"messageStart": {"role": "assistant"}}).encode()}},
            _chunk("Hel"),
            _chunk("lo"),
            {"chunk": {"bytes": json.dumps({"messageStop": {"stopReason": "end_turn"}}).encode()}},
        ]
    }
    assert await _drain(provider) == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_bedrock_stream_exception_event_is_provider_error():
    provider = _bedrock()
    provider.client.invoke_model_with_response_stream.return_value = {
        "body": [_chunk("a"), {"modelStreamErrorException": {"message": "stream broke"}}]
    }
    with pytest.raises(ProviderError, match="modelStreamErrorException: stream broke"):
        await _drain(provider)


def test_bedrock_reads_static_credentials_from_file(tmp_path):
    creds = tmp_path / "aws.json"
    creds.write_text(
        json.dumps({"aws_access_key_id": "AKIDEXAMPLE", "aws_secret_access_key": "secret"}),
        encoding="utf-8",
    )
    provider = _bedrock(credentials_file=str(creds))
    assert provider._static_credentials() == ("AKIDEXAMPLE", "secret")


def test_bedrock_profile_credentials_take_priority():
    provider = _bedrock(aws_access_key_id="AKID", aws_secret_access_key="s3")
    assert provider._static_credentials() == ("AKID", "s3")
    assert _bedrock()._static_credentials() == (None, None)


# ============================================================================
# Mock
# ============================================================================


@pytest.mark.asyncio
async def test_mock_provider_echoes_prompts():
    provider = MockProvider(make_profile())
    answer = await provider.chat("sys", "user")
    assert "System Prompt: sys" in answer
    assert "User Prompt: user" in answer


@pytest.mark.asyncio
async def test_mock_stream_reassembles_to_chat_answer():
    provider = MockProvider(make_profile())
    tokens = await _drain(provider, "sys", "a b  c")
    assert len(tokens) > 1
    assert "".join(tokens) == MockProvider.render("sys", "a b  c")
