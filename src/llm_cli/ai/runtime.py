"""Provider request/response runtime shared by the CLI commands."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..diagnostics import Diagnostics
from ..domain.profile import Profile
from ..errors import LLMCliError, ProviderError
from ..logging import extract_http_error_context, log_event
from ..rendering import render_response
from ..streaming import CancellationToken, StreamOutcome, StreamResult, stream_response
from ..text import byte_len
from .base import Provider
from .registry import ProviderRegistry, build_default_registry


def resolve_provider(
    profile: Profile, registry: Optional[ProviderRegistry] = None
) -> Provider:
    """Build the provider for ``profile`` from ``registry`` (built-ins by default)."""
    return (registry or build_default_registry()).resolve(profile)


async def send_prompt(
    provider: Provider,
    profile: Profile,
    system_prompt: str,
    user_prompt: str,
    *,
    emit: Callable[[str], None],
    diagnostics: Diagnostics,
    stream: bool = False,
    cancel: Optional[CancellationToken] = None,
) -> StreamResult:
    """Send one prompt pair and write the answer through ``emit``.

    Non-streamed answers are sanitized and limited as a whole before anything
    is emitted; streamed answers go through the streaming coordinator.
    Completed answers end with a newline, truncated ones do not.
    """
    provider_label = profile.provider or type(provider).__name__
    log_event(
        "ai_request",
        level=logging.INFO,
        provider=provider_label,
        model=profile.model,
        stream=stream,
        system_bytes=byte_len(system_prompt),
        user_bytes=byte_len(user_prompt),
    )

    started = time.perf_counter()
    try:
        if stream:
            result = await stream_response(
                provider,
                system_prompt,
                user_prompt,
                limits=profile.limits,
                emit=emit,
                diagnostics=diagnostics,
                cancel=cancel,
                provider_name=provider_label,
            )
        else:
            result = await _send_complete(
                provider,
                provider_label,
                profile,
                system_prompt,
                user_prompt,
                emit=emit,
                diagnostics=diagnostics,
            )
    except Exception as e:
        log_event(
            "ai_error",
            level=logging.ERROR,
            provider=provider_label,
            model=profile.model,
            stream=stream,
            latency_ms=round((time.perf_counter() - started) * 1000, 1),
            error_type=type(e).__name__,
            error=str(e),
            **extract_http_error_context(e),
        )
        raise

    log_event(
        "ai_response",
        level=logging.INFO,
        provider=provider_label,
        model=profile.model,
        stream=stream,
        outcome=result.outcome.value,
        output_bytes=result.bytes_emitted,
        latency_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return result


async def _send_complete(
    provider: Provider,
    provider_label: str,
    profile: Profile,
    system_prompt: str,
    user_prompt: str,
    *,
    emit: Callable[[str], None],
    diagnostics: Diagnostics,
) -> StreamResult:
    try:
        text = await provider.chat(system_prompt, user_prompt)
    except LLMCliError:
        raise
    except Exception as e:
        raise ProviderError(provider_label, str(e)) from e

    rendered = render_response(text, profile.limits, diagnostics)
    if rendered.text:
        emit(rendered.text)
    if rendered.truncated:
        return StreamResult(StreamOutcome.TRUNCATED, byte_len(rendered.text), 1)
    emit("\n")
    return StreamResult(StreamOutcome.COMPLETED, byte_len(rendered.text), 1)
