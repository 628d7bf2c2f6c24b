"""Streaming coordinator: background producer, foreground limit-enforcing consumer.

The provider's ``chat_stream`` runs as one background task that pushes tokens
through a :class:`HandoffChannel`. The foreground loop sanitizes each token,
applies the output byte limit against the running total, forwards text to
``emit``, and always joins the background task before inspecting its result.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from ..diagnostics import Diagnostics
from ..domain.profile import Limits
from ..errors import (
    CancellationError,
    LimitExceededError,
    LLMCliError,
    ProviderError,
    SanitizationWarning,
    TruncationWarning,
)
from ..limits import check_and_apply
from ..logging import log_event
from ..text import byte_len, sanitize_text, truncate_to_bytes
from .channel import CancellationToken, HandoffChannel

if TYPE_CHECKING:
    from ..ai.base import Provider

# Producers get this long to observe cancellation before their task is
# cancelled outright (a stalled network read never reaches a send).
CANCEL_GRACE_SEC = 5.0


class StreamOutcome(enum.Enum):
    COMPLETED = "completed"
    TRUNCATED = "truncated"
    STOPPED_BY_ERROR = "stopped_by_error"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class StreamResult:
    outcome: StreamOutcome
    bytes_emitted: int
    tokens: int


async def _join(task: asyncio.Task[None]) -> Optional[BaseException]:
    """Wait for the producer to finish and return its terminal error."""
    _, pending = await asyncio.wait({task}, timeout=CANCEL_GRACE_SEC)
    if pending:
        task.cancel()
        await asyncio.wait({task})
    if task.cancelled():
        return CancellationError("stream producer was cancelled")
    return task.exception()


def _log_end(
    outcome: StreamOutcome,
    *,
    tokens: int,
    emitted: int,
    started: float,
    error: Optional[BaseException] = None,
) -> None:
    log_event(
        "stream_end",
        level=logging.INFO if error is None else logging.ERROR,
        outcome=outcome.value,
        tokens=tokens,
        output_bytes=emitted,
        latency_ms=round((time.perf_counter() - started) * 1000, 1),
        error_type=type(error).__name__ if error is not None else None,
        error=str(error) if error is not None else None,
    )


async def stream_response(
    provider: Provider,
    system_prompt: str,
    user_prompt: str,
    *,
    limits: Limits,
    emit: Callable[[str], None],
    diagnostics: Diagnostics,
    cancel: Optional[CancellationToken] = None,
    provider_name: str = "",
) -> StreamResult:
    """Stream one response to ``emit`` under the output byte limit.

    A trailing newline is emitted only when the stream completes without
    truncation, so truncated output stays byte-exact.

    Raises:
        LimitExceededError: Output crossed its ceiling in ``stop`` mode.
        CancellationError: The stream was cancelled by the caller.
        ProviderError: The provider failed; foreign errors are wrapped.
    """
    token = cancel.child() if cancel is not None else CancellationToken()
    channel = HandoffChannel(token)
    label = provider_name or type(provider).__name__

    async def _produce() -> None:
        try:
            await provider.chat_stream(token, system_prompt, user_prompt, channel)
        finally:
            channel.close()

    started = time.perf_counter()
    task = asyncio.create_task(_produce())
    ceiling = limits.max_response_size_bytes
    emitted = 0
    tokens = 0
    limit_error: Optional[LimitExceededError] = None
    truncated = False
    stopped_early = True

    try:
        async for raw in channel:
            tokens += 1
            text, replaced = sanitize_text(raw)
            if replaced:
                diagnostics.warn(
                    SanitizationWarning(
                        f"response contained invalid UTF-8; "
                        f"{replaced} sequence(s) replaced with U+FFFD"
                    )
                )

            size = byte_len(text)
            decision = check_and_apply(
                emitted, size, ceiling, limits.enabled, limits.on_output_exceeded
            )
            if decision.must_stop:
                limit_error = LimitExceededError("output", emitted + size, ceiling)
                log_event(
                    "limit_exceeded",
                    level=logging.WARNING,
                    kind="output",
                    mode=limits.on_output_exceeded,
                    size=emitted + size,
                    ceiling=ceiling,
                )
                break

            if decision.exceeded:
                remainder = truncate_to_bytes(text, decision.allowed)
                if remainder:
                    emit(remainder)
                    emitted += byte_len(remainder)
                diagnostics.warn(
                    TruncationWarning(
                        f"response exceeds max_response_size_bytes ({ceiling} bytes); "
                        f"output truncated"
                    )
                )
                truncated = True
                break

            if text:
                emit(text)
                emitted += size
        else:
            stopped_early = False
    finally:
        if stopped_early:
            token.cancel("stream consumer stopped")
        task_error = await _join(task)

    if limit_error is not None:
        _log_end(
            StreamOutcome.STOPPED_BY_ERROR,
            tokens=tokens,
            emitted=emitted,
            started=started,
            error=limit_error,
        )
        raise limit_error

    if truncated:
        # The producer only saw our own cancellation.
        _log_end(StreamOutcome.TRUNCATED, tokens=tokens, emitted=emitted, started=started)
        return StreamResult(StreamOutcome.TRUNCATED, emitted, tokens)

    if task_error is not None:
        if isinstance(task_error, CancellationError):
            _log_end(
                StreamOutcome.CANCELLED,
                tokens=tokens,
                emitted=emitted,
                started=started,
                error=task_error,
            )
            raise task_error

        _log_end(
            StreamOutcome.STOPPED_BY_ERROR,
            tokens=tokens,
            emitted=emitted,
            started=started,
            error=task_error,
        )
        if isinstance(task_error, LLMCliError):
            raise task_error
        raise ProviderError(label, str(task_error)) from task_error

    emit("\n")
    _log_end(StreamOutcome.COMPLETED, tokens=tokens, emitted=emitted, started=started)
    return StreamResult(StreamOutcome.COMPLETED, emitted, tokens)
