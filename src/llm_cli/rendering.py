"""Output limit handling for complete (non-streamed) responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .diagnostics import Diagnostics
from .domain.profile import Limits
from .errors import LimitExceededError, SanitizationWarning, TruncationWarning
from .limits import check_and_apply
from .logging import log_event
from .text import byte_len, sanitize_text, truncate_to_bytes


@dataclass(frozen=True, slots=True)
class RenderedResponse:
    text: str
    truncated: bool


def render_response(
    text: str,
    limits: Limits,
    diagnostics: Diagnostics,
) -> RenderedResponse:
    """Sanitize a full response, then apply the output limit once.

    In ``stop`` mode an oversized response is discarded entirely and
    ``LimitExceededError`` is raised; in ``warn`` mode it is cut to the
    longest byte-safe prefix and a ``TruncationWarning`` is reported.
    """
    clean, replaced = sanitize_text(text)
    if replaced:
        diagnostics.warn(
            SanitizationWarning(
                f"response contained invalid UTF-8; "
                f"{replaced} sequence(s) replaced with U+FFFD"
            )
        )

    size = byte_len(clean)
    ceiling = limits.max_response_size_bytes
    decision = check_and_apply(
        0, size, ceiling, limits.enabled, limits.on_output_exceeded
    )
    if decision.must_stop:
        log_event(
            "limit_exceeded",
            level=logging.WARNING,
            kind="output",
            mode=limits.on_output_exceeded,
            size=size,
            ceiling=ceiling,
        )
        raise LimitExceededError("output", size, ceiling)

    if not decision.exceeded:
        return RenderedResponse(clean, truncated=False)

    diagnostics.warn(
        TruncationWarning(
            f"response size ({size} bytes) exceeds max_response_size_bytes "
            f"({ceiling} bytes); output truncated"
        )
    )
    return RenderedResponse(truncate_to_bytes(clean, decision.allowed), truncated=True)
