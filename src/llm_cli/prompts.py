"""Prompt-source resolution with UTF-8 sanitization and input size limits.

Sources are consulted in a fixed priority order and the first non-empty one
wins:

1. inline value (``-p`` / ``-P``)
2. file path (``-f`` / ``-F``); ``-`` reads standard input
3. positional argument (user prompt only)
4. piped standard input (user prompt only, skipped for a terminal)

Files and streams are read in chunks so a ``stop``-mode oversized input fails
as soon as its sanitized size crosses the ceiling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, TextIO

from .constants import PROMPT_READ_CHUNK_BYTES, STDIN_MARKER
from .diagnostics import Diagnostics
from .domain.profile import Limits
from .errors import (
    LimitExceededError,
    PromptSourceError,
    SanitizationWarning,
    TruncationWarning,
)
from .limits import check_and_apply
from .logging import log_event
from .text import Utf8Sanitizer, byte_len, sanitize_text, truncate_to_bytes

ROLE_USER = "user"
ROLE_SYSTEM = "system"

SOURCE_INLINE = "inline"
SOURCE_FILE = "file"
SOURCE_STDIN = "stdin"
SOURCE_POSITIONAL = "positional"
SOURCE_NONE = "none"


@dataclass(frozen=True, slots=True)
class PromptSources:
    """Candidate sources for one prompt, as given on the command line."""

    inline: str = ""
    file_path: str = ""
    positional: str = ""


@dataclass(frozen=True, slots=True)
class ResolvedPrompts:
    system: str
    user: str


@dataclass(slots=True)
class _ReadResult:
    text: str
    replacements: int
    truncated: bool


def _is_piped(stdin: TextIO) -> bool:
    try:
        return not stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _binary(stream: TextIO) -> BinaryIO:
    return getattr(stream, "buffer", stream)  # type: ignore[return-value]


def _read_limited(stream: BinaryIO, limits: Limits) -> _ReadResult:
    """Read ``stream`` to EOF, checking the sanitized size after every chunk."""
    ceiling = limits.max_prompt_size_bytes
    sanitizer = Utf8Sanitizer()
    parts: list[str] = []
    size = 0
    over = False

    while True:
        chunk = stream.read(PROMPT_READ_CHUNK_BYTES)
        if not chunk:
            break
        piece = sanitizer.feed(chunk)
        parts.append(piece)
        size += byte_len(piece)
        if limits.enabled and size > ceiling:
            # The unread remainder is never consumed.
            over = True
            break

    if not over:
        parts.append(sanitizer.finish())

    return _ReadResult(
        text="".join(parts),
        replacements=sanitizer.replacements,
        truncated=over,
    )


def _read_source(path: str, stdin: Optional[TextIO], limits: Limits) -> _ReadResult:
    if path == STDIN_MARKER:
        if stdin is None:
            raise PromptSourceError("standard input is not available")
        return _read_limited(_binary(stdin), limits)

    try:
        with open(path, "rb") as f:
            return _read_limited(f, limits)
    except FileNotFoundError:
        raise PromptSourceError(f"prompt file not found: {path}") from None
    except IsADirectoryError:
        raise PromptSourceError(f"prompt file is a directory: {path}") from None
    except OSError as e:
        raise PromptSourceError(f"could not read prompt file {path}: {e}") from e


def _apply_input_limit(
    text: str,
    limits: Limits,
    role: str,
    diagnostics: Diagnostics,
) -> tuple[str, bool]:
    size = byte_len(text)
    decision = check_and_apply(
        0,
        size,
        limits.max_prompt_size_bytes,
        limits.enabled,
        limits.on_input_exceeded,
    )
    if decision.must_stop:
        log_event(
            "limit_exceeded",
            level=logging.WARNING,
            kind="input",
            mode=limits.on_input_exceeded,
            size=size,
            ceiling=limits.max_prompt_size_bytes,
        )
        raise LimitExceededError("input", size, limits.max_prompt_size_bytes)
    if not decision.exceeded:
        return text, False

    diagnostics.warn(
        TruncationWarning(
            f"{role} prompt size ({size} bytes) exceeds max_prompt_size_bytes "
            f"({limits.max_prompt_size_bytes} bytes); truncated"
        )
    )
    return truncate_to_bytes(text, decision.allowed), True


def resolve_prompt(
    sources: PromptSources,
    *,
    role: str,
    limits: Limits,
    diagnostics: Diagnostics,
    stdin: Optional[TextIO] = None,
) -> str:
    """Resolve one prompt from its sources.

    Returns an empty string when no source yields a value. Sanitization
    replacements and ``warn``-mode truncation are reported on ``diagnostics``.

    Raises:
        PromptSourceError: File unreadable, or the system prompt was asked to
            read standard input.
        LimitExceededError: Input is over the ceiling in ``stop`` mode.
    """
    replacements = 0
    read_truncated = False

    if sources.inline:
        source = SOURCE_INLINE
        text, replacements = sanitize_text(sources.inline)
    elif sources.file_path:
        if role == ROLE_SYSTEM and sources.file_path == STDIN_MARKER:
            raise PromptSourceError(
                "the system prompt cannot be read from standard input; "
                "pass a file path or an inline value instead"
            )
        source = SOURCE_STDIN if sources.file_path == STDIN_MARKER else SOURCE_FILE
        result = _read_source(sources.file_path, stdin, limits)
        text, replacements, read_truncated = (
            result.text,
            result.replacements,
            result.truncated,
        )
    elif role == ROLE_USER and sources.positional:
        source = SOURCE_POSITIONAL
        text, replacements = sanitize_text(sources.positional)
    elif role == ROLE_USER and stdin is not None and _is_piped(stdin):
        source = SOURCE_STDIN
        result = _read_limited(_binary(stdin), limits)
        text, replacements, read_truncated = (
            result.text,
            result.replacements,
            result.truncated,
        )
    else:
        source = SOURCE_NONE
        text = ""

    if replacements:
        diagnostics.warn(
            SanitizationWarning(
                f"{role} prompt contained invalid UTF-8; "
                f"{replacements} sequence(s) replaced with U+FFFD"
            )
        )

    text, truncated = _apply_input_limit(text, limits, role, diagnostics)

    log_event(
        "prompt_resolved",
        level=logging.INFO,
        role=role,
        source=source,
        prompt_file=sources.file_path if source == SOURCE_FILE else None,
        bytes=byte_len(text),
        truncated=truncated or read_truncated,
        replacements=replacements,
    )
    return text


def resolve_prompts(
    user: PromptSources,
    system: PromptSources,
    *,
    limits: Limits,
    diagnostics: Diagnostics,
    stdin: Optional[TextIO] = None,
) -> ResolvedPrompts:
    """Resolve the system and user prompts for one invocation.

    The system prompt is resolved first and never touches standard input, so
    piped input stays available for the user prompt.
    """
    system_text = resolve_prompt(
        system,
        role=ROLE_SYSTEM,
        limits=limits,
        diagnostics=diagnostics,
        stdin=stdin,
    )
    user_text = resolve_prompt(
        user,
        role=ROLE_USER,
        limits=limits,
        diagnostics=diagnostics,
        stdin=stdin,
    )
    if not user_text:
        raise PromptSourceError(
            "No user prompt provided. Use --user-prompt, --user-prompt-file, "
            "a positional argument, or pipe input to stdin."
        )
    return ResolvedPrompts(system=system_text, user=user_text)
