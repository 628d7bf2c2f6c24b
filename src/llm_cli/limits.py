"""Byte-size limit policy shared by prompt input and response output.

All sizes are UTF-8 byte counts of sanitized text, never code-point counts.
The policy itself is pure: callers decide how to report its decision.
"""

from __future__ import annotations

from typing import NamedTuple

from .constants import LIMIT_MODE_STOP, LIMIT_MODES


class LimitDecision(NamedTuple):
    """Outcome of checking one increment against a ceiling."""

    allowed: int
    exceeded: bool
    must_stop: bool


def validate_mode(mode: str) -> str:
    """Return ``mode`` when it is a known limit mode, else raise ValueError."""
    if mode not in LIMIT_MODES:
        raise ValueError(
            f"limit mode must be one of {', '.join(LIMIT_MODES)} (got '{mode}')"
        )
    return mode


def check_and_apply(
    current_size: int,
    increment: int,
    ceiling: int,
    enabled: bool,
    mode: str,
) -> LimitDecision:
    """Decide how many bytes of ``increment`` may be emitted.

    - Disabled limits always allow the full increment.
    - Within the ceiling, the full increment is allowed.
    - Over the ceiling in ``stop`` mode nothing is allowed and the caller must
      abort with ``LimitExceededError``.
    - Over the ceiling in ``warn`` mode only the remaining budget is allowed
      (possibly 0); the caller warns and discards the rest of the item.
    """
    if not enabled or current_size + increment <= ceiling:
        return LimitDecision(allowed=increment, exceeded=False, must_stop=False)

    if validate_mode(mode) == LIMIT_MODE_STOP:
        return LimitDecision(allowed=0, exceeded=True, must_stop=True)

    return LimitDecision(
        allowed=max(ceiling - current_size, 0),
        exceeded=True,
        must_stop=False,
    )
