"""Diagnostic sink for non-fatal warnings."""

from __future__ import annotations

import logging
from typing import Optional, TextIO

from .errors import LLMCliWarning
from .logging import log_event


class Diagnostics:
    """Write-only side channel for sanitization and truncation notices.

    Warnings are recorded in ``warnings`` and, when a stream is attached,
    written as ``Warning: <message>`` lines. They never propagate as errors.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self.warnings: list[LLMCliWarning] = []

    def warn(self, warning: LLMCliWarning) -> None:
        self.warnings.append(warning)
        log_event(
            "diagnostic_warning",
            level=logging.WARNING,
            category=type(warning).__name__,
            message=str(warning),
        )
        if self.stream is not None:
            self.stream.write(f"Warning: {warning}\n")
            self.stream.flush()

    def has(self, category: type[LLMCliWarning]) -> bool:
        """Return whether any recorded warning is an instance of ``category``."""
        return any(isinstance(w, category) for w in self.warnings)
