"""UTF-8 sanitization and byte-safe truncation."""

from __future__ import annotations

import codecs
import re

REPLACEMENT_CHAR = "\ufffd"

# ``surrogateescape`` maps every undecodable byte to one of these code points.
_ESCAPED_BYTES = re.compile("[\udc80-\udcff]+")
_LEADING_ESCAPED_BYTES = re.compile("^[\udc80-\udcff]+")


def byte_len(text: str) -> int:
    """Return the UTF-8 encoded length of already-sanitized text."""
    return len(text.encode("utf-8"))


class Utf8Sanitizer:
    """Incremental UTF-8 decoder that replaces invalid input with U+FFFD.

    Every maximal run of invalid bytes becomes exactly one replacement
    character, including runs that straddle two ``feed`` calls. Sequences
    split across chunks are held back until they complete.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="surrogateescape")
        self._in_invalid_run = False
        self.replacements = 0

    def feed(self, data: bytes) -> str:
        return self._clean(self._decoder.decode(data, final=False))

    def finish(self) -> str:
        return self._clean(self._decoder.decode(b"", final=True))

    def _clean(self, decoded: str) -> str:
        if not decoded:
            return decoded
        if self._in_invalid_run:
            stripped = _LEADING_ESCAPED_BYTES.sub("", decoded, count=1)
            if not stripped:
                return ""
            decoded = stripped
        self._in_invalid_run = "\udc80" <= decoded[-1] <= "\udcff"
        cleaned, count = _ESCAPED_BYTES.subn(REPLACEMENT_CHAR, decoded)
        self.replacements += count
        return cleaned


def sanitize_bytes(data: bytes) -> tuple[str, int]:
    """Decode bytes as UTF-8, replacing invalid runs.

    Returns:
        Tuple of (text, number of replacements made)
    """
    try:
        return data.decode("utf-8"), 0
    except UnicodeDecodeError:
        pass
    sanitizer = Utf8Sanitizer()
    text = sanitizer.feed(data) + sanitizer.finish()
    return text, sanitizer.replacements


def sanitize_text(text: str) -> tuple[str, int]:
    """Sanitize a str that may carry lone surrogates from a lenient decoder."""
    try:
        text.encode("utf-8")
        return text, 0
    except UnicodeEncodeError:
        return sanitize_bytes(text.encode("utf-8", errors="surrogatepass"))


def truncate_to_bytes(text: str, max_bytes: int) -> str:
    """Return the longest code-point prefix of ``text`` that fits in ``max_bytes``."""
    if max_bytes <= 0:
        return ""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    # Dropping a partial trailing sequence keeps the prefix on a boundary.
    return encoded[:max_bytes].decode("utf-8", errors="ignore")
