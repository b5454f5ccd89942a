"""OCR text cleanup."""

from __future__ import annotations

import re

_INLINE_WHITESPACE = re.compile(r"[ \t\f\v]+")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def clean_ocr_text(text: str) -> str:
    """
    Normalize whitespace in recognized text.

    Collapses runs of spaces/tabs, trims each line and collapses three or
    more consecutive newlines to two.

    Example:
        >>> clean_ocr_text("  Total:   500 \\n\\n\\n\\nPaid ")
        'Total: 500\\n\\nPaid'
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_INLINE_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _EXCESS_BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def sanitize_for_storage(text: str) -> str:
    """Replace NUL characters, which database text columns reject."""
    if not text:
        return ""
    return text.replace("\x00", " ")
