"""
RateMate - Text Utilities
==========================
Stateless helpers for preparing text on its way to a provider and for
shaping text on its way back to the client.
"""

from __future__ import annotations

import base64
import re
import unicodedata

# Control characters (C0/C1) except \n, \r, \t, plus BOM and zero-width marks
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# Literal "\n" escape sequences as well as real line breaks
_NEWLINE_RE = re.compile(r"\\n|\r\n|\r|\n")

ELLIPSIS = "..."


def normalize_for_embedding(text: str) -> str:
    """Replace newline escapes and line breaks with spaces before embedding."""
    return _NEWLINE_RE.sub(" ", text)


def clean_text(text: str) -> str:
    """
    Sanitise text extracted from an uploaded document.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse runs of horizontal whitespace, *preserving* newlines.
        4. Strip every line and collapse 3+ blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    text = "\n".join(line.strip() for line in text.splitlines())
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate(text: str, max_length: int, suffix: str = ELLIPSIS) -> str:
    """Hard character cut at *max_length*, with *suffix* appended when cut."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def error_reason(exc: BaseException, max_length: int = 150) -> str:
    """Short, client-safe description of a provider error."""
    message = str(exc) or exc.__class__.__name__
    return message[:max_length]


def to_data_url(content_type: str, data: bytes) -> str:
    """Encode raw bytes as a ``data:<type>;base64,...`` URL."""
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"
