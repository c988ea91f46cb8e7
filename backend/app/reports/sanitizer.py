"""
sanitizer.py — Strip obvious personal data from report text.

Applied to report content before it reaches the store. Replaces:

    phone numbers     555-123-4567, 555.123.4567, 5551234567  → [phone]
    e-mail addresses  someone@example.org                     → [email]
    street addresses  42 Main Street, 7 Ocean Ave             → [address]

then caps the result at 500 UTF-16 code units. These are heuristics, not a
guarantee of anonymity.
"""

from __future__ import annotations

import re
from typing import Optional

MAX_CONTENT_LENGTH = 500

_PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_ADDRESS_RE = re.compile(
    r"\b\d+\s+[A-Za-z\s]+(?:Street|St|Avenue|Ave|Road|Rd|Drive|Dr|Lane|Ln|Boulevard|Blvd)\b",
    re.IGNORECASE,
)


def utf16_length(text: str) -> int:
    """Length in UTF-16 code units, the unit mobile clients count in."""
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def truncate_utf16(text: str, max_units: int) -> str:
    """
    Cut ``text`` to at most ``max_units`` UTF-16 code units.

    A character outside the BMP (most emoji) takes two units. If the cut
    lands inside such a pair, the whole character is dropped.

    >>> truncate_utf16("ab😀", 3)
    'ab'
    """
    if utf16_length(text) <= max_units:
        return text
    raw = text.encode("utf-16-le", errors="surrogatepass")[: max_units * 2]
    return raw.decode("utf-16-le", errors="ignore")


def sanitize_content(text: Optional[str], max_length: int = MAX_CONTENT_LENGTH) -> str:
    """
    Return ``text`` with PII patterns replaced and length capped.

    Examples
    --------
    >>> sanitize_content("Call me at 555-123-4567")
    'Call me at [phone]'
    >>> sanitize_content(None)
    ''
    """
    if not text:
        return ""

    clean = _PHONE_RE.sub("[phone]", text)
    clean = _EMAIL_RE.sub("[email]", clean)
    clean = _ADDRESS_RE.sub("[address]", clean)
    return truncate_utf16(clean, max_length)
