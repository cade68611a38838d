"""
helped.engine.sanitize — Plain-Text Input Cleaning
===================================================

Free-text fields (custom action text, location) are stored as plain text:
HTML tags are stripped, common entities decoded, whitespace trimmed and
the result truncated to the column's limit.

Entities are decoded *after* tags are stripped, so ``&lt;script&gt;``
is stored as the literal text ``<script>``.  The stored value is plain
text, not safe HTML: it must always be escaped when rendered.
"""

from __future__ import annotations

import html
import re

_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_plain_text(value: str | None, max_length: int | None = None) -> str | None:
    """Return *value* as trimmed plain text, or ``None`` if nothing is left.

    The result may contain ``<`` and ``&``; escape it on output.
    """
    if value is None:
        return None
    cleaned = html.unescape(_TAG_RE.sub("", str(value))).strip()
    if max_length is not None and len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned or None
