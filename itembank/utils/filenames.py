"""Suggested download filenames derived from a quiz title."""

from __future__ import annotations

import re

QTI_SUFFIX = "_qti.zip"
EXAM_SUFFIX = "_exam.pdf"
ANSWER_KEY_SUFFIX = "_answer_key.pdf"

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def sanitize_title(title: str, fallback: str = "quiz") -> str:
    """Replace every non-alphanumeric character with '_' and lower-case.

    Blank titles fall back to `fallback` so the result is never empty.
    """
    title = (title or "").strip()
    if not title:
        title = fallback
    return _UNSAFE_CHARS.sub("_", title).lower()


def suggested_filename(title: str, suffix: str) -> str:
    """Build `<sanitized title><suffix>`, e.g. `midterm_1_qti.zip`."""
    return f"{sanitize_title(title)}{suffix}"
