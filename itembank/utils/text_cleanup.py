"""Character-level cleanup for text that ends up inside XML documents."""

from __future__ import annotations

import re

# Control characters XML 1.0 forbids (tab, LF and CR are allowed), plus
# lone surrogates and the two non-characters U+FFFE / U+FFFF.
INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def strip_invalid_xml_chars(text: str) -> str:
    """Drop characters that cannot appear in an XML 1.0 document."""
    return INVALID_XML_CHARS.sub("", text)


def normalize_newlines(text: str) -> str:
    """Turn ``\\r\\n`` and bare ``\\r`` into ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def clean_cell_text(text: str) -> str:
    """Normalize line endings and remove XML-invalid characters."""
    return strip_invalid_xml_chars(normalize_newlines(text))
