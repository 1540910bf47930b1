"""Text escaping and HTML cleanup for QTI ``mattext`` content.

Prompts and option texts travel as ``text/html`` mattext: the plain text is
escaped for the five XML metacharacters and wrapped in a paragraph, and the
XML serializer escapes that HTML once more. Decoding reverses both layers.
"""

from __future__ import annotations

import html
import re

from itembank.utils.text_cleanup import strip_invalid_xml_chars

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}

_BLOCK_CLOSE = re.compile(r"</(p|div|li|ul|ol)\s*>", re.IGNORECASE)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_LIST_ITEM = re.compile(r"<li(\s[^>]*)?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")


def escape_text(text: str | None) -> str:
    """Escape ``& < > " '`` so free text can be embedded in markup.

    Characters XML 1.0 cannot carry are dropped.
    """
    if not text:
        return ""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in strip_invalid_xml_chars(str(text)))


def html_paragraph(text: str | None) -> str:
    """Wrap escaped plain text as a single HTML paragraph."""
    return f"<p>{escape_text(text)}</p>"


def clean_html(markup: str | None) -> str:
    """Convert mattext HTML back to plain text.

    Block closers and ``<br>`` become newlines, list items get a bullet,
    remaining tags are dropped and entities are decoded.
    """
    if not markup:
        return ""
    text = _LINE_BREAK.sub("\n", markup)
    text = _LIST_ITEM.sub("• ", text)
    text = _BLOCK_CLOSE.sub("\n", text)
    text = _ANY_TAG.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _clean_text(text)


def _clean_text(text: str) -> str:
    """Trim outer whitespace and collapse runs of blank lines."""
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
