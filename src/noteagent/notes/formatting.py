"""Markdown-style helpers for text format flags and short display strings."""

from __future__ import annotations

import re

from .nodes import TextFormat

__all__ = ["format_text", "parse_format", "truncate_text", "sanitize_html"]

_UNDERLINE_TAGS = re.compile(r"</?u>")

_HTML_ESCAPES = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
)


def format_text(text: str, format: TextFormat | int) -> str:
    """Wrap ``text`` in markers for each set flag, innermost first in bit order."""

    flags = TextFormat(format)
    formatted = text
    if flags & TextFormat.BOLD:
        formatted = f"**{formatted}**"
    if flags & TextFormat.ITALIC:
        formatted = f"*{formatted}*"
    if flags & TextFormat.UNDERLINE:
        formatted = f"<u>{formatted}</u>"
    if flags & TextFormat.STRIKETHROUGH:
        formatted = f"~~{formatted}~~"
    return formatted


def parse_format(text: str) -> tuple[str, TextFormat]:
    """Detect format markers anywhere in ``text`` and strip them.

    Detection is naive: markers are tested against the original text, so
    ``**bold**`` also reports italic since it contains ``*``. No precedence is
    applied between overlapping markers.
    """

    flags = TextFormat.NONE
    clean = text
    if "**" in text:
        flags |= TextFormat.BOLD
        clean = clean.replace("**", "")
    if "*" in text:
        flags |= TextFormat.ITALIC
        clean = clean.replace("*", "")
    if "<u>" in text:
        flags |= TextFormat.UNDERLINE
        clean = _UNDERLINE_TAGS.sub("", clean)
    if "~~" in text:
        flags |= TextFormat.STRIKETHROUGH
        clean = clean.replace("~~", "")
    return clean, flags


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - len(suffix))] + suffix


def sanitize_html(html: str) -> str:
    # "&" is left alone so already-escaped entities are not double escaped.
    for raw, escaped in _HTML_ESCAPES:
        html = html.replace(raw, escaped)
    return html
