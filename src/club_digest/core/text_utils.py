"""Shared text processing utilities.

Cleans scraped article text and renders the plain-text digest that is sent
to email and Telegram recipients.
"""

import html as htmllib
import re
from typing import Optional

from .models import Summary

_INCOMPLETE_TAG_RE = re.compile(r"<[^>]*$")
_TAG_RE = re.compile(r"</?[^>]*>")
_SHORTCODE_RE = re.compile(r"\[/?[^\]]*\]")
_NUMERIC_ENTITY_RE = re.compile(r"&#(?:\d+|[xX][0-9a-fA-F]+);")
_WHITESPACE_RE = re.compile(r"\s+")

_NAMED_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&apos;": "'",
    "&mdash;": "—",
    "&ndash;": "–",
    "&hellip;": "…",
    "&copy;": "©",
    "&rsquo;": "'",
    "&lsquo;": "'",
}


def _decode_numeric(match: "re.Match[str]") -> str:
    decoded = htmllib.unescape(match.group(0))
    # typographic apostrophes are flattened so the model sees plain quotes
    if decoded in ("’", "‘"):
        return "'"
    return decoded


def clean_html_tags(text: Optional[str]) -> str:
    """Strip markup left over from scraping and normalize whitespace.

    Handles complete and self-closing tags, an incomplete tag at the end of
    the text, CMS shortcodes such as ``[caption]...[/caption]``, common named
    entities and numeric character references.

    Examples:
        >>> clean_html_tags('<img src="a.jpg" />Liverpool&rsquo;s win was <strong>big</strong>.')
        "Liverpool's win was big."
        >>> clean_html_tags("Normal text <div")
        'Normal text'
    """
    if not text:
        return ""

    s = _INCOMPLETE_TAG_RE.sub("", text)
    s = _TAG_RE.sub("", s)
    s = _SHORTCODE_RE.sub("", s)

    for entity, replacement in _NAMED_ENTITIES.items():
        s = s.replace(entity, replacement)
    s = _NUMERIC_ENTITY_RE.sub(_decode_numeric, s)

    s = _WHITESPACE_RE.sub(" ", s)
    return s.strip()


def format_summary_plain_text(summary: Summary) -> str:
    """Render the mood line followed by each accepted bullet as ``- text``."""
    parts = [summary.mood]
    for bullet in summary.items:
        if bullet.accepted is True:
            parts.append(f"- {bullet.text}")
    return "\n\n".join(parts).strip()


__all__ = ["clean_html_tags", "format_summary_plain_text"]
