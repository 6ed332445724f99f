"""
Markup normalization.

Rich-text content is reduced to plain text before enrichment and lexical
indexing, so formatting differences never change summaries or tags.
"""

import re

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")

# Upper bound on strip passes; real content settles in one or two
_MAX_PASSES = 8


def _strip_once(markup: str) -> str:
    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    # Adjacent block elements have no whitespace between them; the separator
    # keeps "<p>one</p><p>two</p>" from becoming "onetwo".
    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize(markup: str | None) -> str:
    """
    Strip markup and collapse whitespace.

    Decoded entities can expose new markup ("&lt;b&gt;" becomes "<b>"), so
    stripping repeats until the text is stable. This makes normalize
    idempotent: normalize(normalize(x)) == normalize(x).

    Args:
        markup: Rich-text (HTML) content, plain text, or None

    Returns:
        Plain text with whitespace runs collapsed to single spaces and
        trimmed. Empty string for empty or None input.
    """
    if not markup:
        return ""

    text = markup
    for _ in range(_MAX_PASSES):
        stripped = _strip_once(text)
        if stripped == text:
            break
        text = stripped
    return text
