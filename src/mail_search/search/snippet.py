"""Short context snippets for search results.

Snippets are word windows: the body is split on whitespace and the window
is centered on the first word containing any query term as a substring.
"""

from __future__ import annotations

from collections.abc import Sequence


SNIPPET_RADIUS = 10
FALLBACK_WORDS = 20
ELLIPSIS = "..."


def find_first_match(words: Sequence[str], terms: Sequence[str]) -> int:
    """Index of the first word whose lowercased form contains any term, or -1."""
    needles = [term.lower() for term in terms if term]
    if not needles:
        return -1
    for index, word in enumerate(words):
        lowered = word.lower()
        if any(needle in lowered for needle in needles):
            return index
    return -1


def build_snippet(
    body: str,
    terms: Sequence[str],
    *,
    radius: int = SNIPPET_RADIUS,
    fallback_words: int = FALLBACK_WORDS,
) -> str:
    """Build a snippet around the first term match in ``body``.

    Args:
        body: Document body text.
        terms: Query terms; matched as case-insensitive substrings of words.
        radius: Words kept before the match; the window ends ``radius``
            words after the start of the match (exclusive).
        fallback_words: Words returned from the start when nothing matches.

    Returns:
        ``words[max(0, i - radius):min(len, i + radius)]`` joined by spaces
        plus an ellipsis, or the leading words plus an ellipsis when nothing
        matches and the body is longer, or the body unchanged otherwise.

    Examples:
        >>> build_snippet("short body", ["zzz"])
        'short body'
    """
    if not body:
        return ""

    words = body.split()
    index = find_first_match(words, terms)
    if index >= 0:
        start = max(0, index - radius)
        end = min(len(words), index + radius)
        return " ".join(words[start:end]) + ELLIPSIS

    if len(words) > fallback_words:
        return " ".join(words[:fallback_words]) + ELLIPSIS
    return body
