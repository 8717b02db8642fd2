"""Text analysis for the inverted index.

Mirrors a composable tokenizer/filter design: a tokenizer splits raw text
into word pieces and filters transform the stream. The default analyzer
lowercases and drops pieces of two characters or fewer, which is the only
normalization applied to indexed terms (no stemming, no stopwords).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
import re
from typing import Protocol


MIN_TERM_LENGTH = 3

# Characters stripped by ``normalize`` and trimmed from query pieces
PUNCTUATION = ".,:;!?\"'"

_PUNCTUATION_PATTERN = re.compile(f"[{re.escape(PUNCTUATION)}]")
_REPEATED_SPACES = re.compile(r" {2,}")


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[str]:  # pragma: no cover - interface definition
        ...


class TermFilter(Protocol):
    """Protocol implemented by term filters."""

    def __call__(self, terms: Iterable[str]) -> Iterator[str]:  # pragma: no cover - interface definition
        ...


class NonWordSplitTokenizer:
    """Split on runs of non-word characters (word = alphanumeric or underscore)."""

    def __init__(self, pattern: str = r"\W+") -> None:
        self.pattern = re.compile(pattern, re.UNICODE)

    def __call__(self, text: str) -> Iterator[str]:
        for piece in self.pattern.split(text):
            if piece:
                yield piece


class LowercaseFilter:
    def __call__(self, terms: Iterable[str]) -> Iterator[str]:
        for term in terms:
            yield term.lower()


class MinLengthFilter:
    """Drop terms shorter than ``min_length`` characters."""

    def __init__(self, min_length: int = MIN_TERM_LENGTH) -> None:
        self.min_length = min_length

    def __call__(self, terms: Iterable[str]) -> Iterator[str]:
        for term in terms:
            if len(term) >= self.min_length:
                yield term


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TermFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[str]:
        stream: Iterable[str] = self.tokenizer(text)
        for term_filter in self.filters:
            stream = term_filter(stream)
        return list(stream)


class TermAnalyzer:
    """Default analyzer used for both indexing and fuzzy vocabulary terms."""

    def __init__(self, *, min_length: int = MIN_TERM_LENGTH) -> None:
        self.pipeline = AnalyzerPipeline(
            NonWordSplitTokenizer(),
            [LowercaseFilter(), MinLengthFilter(min_length)],
        )

    def __call__(self, text: str) -> list[str]:
        return self.pipeline(text)


_DEFAULT_ANALYZER = TermAnalyzer()


def tokenize(text: str | None) -> list[str]:
    """Split text into indexable terms.

    Terms come back in input order with duplicates retained; callers
    aggregate frequencies themselves.

    Examples:
        >>> tokenize("Re: The merger, merger!")
        ['the', 'merger', 'merger']
    """
    if not text:
        return []
    return _DEFAULT_ANALYZER(text)


def normalize(text: str | None) -> str:
    """Lowercase, strip a fixed punctuation set, trim and collapse spaces.

    Used for the minimum body length filter and the content key, never for
    term extraction.

    Examples:
        >>> normalize("  Hello,   World!  ")
        'hello world'
    """
    if not text:
        return ""
    stripped = _PUNCTUATION_PATTERN.sub("", text.lower()).strip()
    return _REPEATED_SPACES.sub(" ", stripped)


def trim_punctuation(piece: str) -> str:
    """Trim whitespace and the fixed punctuation set from both ends."""
    return piece.strip().strip(PUNCTUATION)
