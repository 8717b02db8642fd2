"""Fuzzy term expansion for misspelling-tolerant retrieval.

Only used when exact retrieval returns nothing. Each query term of four or
more characters is widened with:

- prefix candidates: vocabulary terms starting with the term minus its last
  character (handles a mistyped or missing suffix), and
- edit-distance candidates: vocabulary terms within two characters of the
  term's length whose Levenshtein distance to it is at most two.

Shorter terms are never expanded; they match too much of the vocabulary.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging

from mail_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)

DEFAULT_MIN_TERM_LENGTH = 4
DEFAULT_MAX_DISTANCE = 2
DEFAULT_PREFIX_LIMIT = 5


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Classic O(m*n) dynamic programming with unit-cost insert, delete and
    substitute, keeping two rows of the table at a time.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 as soon as the
            distance is guaranteed to exceed it.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("merger", "mreger")
        2
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    # Use shorter string as columns for space efficiency
    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and abs(m - n) > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = curr_row[0]
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def find_fuzzy_matches(
    query_term: str,
    vocabulary: Sequence[str],
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> list[tuple[str, int]]:
    """Find vocabulary terms within ``max_distance`` edits of ``query_term``.

    Returns:
        ``(term, distance)`` pairs, closest first, then alphabetical.
    """
    if not query_term or not vocabulary:
        return []

    matches: list[tuple[str, int]] = []
    for term in vocabulary:
        # Quick check: if length difference exceeds max_distance, skip
        if abs(len(query_term) - len(term)) > max_distance:
            continue
        distance = levenshtein_distance(query_term, term, max_distance)
        if distance <= max_distance:
            matches.append((term, distance))

    matches.sort(key=lambda x: (x[1], x[0]))
    return matches


class FuzzyExpander:
    """Widen query terms against the indexed vocabulary."""

    def __init__(
        self,
        store: SqliteIndexStore,
        *,
        min_term_length: int = DEFAULT_MIN_TERM_LENGTH,
        max_distance: int = DEFAULT_MAX_DISTANCE,
        prefix_limit: int | None = DEFAULT_PREFIX_LIMIT,
        candidate_limit: int | None = None,
    ) -> None:
        self.store = store
        self.min_term_length = min_term_length
        self.max_distance = max_distance
        self.prefix_limit = prefix_limit
        self.candidate_limit = candidate_limit

    def expand(self, terms: Sequence[str]) -> list[str]:
        """Return the deduplicated union of candidates for all eligible terms.

        Order follows the query terms, prefix candidates before edit-distance
        candidates for each term.
        """
        expanded: dict[str, None] = {}
        for term in terms:
            if len(term) < self.min_term_length:
                continue
            for candidate in self.prefix_candidates(term):
                expanded.setdefault(candidate)
            for candidate in self.edit_distance_candidates(term):
                expanded.setdefault(candidate)

        if expanded:
            logger.info("Expanded %s to %s", list(terms), list(expanded))
        else:
            logger.info("No fuzzy candidates for %s", list(terms))
        return list(expanded)

    def prefix_candidates(self, term: str) -> list[str]:
        """Vocabulary terms sharing ``term[:-1]`` as a prefix, of similar length."""
        prefix = term[:-1]
        return [
            candidate
            for candidate in self.store.terms_with_prefix(prefix, limit=self.prefix_limit)
            if abs(len(candidate) - len(term)) <= self.max_distance
        ]

    def edit_distance_candidates(self, term: str) -> list[str]:
        """Vocabulary terms within ``max_distance`` Levenshtein edits of ``term``."""
        vocabulary = self.store.terms_in_length_range(
            len(term) - self.max_distance,
            len(term) + self.max_distance,
            limit=self.candidate_limit,
        )
        matches = find_fuzzy_matches(term, vocabulary, self.max_distance)
        logger.debug("Found %s fuzzy matches for %r (distance <= %s)", len(matches), term, self.max_distance)
        return [candidate for candidate, _ in matches]
