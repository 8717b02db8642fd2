"""Parse raw query strings into ordered terms and a boolean operator."""

from __future__ import annotations

from mail_search.domain.search import Operator, ParsedQuery
from mail_search.search.analyzers import MIN_TERM_LENGTH, trim_punctuation


_AND_SEPARATOR = " and "
_OR_SEPARATOR = " or "


def parse_query(query: str | None) -> ParsedQuery:
    """Turn a raw query into terms plus AND/OR.

    A literal `` and `` anywhere in the lowercased query makes it an AND
    query split on that separator; otherwise `` or `` does the same for OR;
    otherwise the query is split on whitespace and defaults to OR. Pieces
    are trimmed of punctuation and dropped when two characters or shorter.
    Term order is kept and duplicates are not removed here.

    Examples:
        >>> parse_query("Merger AND Enron").terms
        ('merger', 'enron')
        >>> parse_query("merger enron").operator
        <Operator.OR: 'OR'>
    """
    normalized = (query or "").lower()

    if _AND_SEPARATOR in normalized:
        pieces = normalized.split(_AND_SEPARATOR)
        operator = Operator.AND
    elif _OR_SEPARATOR in normalized:
        pieces = normalized.split(_OR_SEPARATOR)
        operator = Operator.OR
    else:
        pieces = normalized.split()
        operator = Operator.OR

    terms = tuple(term for term in (trim_punctuation(piece) for piece in pieces) if len(term) >= MIN_TERM_LENGTH)
    return ParsedQuery(terms=terms, operator=operator)
