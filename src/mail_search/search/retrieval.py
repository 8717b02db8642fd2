"""Boolean retrieval over the inverted index.

Per-term posting lists are fetched from storage and combined in process:
AND intersects the document-id sets, OR unions them. A document's score is
the sum of the frequencies of the queried terms it contains.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging

from mail_search.domain.search import Operator, ScoredDocument
from mail_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)


class BooleanRetriever:
    """Evaluate AND/OR term sets and rank documents by summed frequency."""

    def __init__(self, store: SqliteIndexStore) -> None:
        self.store = store

    def search(self, terms: Sequence[str], operator: Operator = Operator.OR) -> list[ScoredDocument]:
        """Return documents matching ``terms`` under ``operator``, best first.

        An empty term list yields an empty result. Repeated terms count once.
        Ties keep ascending document id order; callers should not rely on it.
        """
        unique_terms = list(dict.fromkeys(term for term in terms if term))
        if not unique_terms:
            return []

        postings: dict[str, dict[int, int]] = {}
        for term in unique_terms:
            term_postings = self.store.postings_for_term(term)
            if operator is Operator.AND and not term_postings:
                logger.debug("AND query short-circuited: no postings for %r", term)
                return []
            postings[term] = term_postings

        document_sets = [set(term_postings) for term_postings in postings.values()]
        if operator is Operator.AND:
            candidates = set.intersection(*document_sets)
        else:
            candidates = set.union(*document_sets)

        scored = [
            ScoredDocument(
                document_id=document_id,
                score=float(sum(term_postings.get(document_id, 0) for term_postings in postings.values())),
            )
            for document_id in candidates
        ]
        scored.sort(key=lambda item: (-item.score, item.document_id))
        return scored
