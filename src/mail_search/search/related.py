"""Related-document strategies for the top results of a search.

Two independent strategies with different ranking semantics:

- ``sender``: recent documents (highest id first) from up to three distinct
  senders of the top results, each with a nominal score of 1.0.
- ``shared-terms``: documents sharing at least two distinct indexed terms
  with the top results, ranked and scored by the shared-term count.

Neither runs unless the search produced at least three results.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
import logging
from typing import Protocol

from mail_search.domain.model import Document
from mail_search.domain.search import RelatedHit
from mail_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)

MIN_RESULTS_FOR_RELATED = 3


class RelatedStrategy(Protocol):
    """Protocol implemented by related-document strategies."""

    name: str

    def find(
        self, store: SqliteIndexStore, documents: Sequence[Document], exclude_ids: set[int]
    ) -> list[RelatedHit]:  # pragma: no cover - interface definition
        ...


class SenderRelatedStrategy:
    """Other documents by the senders of the top results."""

    name = "sender"

    def __init__(self, *, max_senders: int = 3, limit: int = 10) -> None:
        self.max_senders = max_senders
        self.limit = limit

    def senders_of(self, documents: Sequence[Document]) -> list[str]:
        senders: list[str] = []
        for document in documents:
            if document.sender and document.sender not in senders:
                senders.append(document.sender)
                if len(senders) >= self.max_senders:
                    break
        return senders

    def find(self, store: SqliteIndexStore, documents: Sequence[Document], exclude_ids: set[int]) -> list[RelatedHit]:
        senders = self.senders_of(documents)
        if not senders:
            return []
        related = store.documents_by_sender(senders, exclude_ids=exclude_ids, limit=self.limit)
        return [RelatedHit(document=document, score=1.0, strategy=self.name) for document in related]


class SharedTermsRelatedStrategy:
    """Documents with the most distinct terms in common with the top results."""

    name = "shared-terms"

    def __init__(self, *, max_seeds: int = 3, min_shared: int = 2, limit: int = 20) -> None:
        self.max_seeds = max_seeds
        self.min_shared = min_shared
        self.limit = limit

    def find(self, store: SqliteIndexStore, documents: Sequence[Document], exclude_ids: set[int]) -> list[RelatedHit]:
        seed_ids = [document.id for document in documents[: self.max_seeds]]
        related = store.documents_sharing_terms(
            seed_ids,
            exclude_ids=exclude_ids,
            min_shared=self.min_shared,
            limit=self.limit,
        )
        return [
            RelatedHit(document=document, score=float(shared), strategy=self.name) for document, shared in related
        ]


_STRATEGY_FACTORIES: dict[str, Callable[[], RelatedStrategy]] = {
    "sender": lambda: SenderRelatedStrategy(),
    "shared-terms": lambda: SharedTermsRelatedStrategy(),
}


def get_related_strategy(name: str | None) -> RelatedStrategy:
    """Return a strategy by name, defaulting to ``sender``."""
    if name is None:
        return _STRATEGY_FACTORIES["sender"]()
    normalized = name.lower()
    if normalized not in _STRATEGY_FACTORIES:
        msg = f"Unknown related strategy '{name}'. Available: {sorted(_STRATEGY_FACTORIES)}"
        raise ValueError(msg)
    return _STRATEGY_FACTORIES[normalized]()


class RelatedFinder:
    """Surface documents related to the top results of a search."""

    def __init__(self, store: SqliteIndexStore, strategy: RelatedStrategy | None = None) -> None:
        self.store = store
        self.strategy = strategy or SenderRelatedStrategy()

    def find(self, documents: Sequence[Document], *, exclude_ids: Iterable[int] = ()) -> list[RelatedHit]:
        """Related documents for ``documents`` (the top results, best first).

        Args:
            documents: Top results in rank order.
            exclude_ids: Ids of the full result set; the top results are
                always excluded as well.
        """
        if len(documents) < MIN_RESULTS_FOR_RELATED:
            return []
        excluded = set(exclude_ids) | {document.id for document in documents}
        related = self.strategy.find(self.store, documents, excluded)
        logger.debug("Related (%s): %s documents", self.strategy.name, len(related))
        return related
