"""Domain layer: documents, ingest records and search value objects."""

from mail_search.domain.model import Document, IngestRecord
from mail_search.domain.search import (
    Operator,
    ParsedQuery,
    RelatedHit,
    ScoredDocument,
    SearchHit,
    SearchResponse,
)


__all__ = [
    "Document",
    "IngestRecord",
    "Operator",
    "ParsedQuery",
    "RelatedHit",
    "ScoredDocument",
    "SearchHit",
    "SearchResponse",
]
