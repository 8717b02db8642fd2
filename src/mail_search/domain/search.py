"""Domain models for query parsing and search results.

Value objects are immutable (frozen) so a response cannot drift after it
has been assembled.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mail_search.domain.model import Document


class Operator(str, Enum):
    """Boolean operator joining query terms."""

    AND = "AND"
    OR = "OR"


class ParsedQuery(BaseModel):
    """Ordered query terms plus the operator that combines them."""

    model_config = ConfigDict(frozen=True)

    terms: tuple[str, ...] = ()
    operator: Operator = Operator.OR

    @property
    def is_empty(self) -> bool:
        return not self.terms

    def describe(self) -> str:
        return f" {self.operator.value} ".join(self.terms)


class ScoredDocument(BaseModel):
    """A document id with its aggregate term-frequency score."""

    model_config = ConfigDict(frozen=True)

    document_id: int
    score: float


class SearchHit(BaseModel):
    """A ranked result enriched with stored fields and a snippet."""

    model_config = ConfigDict(frozen=True)

    document: Document
    score: float
    snippet: str = ""


class RelatedHit(BaseModel):
    """A document surfaced by a related-documents strategy."""

    model_config = ConfigDict(frozen=True)

    document: Document
    score: float
    strategy: str


class SearchResponse(BaseModel):
    """Complete answer to one search invocation."""

    model_config = ConfigDict(frozen=True)

    query: ParsedQuery
    hits: list[SearchHit] = Field(default_factory=list)
    total: int = 0
    expanded_terms: list[str] = Field(default_factory=list)
    related: list[RelatedHit] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total == 0
