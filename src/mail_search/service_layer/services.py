"""Ingestion and query pipelines.

Both services take an explicit, already-open :class:`SqliteIndexStore`; the
caller owns its lifecycle. Each search runs independently against the
stored index and keeps no state between invocations.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mail_search.adapters.corpus import iter_raw_messages, parse_raw_message
from mail_search.config import Settings
from mail_search.domain.search import SearchHit, SearchResponse
from mail_search.observability.metrics import FUZZY_EXPANSIONS, SEARCH_LATENCY, SEARCH_RESULTS, track_latency
from mail_search.search.fuzzy import FuzzyExpander
from mail_search.search.indexer import IndexBuilder, IngestionReport, IngestOptions
from mail_search.search.query import parse_query
from mail_search.search.related import RelatedFinder, get_related_strategy
from mail_search.search.retrieval import BooleanRetriever
from mail_search.search.snippet import build_snippet
from mail_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)


class IndexService:
    """Run the ingestion pipeline from a corpus source into the store."""

    def __init__(self, store: SqliteIndexStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.builder = IndexBuilder(store)

    def index(
        self,
        source: str | Path,
        *,
        time_budget_seconds: float | None = None,
        max_records: int | None = None,
    ) -> IngestionReport:
        """Ingest ``source`` (CSV file or message directory).

        Secondary indexes are created once the bulk load finishes, including
        after an early stop.
        """
        options = IngestOptions.from_settings(
            self.settings,
            time_budget_seconds=time_budget_seconds,
            max_records=max_records,
        )
        messages = iter_raw_messages(source)
        logger.info("Starting ingestion from %s (batch size %s)", source, options.batch_size)

        report = self.builder.ingest(messages, options, to_record=parse_raw_message)

        self.store.create_secondary_indexes()
        self.store.optimize()
        logger.info(
            "Ingestion complete: processed=%s indexed=%s duplicates=%s skipped=%s errors=%s elapsed=%.1fs",
            report.processed,
            report.indexed,
            report.duplicates,
            report.skipped,
            report.errors,
            report.elapsed,
        )
        return report


class SearchService:
    """Run the query pipeline: parse, retrieve, fall back, enrich."""

    def __init__(
        self,
        store: SqliteIndexStore,
        settings: Settings | None = None,
        *,
        related_strategy: str | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.retriever = BooleanRetriever(store)
        self.expander = FuzzyExpander(
            store,
            min_term_length=self.settings.fuzzy_min_term_length,
            max_distance=self.settings.fuzzy_max_distance,
            prefix_limit=self.settings.fuzzy_prefix_limit,
            candidate_limit=self.settings.fuzzy_candidate_limit,
        )
        self.related_finder = RelatedFinder(
            store,
            get_related_strategy(related_strategy or self.settings.related_strategy),
        )

    def search(self, raw_query: str) -> SearchResponse:
        """Answer one query.

        Fuzzy expansion runs only when exact retrieval is empty. Snippets are
        built from the terms that produced the hits (the expanded terms when
        the fallback fired).
        """
        query = parse_query(raw_query)
        if query.is_empty:
            SEARCH_RESULTS.labels(status="empty").inc()
            return SearchResponse(query=query)

        with track_latency(SEARCH_LATENCY, operator=query.operator.value):
            ranked = self.retriever.search(query.terms, query.operator)
            expanded_terms: list[str] = []
            if not ranked:
                logger.info("No exact matches for %s; trying misspelling tolerance", query.describe())
                expanded_terms = self.expander.expand(query.terms)
                if expanded_terms:
                    ranked = self.retriever.search(expanded_terms, query.operator)
                FUZZY_EXPANSIONS.labels(outcome="hit" if ranked else "miss").inc()

            if not ranked:
                SEARCH_RESULTS.labels(status="empty").inc()
                return SearchResponse(query=query, expanded_terms=expanded_terms)

            top = ranked[: self.settings.max_results]
            documents = self.store.get_documents(item.document_id for item in top)
            snippet_terms = expanded_terms or list(query.terms)
            hits = [
                SearchHit(
                    document=documents[item.document_id],
                    score=item.score,
                    snippet=build_snippet(documents[item.document_id].body, snippet_terms),
                )
                for item in top
                if item.document_id in documents
            ]
            related = self.related_finder.find(
                [hit.document for hit in hits],
                exclude_ids=(item.document_id for item in ranked),
            )

        SEARCH_RESULTS.labels(status="found").inc()
        return SearchResponse(
            query=query,
            hits=hits,
            total=len(ranked),
            expanded_terms=expanded_terms,
            related=related,
        )
