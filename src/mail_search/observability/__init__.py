"""Observability helpers: structured logging and Prometheus metrics."""

from mail_search.observability.logging import JsonFormatter, configure_logging
from mail_search.observability.metrics import (
    DOCUMENTS_INGESTED,
    FUZZY_EXPANSIONS,
    INDEX_DOC_COUNT,
    SEARCH_LATENCY,
    SEARCH_RESULTS,
    track_latency,
)


__all__ = [
    "DOCUMENTS_INGESTED",
    "FUZZY_EXPANSIONS",
    "INDEX_DOC_COUNT",
    "SEARCH_LATENCY",
    "SEARCH_RESULTS",
    "JsonFormatter",
    "configure_logging",
    "track_latency",
]
