"""Prometheus metrics for ingestion and search.

Collected in-process in the default registry; there is no exposition server.
"""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram


if TYPE_CHECKING:
    from collections.abc import Generator


DOCUMENTS_INGESTED = Counter(
    "mail_search_documents_ingested_total",
    "Ingestion outcomes per record",
    ["outcome"],
)

INDEX_DOC_COUNT = Gauge(
    "mail_search_index_document_count",
    "Documents in the index after the last ingestion run",
)

SEARCH_LATENCY = Histogram(
    "mail_search_search_latency_seconds",
    "End-to-end search latency",
    ["operator"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

SEARCH_RESULTS = Counter(
    "mail_search_searches_total",
    "Searches by result status",
    ["status"],
)

FUZZY_EXPANSIONS = Counter(
    "mail_search_fuzzy_expansions_total",
    "Searches that fell back to fuzzy term expansion",
    ["outcome"],
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        metric = histogram.labels(**labels) if labels else histogram
        metric.observe(time.perf_counter() - start)
