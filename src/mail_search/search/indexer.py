"""Batched ingestion of records into the inverted index.

The builder walks a record stream strictly in order. Each qualifying record
becomes one document row plus one posting per distinct term; writes are
grouped into transactions of ``batch_size`` documents and a transaction is
only committed between records, so a crash loses at most the open batch and
never half of a document.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
import logging
import time
from typing import Any

from mail_search.config import Settings
from mail_search.domain.model import IngestRecord
from mail_search.errors import MalformedRecordError
from mail_search.observability.metrics import DOCUMENTS_INGESTED, INDEX_DOC_COUNT
from mail_search.search.analyzers import normalize, tokenize
from mail_search.search.dedup import get_key_builder
from mail_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)

STOP_TIME_BUDGET = "time_budget"
STOP_MAX_RECORDS = "max_records"

_MAX_ERROR_MESSAGES = 50


@dataclass(frozen=True)
class IngestOptions:
    """Tunables for one ingestion run."""

    batch_size: int = 10_000
    time_budget_seconds: float | None = None
    max_records: int | None = None
    min_body_length: int = 50
    dedup_policy: str = "content"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.time_budget_seconds is not None and self.time_budget_seconds <= 0:
            raise ValueError("time_budget_seconds must be positive")
        if self.max_records is not None and self.max_records < 1:
            raise ValueError("max_records must be >= 1")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        time_budget_seconds: float | None = None,
        max_records: int | None = None,
    ) -> IngestOptions:
        return cls(
            batch_size=settings.batch_size,
            time_budget_seconds=time_budget_seconds,
            max_records=max_records if max_records is not None else settings.max_records,
            min_body_length=settings.min_body_length,
            dedup_policy=settings.dedup_policy,
        )


@dataclass
class IngestionReport:
    """Outcome of an ingestion run.

    ``processed`` counts records that passed the body length floor, whether
    they produced a new document or were duplicates. ``skipped`` counts
    floor failures plus malformed records; ``errors`` the malformed ones only.
    """

    processed: int = 0
    indexed: int = 0
    duplicates: int = 0
    skipped: int = 0
    errors: int = 0
    elapsed: float = 0.0
    stop_reason: str | None = None
    error_messages: list[str] = field(default_factory=list)

    @property
    def stopped_early(self) -> bool:
        return self.stop_reason is not None

    @property
    def records_per_second(self) -> float:
        return self.processed / self.elapsed if self.elapsed > 0 else 0.0


def compute_term_frequencies(subject: str, body: str) -> dict[str, int]:
    """Count indexable terms across ``subject + " " + body``."""
    return dict(Counter(tokenize(f"{subject} {body}")))


def coerce_record(raw: Any) -> IngestRecord:
    """Accept an ``IngestRecord`` or a mapping; anything else is malformed."""
    if isinstance(raw, IngestRecord):
        return raw
    if isinstance(raw, Mapping):
        return IngestRecord.from_mapping(raw)
    raise MalformedRecordError(f"Unsupported record type: {type(raw).__name__}")


class IndexBuilder:
    """Compute term frequencies and persist documents and postings."""

    def __init__(self, store: SqliteIndexStore, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.store = store
        self._clock = clock

    def ingest(
        self,
        records: Iterable[Any],
        options: IngestOptions | None = None,
        *,
        to_record: Callable[[Any], IngestRecord] = coerce_record,
    ) -> IngestionReport:
        """Index a record stream.

        Args:
            records: Items accepted by ``to_record`` (records or mappings by default).
            options: Batch size, bounds, floor and dedup policy.
            to_record: Converts a raw item to a record, raising
                ``MalformedRecordError`` for items that cannot be parsed.

        Returns:
            IngestionReport with counters and elapsed wall-clock seconds.

        Raises:
            StorageError: if the store cannot write; the open batch is rolled back.
        """
        options = options or IngestOptions()
        key_builder = get_key_builder(options.dedup_policy)
        report = IngestionReport()
        start = self._clock()
        stream = iter(records)
        exhausted = False

        while not exhausted and report.stop_reason is None:
            with self.store.transaction():
                exhausted = self._ingest_batch(stream, options, to_record, key_builder, report, start)
            if not exhausted and report.stop_reason is None:
                logger.info("Processed %s records, skipped %s", f"{report.processed:,}", f"{report.skipped:,}")

        report.elapsed = self._clock() - start
        INDEX_DOC_COUNT.set(self.store.document_count())
        if report.stop_reason:
            logger.info("Ingestion stopped early (%s) after %s records", report.stop_reason, report.processed)
        return report

    def _ingest_batch(
        self,
        stream: Iterator[Any],
        options: IngestOptions,
        to_record: Callable[[Any], IngestRecord],
        key_builder: Callable[[IngestRecord], str],
        report: IngestionReport,
        start: float,
    ) -> bool:
        """Index up to ``batch_size`` documents. Returns True once ``stream`` is exhausted."""
        pending = 0
        for raw in stream:
            if options.max_records is not None and report.processed >= options.max_records:
                report.stop_reason = STOP_MAX_RECORDS
                return False
            if options.time_budget_seconds is not None and self._clock() - start >= options.time_budget_seconds:
                report.stop_reason = STOP_TIME_BUDGET
                return False

            try:
                record = to_record(raw)
            except MalformedRecordError as exc:
                self._record_error(report, exc)
                continue

            if len(normalize(record.body)) < options.min_body_length:
                report.skipped += 1
                DOCUMENTS_INGESTED.labels(outcome="skipped").inc()
                continue

            self._index_record(record, key_builder(record), report)
            report.processed += 1
            pending += 1
            if pending >= options.batch_size:
                return False
        return True

    def _index_record(self, record: IngestRecord, key: str, report: IngestionReport) -> None:
        created, document_id = self.store.insert_document(record, key)
        if not created or document_id is None:
            report.duplicates += 1
            DOCUMENTS_INGESTED.labels(outcome="duplicate").inc()
            logger.debug("Duplicate document ignored: %s", record.source_path)
            return

        self.store.upsert_postings(document_id, compute_term_frequencies(record.subject, record.body))
        report.indexed += 1
        DOCUMENTS_INGESTED.labels(outcome="indexed").inc()

    def _record_error(self, report: IngestionReport, exc: MalformedRecordError) -> None:
        report.errors += 1
        report.skipped += 1
        DOCUMENTS_INGESTED.labels(outcome="error").inc()
        position = report.processed + report.skipped
        source = exc.source_path or f"record {position}"
        message = f"{source}: {exc}"
        if len(report.error_messages) < _MAX_ERROR_MESSAGES:
            report.error_messages.append(message)
        logger.warning("Error processing %s", message)
