"""Small hand-written email corpora and helpers shared by the test suite."""

from mail_search.domain.model import IngestRecord
from mail_search.search.indexer import IndexBuilder, IngestionReport, IngestOptions
from mail_search.search.sqlite_storage import SqliteIndexStore


PADDING = "padding words that keep the body comfortably above the fifty character floor"


def make_record(
    source_path: str,
    body: str,
    *,
    subject: str = "",
    sender: str = "",
    recipients: str = "",
    date_sent: str = "",
) -> IngestRecord:
    return IngestRecord(
        source_path=source_path,
        subject=subject,
        sender=sender,
        recipients=recipients,
        date_sent=date_sent,
        body=body,
    )


def ingest(store: SqliteIndexStore, records, **options) -> IngestionReport:
    return IndexBuilder(store).ingest(records, IngestOptions(**options))


def merger_corpus() -> list[IngestRecord]:
    """Two documents mention "merger" (twice and once), a third does not."""
    return [
        make_record(
            "allen-p/inbox/1.",
            "merger merger secret plus padding to exceed fifty characters total",
            sender="phillip.allen@enron.com",
        ),
        make_record(
            "allen-p/inbox/2.",
            "merger public disclosure padding text to exceed fifty chars",
            sender="john.lavorato@enron.com",
        ),
        make_record(
            "allen-p/inbox/3.",
            "quarterly earnings call scheduled for next tuesday afternoon",
            sender="phillip.allen@enron.com",
        ),
    ]


def raw_message(subject: str, sender: str, body: str, *, to: str = "team@enron.com") -> str:
    """Render a minimal header block plus body as found in the CSV export."""
    return (
        "Message-ID: <1.JavaMail.evans@thyme>\n"
        "Date: Mon, 14 May 2001 16:39:00 -0700 (PDT)\n"
        f"From: {sender}\n"
        f"To: {to}\n"
        f"Subject: {subject}\n"
        "Mime-Version: 1.0\n"
        "\n"
        f"{body}\n"
    )
