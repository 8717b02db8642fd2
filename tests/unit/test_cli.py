"""Unit tests for the command-line entry point."""

import csv
import io
import logging
from pathlib import Path

import pytest

from mail_search.cli import (
    IndexCommand,
    SearchCommand,
    format_ingestion_report,
    format_search_response,
    main,
    parse_invocation,
)
from mail_search.domain.model import Document
from mail_search.domain.search import ParsedQuery, RelatedHit, SearchHit, SearchResponse
from mail_search.errors import UsageError
from mail_search.search.indexer import IngestionReport
from tests.fixtures.email_corpus import PADDING, raw_message


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def corpus_csv(tmp_path: Path) -> Path:
    path = tmp_path / "emails.csv"
    rows = [
        ("allen-p/inbox/1.", raw_message("Merger", "phillip.allen@enron.com", "merger merger secret " + PADDING)),
        ("allen-p/inbox/2.", raw_message("Disclosure", "john.lavorato@enron.com", "merger public " + PADDING)),
        ("allen-p/inbox/3.", raw_message("Earnings", "phillip.allen@enron.com", "quarterly earnings " + PADDING)),
        ("allen-p/inbox/4.", raw_message("Tiny", "phillip.allen@enron.com", "too short")),
    ]
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["file", "message"])
        writer.writerows(rows)
    return path


def _run(*argv: str) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    code = main(list(argv), out=out, err=err)
    return code, out.getvalue(), err.getvalue()


class TestParseInvocation:
    def test_index_command(self, tmp_path: Path):
        invocation = parse_invocation(["--db", "x.db", "index", "emails.csv", "--time", "1.5", "--fresh"])

        assert invocation.db_path == Path("x.db")
        assert invocation.command == IndexCommand(source=Path("emails.csv"), time_budget_minutes=1.5, fresh=True)

    def test_search_command_joins_query_words(self):
        invocation = parse_invocation(["search", "merger", "and", "enron", "--related", "shared-terms"])

        assert invocation.command == SearchCommand(query="merger and enron", related_strategy="shared-terms")

    @pytest.mark.parametrize(
        "argv",
        [[], ["search"], ["index"], ["index", "x.csv", "--time", "0"], ["frobnicate"]],
    )
    def test_invalid_arguments_raise_usage_error(self, argv):
        with pytest.raises(UsageError):
            parse_invocation(argv)

    def test_blank_query_is_accepted(self):
        invocation = parse_invocation(["search", "  "])

        assert invocation.command == SearchCommand(query="")


class TestMain:
    def test_index_then_search(self, corpus_csv: Path, db_path: Path):
        code, out, _ = _run("--db", str(db_path), "index", str(corpus_csv))

        assert code == 0
        assert "Indexing complete. Processed 3 records, skipped 1." in out

        code, out, _ = _run("--db", str(db_path), "search", "merger")

        assert code == 0
        assert "Searching for: merger" in out
        assert "Found 2 results:" in out
        # Subject terms count toward the score
        assert out.index("Score: 3.00") < out.index("Score: 1.00")
        assert "From: phillip.allen@enron.com" in out
        assert "File: 1." in out

    def test_fuzzy_search_reports_expansion(self, corpus_csv: Path, db_path: Path):
        _run("--db", str(db_path), "index", str(corpus_csv))

        code, out, _ = _run("--db", str(db_path), "search", "mreger")

        assert code == 0
        assert "No exact matches found. Expanded to: merger" in out
        assert "Found 2 results:" in out

    def test_query_without_terms_reports_no_results(self, corpus_csv: Path, db_path: Path):
        _run("--db", str(db_path), "index", str(corpus_csv))

        code, out, _ = _run("--db", str(db_path), "search", "a", "an")

        assert code == 0
        assert "No searchable terms in query." in out
        assert "No results found." in out

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_reports_no_results(self, corpus_csv: Path, db_path: Path, query: str):
        _run("--db", str(db_path), "index", str(corpus_csv))

        code, out, err = _run("--db", str(db_path), "search", query)

        assert code == 0
        assert "No results found." in out
        assert "usage:" not in err

    def test_search_without_index_fails(self, db_path: Path):
        code, out, err = _run("--db", str(db_path), "search", "merger")

        assert code == 1
        assert out == ""
        assert "Index database not found" in err

    def test_missing_command_fails_with_usage(self):
        code, _, err = _run()

        assert code == 1
        assert "usage: mail-search" in err

    def test_missing_source_fails(self, tmp_path: Path, db_path: Path):
        code, _, err = _run("--db", str(db_path), "index", str(tmp_path / "missing.csv"))

        assert code == 1
        assert "Corpus source not found" in err

    def test_fresh_rebuild_deletes_existing_index(self, corpus_csv: Path, db_path: Path):
        _run("--db", str(db_path), "index", str(corpus_csv))

        code, out, _ = _run("--db", str(db_path), "index", str(corpus_csv), "--fresh")

        assert code == 0
        assert f"Deleted existing index {db_path}" in out
        assert "New documents: 3, duplicates: 0" in out

    def test_reindex_without_fresh_counts_duplicates(self, corpus_csv: Path, db_path: Path):
        _run("--db", str(db_path), "index", str(corpus_csv))

        _, out, _ = _run("--db", str(db_path), "index", str(corpus_csv))

        assert "New documents: 0, duplicates: 3" in out

    def test_max_records_reports_early_stop(self, corpus_csv: Path, db_path: Path):
        code, out, _ = _run("--db", str(db_path), "index", str(corpus_csv), "--max-records", "1")

        assert code == 0
        assert "Processed 1 records" in out
        assert "Stopped early: max records." in out

    def test_invalid_environment_configuration(self, monkeypatch, db_path: Path):
        monkeypatch.setenv("MAIL_SEARCH_BATCH_SIZE", "0")

        code, _, err = _run("--db", str(db_path), "search", "merger")

        assert code == 1
        assert "Invalid configuration" in err

    def test_database_path_from_environment(self, monkeypatch, corpus_csv: Path, tmp_path: Path):
        target = tmp_path / "env.db"
        monkeypatch.setenv("MAIL_SEARCH_DB_PATH", str(target))

        code, _, _ = _run("index", str(corpus_csv))

        assert code == 0
        assert target.exists()


class TestFormatting:
    def test_ingestion_report(self):
        report = IngestionReport(processed=1200, indexed=1100, duplicates=100, skipped=7, errors=2, elapsed=120.0)

        text = format_ingestion_report(report)

        assert text.splitlines() == [
            "Indexing complete. Processed 1,200 records, skipped 7.",
            "New documents: 1,100, duplicates: 100, errors: 2.",
            "Time elapsed: 2.0 minutes (10 records/sec)",
        ]

    def test_related_block(self):
        documents = [
            Document(id=n, source_path=f"allen-p/inbox/{n}.", subject=f"S{n}", sender="a@enron.com", body="gas")
            for n in range(1, 5)
        ]
        response = SearchResponse(
            query=ParsedQuery(terms=("gas",)),
            hits=[SearchHit(document=document, score=1.0, snippet="gas...") for document in documents[:3]],
            total=3,
            related=[RelatedHit(document=documents[3], score=1.0, strategy="sender")],
        )

        text = format_search_response(response)

        assert "=== RELATED EMAILS (by sender) ===" in text
        assert "Found 1 related emails" in text
        assert text.count("-" * 50) == 3
        assert text.rstrip().endswith("-" * 30)

    def test_related_block_hidden_when_disabled(self):
        document = Document(id=1, source_path="a/1.", body="gas")
        response = SearchResponse(
            query=ParsedQuery(terms=("gas",)),
            hits=[SearchHit(document=document, score=1.0)],
            total=1,
            related=[RelatedHit(document=document, score=1.0, strategy="sender")],
        )

        assert "RELATED" not in format_search_response(response, max_related=0)
