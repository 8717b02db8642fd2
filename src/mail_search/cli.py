"""Command-line entry point: ``mail-search index`` and ``mail-search search``.

Argument tokens are resolved once into an :class:`IndexCommand` or a
:class:`SearchCommand`; :func:`run` then executes the command against a
freshly opened index store.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import NoReturn, TextIO

from pydantic import ValidationError

from mail_search.config import Settings
from mail_search.domain.search import SearchResponse
from mail_search.errors import MailSearchError, UsageError
from mail_search.observability.logging import configure_logging
from mail_search.search.indexer import IngestionReport
from mail_search.search.sqlite_storage import SqliteIndexStore
from mail_search.service_layer.services import IndexService, SearchService


logger = logging.getLogger(__name__)

_RESULT_SEPARATOR = "-" * 50
_RELATED_SEPARATOR = "-" * 30


@dataclass(frozen=True)
class IndexCommand:
    """Build the index from a corpus source."""

    source: Path
    time_budget_minutes: float | None = None
    max_records: int | None = None
    batch_size: int | None = None
    fresh: bool = False


@dataclass(frozen=True)
class SearchCommand:
    """Run one query against the built index."""

    query: str
    related_strategy: str | None = None


Command = IndexCommand | SearchCommand


@dataclass(frozen=True)
class Invocation:
    """A parsed command plus the global options that shape its settings."""

    command: Command
    db_path: Path | None = None
    log_level: str | None = None
    json_logs: bool = False


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ``UsageError`` instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(f"{self.format_usage().strip()}\n{self.prog}: error: {message}")


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return parsed


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return parsed


def build_argument_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="mail-search",
        description="Build and query a keyword index over an email corpus",
    )
    parser.add_argument("--db", type=Path, default=None, help="Path to the index database")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Logging level (default: from settings)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")

    subparsers = parser.add_subparsers(dest="command", metavar="{index,search}", parser_class=_ArgumentParser)

    index_parser = subparsers.add_parser("index", help="Index a CSV export or a directory of messages")
    index_parser.add_argument("source", type=Path, help="CSV file with file/message columns, or a directory")
    index_parser.add_argument(
        "--time",
        dest="time_budget_minutes",
        type=_positive_float,
        default=None,
        metavar="MINUTES",
        help="Stop cleanly after this many minutes",
    )
    index_parser.add_argument("--max-records", type=_positive_int, default=None, help="Cap processed records")
    index_parser.add_argument("--batch-size", type=_positive_int, default=None, help="Documents per transaction")
    index_parser.add_argument("--fresh", action="store_true", help="Delete any existing index before building")

    search_parser = subparsers.add_parser("search", help="Search the index")
    search_parser.add_argument("query", nargs="+", help="Query terms; use 'and' / 'or' between terms")
    search_parser.add_argument(
        "--related",
        dest="related_strategy",
        choices=["sender", "shared-terms"],
        default=None,
        help="Related-documents strategy",
    )
    return parser


def parse_invocation(argv: Sequence[str] | None = None) -> Invocation:
    """Resolve raw argument tokens into an ``Invocation``.

    Raises:
        UsageError: on a missing command or malformed arguments.
    """
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    if args.command == "index":
        command: Command = IndexCommand(
            source=args.source,
            time_budget_minutes=args.time_budget_minutes,
            max_records=args.max_records,
            batch_size=args.batch_size,
            fresh=args.fresh,
        )
    elif args.command == "search":
        # A blank query is answered with "no results", not rejected
        command = SearchCommand(query=" ".join(args.query).strip(), related_strategy=args.related_strategy)
    else:
        parser.error("a command is required: index <source> | search <query>")

    return Invocation(command=command, db_path=args.db, log_level=args.log_level, json_logs=args.json_logs)


def run(command: Command, settings: Settings, out: TextIO) -> int:
    """Execute a resolved command. Returns the process exit code."""
    if isinstance(command, IndexCommand):
        return _run_index(command, settings, out)
    if isinstance(command, SearchCommand):
        return _run_search(command, settings, out)
    raise UsageError(f"Unsupported command: {command!r}")


def _run_index(command: IndexCommand, settings: Settings, out: TextIO) -> int:
    if not command.source.exists():
        raise UsageError(f"Corpus source not found: {command.source}")
    if command.batch_size is not None:
        settings = settings.with_overrides(batch_size=command.batch_size)
    if command.fresh and SqliteIndexStore.reset(settings.db_path):
        out.write(f"Deleted existing index {settings.db_path}\n")

    time_budget = command.time_budget_minutes * 60 if command.time_budget_minutes is not None else None
    with SqliteIndexStore.open_for_writing(settings.db_path) as store:
        report = IndexService(store, settings).index(
            command.source,
            time_budget_seconds=time_budget,
            max_records=command.max_records,
        )
    out.write(format_ingestion_report(report))
    return 0


def _run_search(command: SearchCommand, settings: Settings, out: TextIO) -> int:
    with SqliteIndexStore.open_for_reading(settings.db_path) as store:
        service = SearchService(store, settings, related_strategy=command.related_strategy)
        response = service.search(command.query)
    out.write(format_search_response(response, max_related=settings.max_related_shown))
    return 0


def format_ingestion_report(report: IngestionReport) -> str:
    lines = [
        f"Indexing complete. Processed {report.processed:,} records, skipped {report.skipped:,}.",
        f"New documents: {report.indexed:,}, duplicates: {report.duplicates:,}, errors: {report.errors:,}.",
        f"Time elapsed: {report.elapsed / 60:.1f} minutes ({report.records_per_second:.0f} records/sec)",
    ]
    if report.stop_reason:
        lines.append(f"Stopped early: {report.stop_reason.replace('_', ' ')}. The index is valid but partial.")
    return "\n".join(lines) + "\n"


def format_search_response(response: SearchResponse, *, max_related: int = 5) -> str:
    lines: list[str] = []
    if response.query.is_empty:
        lines.append("No searchable terms in query.")
        lines.append("No results found.")
        return "\n".join(lines) + "\n"

    lines.append(f"Searching for: {response.query.describe()}")
    if response.expanded_terms:
        lines.append(f"No exact matches found. Expanded to: {', '.join(response.expanded_terms)}")
    if response.is_empty:
        lines.append("No results found.")
        return "\n".join(lines) + "\n"

    lines.append(f"Found {response.total} results:")
    lines.append("")
    for hit in response.hits:
        lines.append(f"Score: {hit.score:.2f}")
        lines.append(f"From: {hit.document.sender}")
        lines.append(f"Subject: {hit.document.subject}")
        lines.append(f"File: {hit.document.file_name}")
        lines.append(f"Snippet: {hit.snippet}")
        lines.append(_RESULT_SEPARATOR)

    if response.related and max_related > 0:
        strategy = response.related[0].strategy
        lines.append("")
        lines.append(f"=== RELATED EMAILS (by {strategy}) ===")
        lines.append(f"Found {len(response.related)} related emails")
        for related in response.related[:max_related]:
            lines.append(f"From: {related.document.sender}")
            lines.append(f"Subject: {related.document.subject}")
            lines.append(f"File: {related.document.file_name}")
            lines.append(_RELATED_SEPARATOR)

    return "\n".join(lines) + "\n"


def main(argv: Sequence[str] | None = None, *, out: TextIO | None = None, err: TextIO | None = None) -> int:
    out = out or sys.stdout
    err = err or sys.stderr

    try:
        invocation = parse_invocation(argv)
        settings = Settings().with_overrides(
            db_path=invocation.db_path,
            log_level=invocation.log_level,
            log_json=invocation.json_logs or None,
        )
    except UsageError as exc:
        err.write(f"{exc}\n")
        return 1
    except ValidationError as exc:
        err.write(f"Invalid configuration: {exc}\n")
        return 1

    configure_logging(settings.log_level, settings.log_json, stream=err)

    try:
        return run(invocation.command, settings, out)
    except UsageError as exc:
        err.write(f"{exc}\n")
        return 1
    except MailSearchError as exc:
        logger.error("%s", exc)
        err.write(f"Error: {exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
