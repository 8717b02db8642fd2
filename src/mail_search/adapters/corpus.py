"""Corpus readers: raw message sources and header parsing.

Two source layouts are supported:

- a CSV export with ``file`` and ``message`` columns (one raw RFC-822 style
  message per row), and
- a directory tree of raw message files, one message per file.

Readers yield :class:`RawMessage` items without parsing them so a single
bad row surfaces as a ``MalformedRecordError`` inside the indexer rather
than aborting the stream.
"""

from __future__ import annotations

from collections.abc import Iterator
import csv
from dataclasses import dataclass
import logging
from pathlib import Path

from mail_search.domain.model import IngestRecord
from mail_search.errors import CorpusError, MalformedRecordError, UsageError


logger = logging.getLogger(__name__)

_HEADER_PREFIXES = {
    "Subject: ": "subject",
    "From: ": "sender",
    "To: ": "recipients",
    "Date: ": "date_sent",
}

_CSV_PATH_COLUMN = "file"
_CSV_MESSAGE_COLUMN = "message"
_CSV_FIELD_SIZE_LIMIT = 2**31 - 1

_SKIP_DIRS = {".git", ".hg", ".svn", "__pycache__"}


@dataclass(frozen=True)
class RawMessage:
    """One unparsed message as read from the corpus source."""

    source_path: str | None
    message: str | None
    location: str | None = None
    error: str | None = None


def parse_message(source_path: str, message: str) -> IngestRecord:
    """Split a raw message into headers and body.

    Header lines run until the first blank line; ``Subject:``, ``From:``,
    ``To:`` and ``Date:`` are recognized and everything else is ignored.
    Body lines are joined with single spaces. A message with no blank
    separator line at all is taken whole as the body with empty headers.

    Examples:
        >>> parse_message("a/1.", "Subject: Hi\\n\\nHello there").subject
        'Hi'
        >>> parse_message("a/2.", "no headers here").body
        'no headers here'
    """
    lines = [line.rstrip("\r") for line in message.split("\n")]
    separator = next((index for index, line in enumerate(lines) if not line.strip()), None)

    if separator is None:
        return IngestRecord(source_path=source_path, body=" ".join(lines).strip())

    headers: dict[str, str] = {}
    for line in lines[:separator]:
        for prefix, field_name in _HEADER_PREFIXES.items():
            if line.startswith(prefix):
                headers[field_name] = line[len(prefix) :].strip()
                break

    body = " ".join(lines[separator + 1 :]).strip()
    return IngestRecord(source_path=source_path, body=body, **headers)


def parse_raw_message(raw: RawMessage) -> IngestRecord:
    """Parse a ``RawMessage``; raise ``MalformedRecordError`` when it has no usable content."""
    if raw.error:
        raise MalformedRecordError(raw.error, source_path=raw.source_path)
    if not raw.source_path:
        raise MalformedRecordError(f"Missing source path ({raw.location or 'unknown location'})")
    if not isinstance(raw.message, str):
        raise MalformedRecordError("Missing message content", source_path=raw.source_path)
    return parse_message(raw.source_path, raw.message)


def read_csv_messages(path: Path) -> Iterator[RawMessage]:
    """Yield one ``RawMessage`` per CSV row (``file``, ``message`` columns)."""
    csv.field_size_limit(_CSV_FIELD_SIZE_LIMIT)
    try:
        with path.open(encoding="utf-8", errors="replace", newline="") as handle:
            reader = csv.DictReader(handle)
            if not reader.fieldnames or _CSV_PATH_COLUMN not in reader.fieldnames:
                raise CorpusError(f"{path} has no '{_CSV_PATH_COLUMN}' column (found {reader.fieldnames})")
            for row in reader:
                yield RawMessage(
                    source_path=row.get(_CSV_PATH_COLUMN),
                    message=row.get(_CSV_MESSAGE_COLUMN),
                    location=f"{path.name}:{reader.line_num}",
                )
    except csv.Error as exc:
        raise CorpusError(f"Unreadable CSV {path}: {exc}") from exc
    except OSError as exc:
        raise CorpusError(f"Failed to read {path}: {exc}") from exc


def read_directory_messages(root: Path) -> Iterator[RawMessage]:
    """Yield one ``RawMessage`` per regular file under ``root``, in sorted order.

    Source paths are POSIX paths relative to ``root``. Files that cannot be
    read are yielded with ``error`` set.
    """
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in _SKIP_DIRS or part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        source_path = relative.as_posix()
        try:
            message = path.read_bytes().decode("utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            yield RawMessage(source_path=source_path, message=None, location=str(path), error=str(exc))
            continue
        yield RawMessage(source_path=source_path, message=message, location=str(path))


def iter_raw_messages(source: str | Path) -> Iterator[RawMessage]:
    """Dispatch on the source layout: a directory or a CSV file."""
    path = Path(source).expanduser()
    if path.is_dir():
        logger.info("Reading message files under %s", path)
        return read_directory_messages(path)
    if path.is_file():
        logger.info("Reading CSV corpus %s", path)
        return read_csv_messages(path)
    raise UsageError(f"Corpus source not found: {source}")
