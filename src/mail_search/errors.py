"""Exception taxonomy shared by ingestion, search and the command layer."""

from __future__ import annotations


class MailSearchError(Exception):
    """Base class for all mail_search errors."""


class MalformedRecordError(MailSearchError):
    """A single ingestion record could not be turned into a document.

    Raised per record and recovered locally by the indexer.
    """

    def __init__(self, message: str, *, source_path: str | None = None) -> None:
        super().__init__(message)
        self.source_path = source_path


class StorageError(MailSearchError):
    """The index database could not be opened, written or queried."""


class UsageError(MailSearchError):
    """Invalid command invocation."""


class CorpusError(MailSearchError):
    """The corpus source could not be read as a whole (not a single bad record)."""
