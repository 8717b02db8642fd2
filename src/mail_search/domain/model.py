"""Domain model - entities and value objects.

Uses Pydantic dataclasses so records are validated at construction time:
a record that cannot be coerced into the expected shape is rejected before
it reaches the indexer.
"""

from collections.abc import Mapping
from typing import Any, Self

from pydantic import Field, ValidationError, field_validator
from pydantic.dataclasses import dataclass

from mail_search.errors import MalformedRecordError


_RECORD_TEXT_FIELDS = ("subject", "sender", "recipients", "date_sent", "body")


@dataclass(frozen=True)
class IngestRecord:
    """Value object produced by a corpus reader for one message.

    Every field except ``source_path`` may be empty. Header formatting is
    not validated here; that belongs to whoever produced the record.
    """

    source_path: str = Field(min_length=1)
    subject: str = ""
    sender: str = ""
    recipients: str = ""
    date_sent: str = ""
    body: str = ""

    @field_validator(*_RECORD_TEXT_FIELDS, mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a record from a loosely typed mapping.

        Accepts both snake_case and the camelCase keys used by external
        exporters (``sourcePath``, ``dateSent``).

        Raises:
            MalformedRecordError: if the mapping cannot form a valid record.
        """
        if not isinstance(data, Mapping):
            raise MalformedRecordError(f"Expected a mapping, got {type(data).__name__}")

        source_path = data.get("source_path", data.get("sourcePath"))
        try:
            return cls(
                source_path=source_path,
                subject=data.get("subject"),
                sender=data.get("sender"),
                recipients=data.get("recipients"),
                date_sent=data.get("date_sent", data.get("dateSent")),
                body=data.get("body"),
            )
        except ValidationError as exc:
            source = source_path if isinstance(source_path, str) else None
            raise MalformedRecordError(
                f"Invalid record: {exc.error_count()} validation error(s)", source_path=source
            ) from exc


@dataclass(frozen=True)
class Document:
    """A stored document as read back from the index.

    ``id`` is the surrogate key assigned by storage on insertion.
    """

    id: int
    source_path: str
    subject: str = ""
    sender: str = ""
    recipients: str = ""
    date_sent: str = ""
    body: str = ""
    content_key: str = ""

    @field_validator(*_RECORD_TEXT_FIELDS, "content_key", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def file_name(self) -> str:
        """Last component of the source path."""
        normalized = self.source_path.replace("\\", "/").rstrip("/")
        return normalized.rsplit("/", 1)[-1]
