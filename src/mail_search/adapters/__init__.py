"""Adapters between external corpus formats and the domain model."""

from mail_search.adapters.corpus import (
    RawMessage,
    iter_raw_messages,
    parse_message,
    parse_raw_message,
    read_csv_messages,
    read_directory_messages,
)


__all__ = [
    "RawMessage",
    "iter_raw_messages",
    "parse_message",
    "parse_raw_message",
    "read_csv_messages",
    "read_directory_messages",
]
