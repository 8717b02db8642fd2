"""Canonical keys used to skip re-indexing the same document.

Two policies exist and they are not interchangeable:

- ``content``: SHA-256 over ``normalize(subject) + "|" + normalize(body)``.
  Documents with identical normalized content are merged even when they
  come from different source paths. This is the default.
- ``path``: a fast BLAKE2b digest of the source path alone. Content-identical
  documents at different paths are kept separate; only re-ingestion of the
  same path is suppressed (which the unique source path already ensures).
"""

from __future__ import annotations

from collections.abc import Callable
import hashlib
from typing import Literal

from mail_search.domain.model import IngestRecord
from mail_search.search.analyzers import normalize


DedupPolicy = Literal["content", "path"]


def content_key(subject: str | None, body: str | None) -> str:
    """Hex SHA-256 digest of the normalized subject and body.

    Examples:
        >>> content_key("Hi", "Body.") == content_key("hi!", "body")
        True
    """
    canonical = f"{normalize(subject)}|{normalize(body)}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest().upper()


def source_path_key(source_path: str) -> str:
    """Hex digest of the source path only."""
    return hashlib.blake2b(source_path.encode("utf-8"), digest_size=16).hexdigest().upper()


_KEY_BUILDERS: dict[str, Callable[[IngestRecord], str]] = {
    "content": lambda record: content_key(record.subject, record.body),
    "path": lambda record: source_path_key(record.source_path),
}


def get_key_builder(policy: str) -> Callable[[IngestRecord], str]:
    """Return the key function for a dedup policy name."""
    normalized = policy.lower()
    if normalized not in _KEY_BUILDERS:
        msg = f"Unknown dedup policy '{policy}'. Available: {sorted(_KEY_BUILDERS)}"
        raise ValueError(msg)
    return _KEY_BUILDERS[normalized]
