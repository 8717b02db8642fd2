"""SQLite storage for the email inverted index.

One database file holds two tables:

- ``documents``: one row per ingested message, unique by source path and by
  content key, with an autoincrement surrogate id.
- ``postings``: one row per (term, document) pair with the term frequency,
  clustered on ``(term, document_id)`` so per-term lookups are a range scan.

The store is an explicit handle passed to the indexer and the query
components; there is no module-level connection.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
from typing import Any

from mail_search.domain.model import Document, IngestRecord
from mail_search.errors import StorageError


logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = (
    "id",
    "source_path",
    "subject",
    "sender",
    "recipients",
    "date_sent",
    "body",
    "content_key",
)

_DOCUMENT_SELECT = f"SELECT {', '.join(_DOCUMENT_COLUMNS)} FROM documents"

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds
_MAX_SQL_VARIABLES = 500

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_path TEXT NOT NULL UNIQUE,
        subject TEXT,
        sender TEXT,
        recipients TEXT,
        date_sent TEXT,
        body TEXT,
        content_key TEXT UNIQUE
    );

    CREATE TABLE IF NOT EXISTS postings (
        term TEXT NOT NULL,
        document_id INTEGER NOT NULL,
        frequency INTEGER NOT NULL,
        PRIMARY KEY (term, document_id),
        FOREIGN KEY (document_id) REFERENCES documents(id)
    ) WITHOUT ROWID;
"""

# Single writer, bulk load
_WRITE_PRAGMAS = (
    ("page_size", 4096),
    ("journal_mode", "WAL"),
    ("synchronous", "NORMAL"),
    ("foreign_keys", "OFF"),
    ("cache_size", -65536),
    ("temp_store", "MEMORY"),
    ("cache_spill", "FALSE"),
)

_READ_PRAGMAS = (
    ("busy_timeout", 30000),
    ("cache_size", -65536),
    ("mmap_size", 134217728),
    ("temp_store", "MEMORY"),
    ("query_only", 1),
)

_SECONDARY_INDEXES = """
    CREATE INDEX IF NOT EXISTS idx_postings_document ON postings(document_id);
    CREATE INDEX IF NOT EXISTS idx_documents_sender ON documents(sender);
"""


def _row_to_document(row: Sequence[Any]) -> Document:
    return Document(**dict(zip(_DOCUMENT_COLUMNS, row, strict=True)))


def _chunked(values: Sequence[Any], size: int = _MAX_SQL_VARIABLES) -> Iterator[Sequence[Any]]:
    for offset in range(0, len(values), size):
        yield values[offset : offset + size]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Iterable[tuple[str, Any]]) -> None:
    for name, value in pragmas:
        conn.execute(f"PRAGMA {name} = {value}")


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


class SqliteIndexStore:
    """Document and posting storage backed by a single SQLite file.

    Open with :meth:`open_for_writing` during ingestion (creates the schema,
    write PRAGMAs) or :meth:`open_for_reading` for searches (query-only
    connection, the file must already exist).
    """

    def __init__(self, db_path: str | Path, *, read_only: bool = False) -> None:
        self.db_path = Path(db_path)
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = None
        self._in_transaction = False

    # ------------------------------------------------------------------
    # Lifecycle

    @classmethod
    def open_for_writing(cls, db_path: str | Path) -> SqliteIndexStore:
        store = cls(db_path, read_only=False)
        store.open()
        return store

    @classmethod
    def open_for_reading(cls, db_path: str | Path) -> SqliteIndexStore:
        store = cls(db_path, read_only=True)
        store.open()
        return store

    def open(self) -> None:
        if self._conn is not None:
            return
        if self.read_only and not self.db_path.exists():
            raise StorageError(f"Index database not found: {self.db_path}. Run 'index' first.")
        try:
            if not self.read_only:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode: transactions are managed explicitly with BEGIN/COMMIT
            conn = sqlite3.connect(self.db_path, isolation_level=None)
            if self.read_only:
                _apply_pragmas(conn, _READ_PRAGMAS)
            else:
                _apply_pragmas(conn, _WRITE_PRAGMAS)
                conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open index database {self.db_path}: {exc}") from exc
        self._conn = conn
        logger.debug("Opened %s index database %s", "read-only" if self.read_only else "writable", self.db_path)

    def close(self) -> None:
        if self._conn is None:
            return
        if self._in_transaction:
            self.rollback()
        try:
            self._conn.close()
        except sqlite3.Error as close_error:
            logger.warning("Failed to close SQLite connection for %s: %s", self.db_path, close_error)
        self._conn = None

    def __enter__(self) -> SqliteIndexStore:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @staticmethod
    def reset(db_path: str | Path) -> bool:
        """Delete an index database and its WAL sidecars for a fresh build."""
        path = Path(db_path)
        removed = False
        for candidate in (path, path.with_name(f"{path.name}-wal"), path.with_name(f"{path.name}-shm")):
            try:
                candidate.unlink()
                removed = True
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(f"Failed to remove {candidate}: {exc}") from exc
        return removed

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Index store is not open")
        return self._conn

    def _execute(self, sql: str, params: Sequence[Any] | Mapping[str, Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Index query failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Transactions

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def begin(self) -> None:
        self._execute("BEGIN")
        self._in_transaction = True

    def commit(self) -> None:
        if not self._in_transaction:
            return
        self._execute("COMMIT")
        self._in_transaction = False

    def rollback(self) -> None:
        if not self._in_transaction:
            return
        self._in_transaction = False
        try:
            self.connection.execute("ROLLBACK")
        except sqlite3.Error as exc:
            logger.warning("Rollback failed for %s: %s", self.db_path, exc)

    @contextmanager
    def transaction(self) -> Iterator[SqliteIndexStore]:
        """Run a block in one transaction, rolling back on any exception."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    # ------------------------------------------------------------------
    # Writes

    def insert_document(self, record: IngestRecord, content_key: str) -> tuple[bool, int | None]:
        """Insert a document unless its source path or content key exists.

        Returns:
            ``(created, document_id)``. When the row already existed,
            ``created`` is False and the id is that of the existing row.
        """
        cursor = self._execute(
            "INSERT OR IGNORE INTO documents "
            "(source_path, subject, sender, recipients, date_sent, body, content_key) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                record.source_path,
                record.subject,
                record.sender,
                record.recipients,
                record.date_sent,
                record.body,
                content_key,
            ),
        )
        if cursor.rowcount == 1:
            return True, cursor.lastrowid

        row = self._execute(
            "SELECT id FROM documents WHERE source_path = ? OR content_key = ? ORDER BY id LIMIT 1",
            (record.source_path, content_key),
        ).fetchone()
        return False, row[0] if row else None

    def upsert_postings(self, document_id: int, frequencies: Mapping[str, int]) -> None:
        """Insert or replace the postings of one document."""
        if not frequencies:
            return
        try:
            self.connection.executemany(
                "INSERT OR REPLACE INTO postings (term, document_id, frequency) VALUES (?, ?, ?)",
                ((term, document_id, int(frequency)) for term, frequency in frequencies.items()),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write postings for document {document_id}: {exc}") from exc

    def create_secondary_indexes(self) -> None:
        """Create lookup indexes deferred until after bulk load."""
        try:
            self.connection.executescript(_SECONDARY_INDEXES)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to create secondary indexes: {exc}") from exc

    def optimize(self) -> None:
        """Refresh planner statistics and keep the WAL bounded after writes."""
        self._execute("PRAGMA optimize")
        self._execute("PRAGMA wal_checkpoint(TRUNCATE)")

    # ------------------------------------------------------------------
    # Reads

    def document_count(self) -> int:
        return int(self._execute("SELECT COUNT(*) FROM documents").fetchone()[0])

    def postings_for_term(self, term: str) -> dict[int, int]:
        """Return ``{document_id: frequency}`` for one term."""
        cursor = self._execute("SELECT document_id, frequency FROM postings WHERE term = ?", (term,))
        return {int(document_id): int(frequency) for document_id, frequency in cursor}

    def postings_for_document(self, document_id: int) -> dict[str, int]:
        """Return ``{term: frequency}`` for one document."""
        cursor = self._execute("SELECT term, frequency FROM postings WHERE document_id = ?", (document_id,))
        return {term: int(frequency) for term, frequency in cursor}

    def terms_with_prefix(self, prefix: str, limit: int | None = None) -> list[str]:
        """Distinct vocabulary terms starting with ``prefix``, alphabetically."""
        sql = "SELECT DISTINCT term FROM postings WHERE term LIKE ? ESCAPE '\\' ORDER BY term"
        params: list[Any] = [_escape_like(prefix) + "%"]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [row[0] for row in self._execute(sql, params)]

    def terms_in_length_range(self, min_length: int, max_length: int, limit: int | None = None) -> list[str]:
        """Distinct vocabulary terms whose length lies in ``[min_length, max_length]``."""
        sql = "SELECT DISTINCT term FROM postings WHERE length(term) BETWEEN ? AND ? ORDER BY term"
        params: list[Any] = [max(1, min_length), max_length]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [row[0] for row in self._execute(sql, params)]

    def get_document(self, document_id: int) -> Document | None:
        row = self._execute(f"{_DOCUMENT_SELECT} WHERE id = ?", (document_id,)).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(self, source_path: str) -> Document | None:
        row = self._execute(f"{_DOCUMENT_SELECT} WHERE source_path = ?", (source_path,)).fetchone()
        return _row_to_document(row) if row else None

    def get_documents(self, document_ids: Iterable[int]) -> dict[int, Document]:
        """Fetch documents by id; missing ids are absent from the result."""
        unique_ids = list(dict.fromkeys(document_ids))
        documents: dict[int, Document] = {}
        for chunk in _chunked(unique_ids):
            cursor = self._execute(f"{_DOCUMENT_SELECT} WHERE id IN ({_placeholders(len(chunk))})", tuple(chunk))
            for row in cursor:
                document = _row_to_document(row)
                documents[document.id] = document
        return documents

    def documents_by_sender(
        self,
        senders: Sequence[str],
        *,
        exclude_ids: Iterable[int] = (),
        limit: int = 10,
    ) -> list[Document]:
        """Documents from any of ``senders``, newest id first, skipping ``exclude_ids``."""
        if not senders or limit <= 0:
            return []
        excluded = set(exclude_ids)
        cursor = self._execute(
            f"{_DOCUMENT_SELECT} WHERE sender IN ({_placeholders(len(senders))}) ORDER BY id DESC",
            tuple(senders),
        )
        documents: list[Document] = []
        for row in cursor:
            if row[0] in excluded:
                continue
            documents.append(_row_to_document(row))
            if len(documents) >= limit:
                break
        return documents

    def documents_sharing_terms(
        self,
        seed_ids: Sequence[int],
        *,
        exclude_ids: Iterable[int] = (),
        min_shared: int = 2,
        limit: int = 20,
    ) -> list[tuple[Document, int]]:
        """Documents sharing at least ``min_shared`` distinct terms with the seeds.

        Returns ``(document, shared_term_count)`` pairs, most shared first.
        """
        if not seed_ids or limit <= 0:
            return []
        seeds = list(dict.fromkeys(seed_ids))[:_MAX_SQL_VARIABLES]
        excluded = set(exclude_ids) | set(seeds)
        cursor = self._execute(
            "SELECT p.document_id, COUNT(DISTINCT p.term) AS shared_terms "
            "FROM postings p "
            "WHERE p.term IN ("
            f"  SELECT DISTINCT seed.term FROM postings seed WHERE seed.document_id IN ({_placeholders(len(seeds))})"
            ") "
            "GROUP BY p.document_id "
            "HAVING shared_terms >= ? "
            "ORDER BY shared_terms DESC, p.document_id DESC",
            (*seeds, min_shared),
        )
        ranked: list[tuple[int, int]] = []
        for document_id, shared in cursor:
            if document_id in excluded:
                continue
            ranked.append((int(document_id), int(shared)))
            if len(ranked) >= limit:
                break
        documents = self.get_documents(document_id for document_id, _ in ranked)
        return [(documents[document_id], shared) for document_id, shared in ranked if document_id in documents]
