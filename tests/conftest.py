"""Shared test fixtures and configuration."""

from collections.abc import Iterator
import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
for entry in (REPO_ROOT, REPO_ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from mail_search.search.sqlite_storage import SqliteIndexStore
from tests.fixtures.email_corpus import ingest, merger_corpus


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep settings deterministic: no MAIL_SEARCH_* vars, no stray .env file."""
    for key in list(os.environ):
        if key.upper().startswith("MAIL_SEARCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "index" / "mail_search.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[SqliteIndexStore]:
    index_store = SqliteIndexStore.open_for_writing(db_path)
    try:
        yield index_store
    finally:
        index_store.close()


@pytest.fixture
def merger_store(store: SqliteIndexStore) -> SqliteIndexStore:
    ingest(store, merger_corpus())
    return store
