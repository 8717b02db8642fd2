"""End-to-end ingest and search over a small maildir-style corpus.

Run with: pytest tests/integration/test_search_pipeline.py -v
"""

from pathlib import Path

import pytest

from mail_search.config import Settings
from mail_search.search.sqlite_storage import SqliteIndexStore
from mail_search.service_layer.services import IndexService, SearchService
from tests.fixtures.email_corpus import PADDING, raw_message


pytestmark = pytest.mark.integration


@pytest.fixture
def maildir(tmp_path: Path) -> Path:
    root = tmp_path / "maildir"
    messages = {
        "allen-p/inbox/1.": raw_message("Deal", "phillip.allen@enron.com", "merger merger secret " + PADDING),
        "allen-p/inbox/2.": raw_message("Press", "john.lavorato@enron.com", "merger public disclosure " + PADDING),
        "allen-p/inbox/3.": raw_message("Q3", "phillip.allen@enron.com", "quarterly earnings call " + PADDING),
        "allen-p/sent/1.": raw_message("Deal", "phillip.allen@enron.com", "merger merger secret " + PADDING),
        "lay-k/inbox/1.": f"Forwarded without any headers, merger gossip and more {PADDING}",
        "lay-k/inbox/2.": raw_message("Hi", "kenneth.lay@enron.com", "see you"),
    }
    for relative, content in messages.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def built_index(maildir: Path, db_path: Path) -> Path:
    with SqliteIndexStore.open_for_writing(db_path) as store:
        report = IndexService(store, Settings(batch_size=2)).index(maildir)
    assert report.indexed == 4
    assert report.duplicates == 1
    assert report.skipped == 1
    return db_path


def _search(db_path: Path, query: str, **settings):
    with SqliteIndexStore.open_for_reading(db_path) as store:
        return SearchService(store, Settings(**settings)).search(query)


def test_exact_search_ranks_by_frequency(built_index: Path):
    response = _search(built_index, "merger")

    paths = [hit.document.source_path for hit in response.hits]
    assert paths[0] == "allen-p/inbox/1."
    assert set(paths) == {"allen-p/inbox/1.", "allen-p/inbox/2.", "lay-k/inbox/1."}
    assert "allen-p/inbox/3." not in paths


def test_headerless_message_is_searchable(built_index: Path):
    response = _search(built_index, "gossip")

    (hit,) = response.hits
    assert hit.document.source_path == "lay-k/inbox/1."
    assert hit.document.subject == ""
    assert hit.document.sender == ""


def test_misspelling_falls_back_to_same_documents(built_index: Path):
    exact = _search(built_index, "merger")
    fuzzy = _search(built_index, "mergre")

    assert fuzzy.expanded_terms
    assert {hit.document.id for hit in fuzzy.hits} == {hit.document.id for hit in exact.hits}


def test_empty_query_has_no_results(built_index: Path):
    response = _search(built_index, "")

    assert response.is_empty


def test_related_documents_by_sender(built_index: Path):
    response = _search(built_index, "merger")

    assert [hit.document.source_path for hit in response.related] == ["allen-p/inbox/3."]


def test_search_opens_index_read_only(built_index: Path):
    with SqliteIndexStore.open_for_reading(built_index) as store:
        assert store.connection.execute("PRAGMA query_only").fetchone()[0] == 1
