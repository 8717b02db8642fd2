"""Unit tests for boolean retrieval and frequency scoring."""

import pytest

from mail_search.domain.search import Operator
from mail_search.search.retrieval import BooleanRetriever
from mail_search.search.sqlite_storage import SqliteIndexStore
from tests.fixtures.email_corpus import PADDING, ingest, make_record


pytestmark = pytest.mark.unit


@pytest.fixture
def energy_store(store: SqliteIndexStore) -> SqliteIndexStore:
    ingest(
        store,
        [
            make_record("a/1.", f"gas gas power {PADDING}"),
            make_record("a/2.", f"power power power {PADDING}"),
            make_record("a/3.", f"gas trading desk {PADDING}"),
            make_record("a/4.", f"nothing relevant here {PADDING}"),
        ],
    )
    return store


def _path_ids(store: SqliteIndexStore) -> dict[str, int]:
    return {path: store.get_document_by_path(path).id for path in ("a/1.", "a/2.", "a/3.", "a/4.")}


def test_merger_query_ranks_by_frequency(merger_store: SqliteIndexStore):
    results = BooleanRetriever(merger_store).search(["merger"])

    first = merger_store.get_document_by_path("allen-p/inbox/1.")
    second = merger_store.get_document_by_path("allen-p/inbox/2.")
    assert [(item.document_id, item.score) for item in results] == [(first.id, 2.0), (second.id, 1.0)]


def test_or_returns_union_with_summed_scores(energy_store: SqliteIndexStore):
    ids = _path_ids(energy_store)

    results = BooleanRetriever(energy_store).search(["gas", "power"], Operator.OR)

    scores = {item.document_id: item.score for item in results}
    assert scores == {ids["a/1."]: 3.0, ids["a/2."]: 3.0, ids["a/3."]: 1.0}


def test_and_returns_intersection(energy_store: SqliteIndexStore):
    ids = _path_ids(energy_store)

    results = BooleanRetriever(energy_store).search(["gas", "power"], Operator.AND)

    assert [(item.document_id, item.score) for item in results] == [(ids["a/1."], 3.0)]


def test_and_is_subset_of_or(energy_store: SqliteIndexStore):
    retriever = BooleanRetriever(energy_store)
    for terms in (["gas", "power"], ["gas", "trading"], ["power", "desk", "padding"]):
        and_ids = {item.document_id for item in retriever.search(terms, Operator.AND)}
        or_ids = {item.document_id for item in retriever.search(terms, Operator.OR)}
        assert and_ids <= or_ids


def test_single_term_and_equals_or(energy_store: SqliteIndexStore):
    retriever = BooleanRetriever(energy_store)

    assert retriever.search(["gas"], Operator.AND) == retriever.search(["gas"], Operator.OR)


def test_and_with_unknown_term_is_empty(energy_store: SqliteIndexStore):
    assert BooleanRetriever(energy_store).search(["gas", "unobtainium"], Operator.AND) == []


def test_or_ignores_unknown_terms(energy_store: SqliteIndexStore):
    results = BooleanRetriever(energy_store).search(["trading", "unobtainium"], Operator.OR)

    assert len(results) == 1


def test_ties_break_on_ascending_document_id(energy_store: SqliteIndexStore):
    ids = _path_ids(energy_store)

    results = BooleanRetriever(energy_store).search(["gas", "power"])

    assert [item.document_id for item in results[:2]] == sorted([ids["a/1."], ids["a/2."]])


def test_repeated_terms_count_once(energy_store: SqliteIndexStore):
    retriever = BooleanRetriever(energy_store)

    assert retriever.search(["gas", "gas"]) == retriever.search(["gas"])


def test_empty_terms_return_nothing(energy_store: SqliteIndexStore):
    assert BooleanRetriever(energy_store).search([], Operator.AND) == []
