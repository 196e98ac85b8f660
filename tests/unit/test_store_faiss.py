"""Tests for the local FAISS vector store."""
import asyncio

import pytest

from docsqa import db
from docsqa.rag.store import VectorPoint
from docsqa.rag.store_faiss import FAISSVectorStore


def points():
    return [
        VectorPoint("a", [1.0, 0.0, 0.0], {"text": "about a"}),
        VectorPoint("b", [0.0, 1.0, 0.0], {"text": "about b"}),
        VectorPoint("ab", [1.0, 1.0, 0.0], {"text": "about a and b"}),
    ]


@pytest.fixture
def store(tmp_path, temp_db):
    store = FAISSVectorStore(index_dir=tmp_path / "collections")
    asyncio.run(store.ensure_collection("docs", 3))
    asyncio.run(store.upsert("docs", points()))
    return store


def test_ensure_collection_only_creates_once(tmp_path, temp_db):
    store = FAISSVectorStore(index_dir=tmp_path)

    assert asyncio.run(store.collection_exists("docs")) is False
    assert asyncio.run(store.ensure_collection("docs", 3)) is True
    assert asyncio.run(store.ensure_collection("docs", 3)) is False
    assert asyncio.run(store.collection_exists("docs")) is True


def test_search_scores_are_cosine_and_sorted(store):
    hits = asyncio.run(store.search("docs", [2.0, 0.0, 0.0], limit=5))

    assert [h.point_id for h in hits] == ["a", "ab", "b"]
    assert hits[0].score == pytest.approx(1.0, abs=1e-5)
    assert hits[1].score == pytest.approx(0.7071, abs=1e-3)
    assert hits[2].score == pytest.approx(0.0, abs=1e-5)
    assert hits[0].text == "about a"


def test_search_applies_threshold_and_limit(store):
    hits = asyncio.run(store.search("docs", [1.0, 0.0, 0.0], limit=5, score_threshold=0.65))
    assert [h.point_id for h in hits] == ["a", "ab"]

    hits = asyncio.run(store.search("docs", [1.0, 0.0, 0.0], limit=1, score_threshold=0.65))
    assert [h.point_id for h in hits] == ["a"]


def test_search_above_every_score_returns_nothing(store):
    assert asyncio.run(store.search("docs", [0.0, 0.0, 1.0], limit=5, score_threshold=0.65)) == []


def test_upsert_replaces_existing_point(store):
    asyncio.run(store.upsert("docs", [VectorPoint("a", [0.0, 0.0, 1.0], {"text": "new a"})]))

    assert asyncio.run(store.count("docs")) == 3
    assert db.get_chunk_count("docs") == 3

    hits = asyncio.run(store.search("docs", [0.0, 0.0, 1.0], limit=1))
    assert hits[0].point_id == "a"
    assert hits[0].text == "new a"


def test_dimension_mismatch_is_rejected(store):
    with pytest.raises(ValueError):
        asyncio.run(store.search("docs", [1.0, 0.0], limit=1))

    with pytest.raises(ValueError):
        asyncio.run(store.upsert("docs", [VectorPoint("x", [1.0], {"text": "x"})]))


def test_unknown_collection_is_an_error(tmp_path, temp_db):
    store = FAISSVectorStore(index_dir=tmp_path)

    with pytest.raises(ValueError):
        asyncio.run(store.search("missing", [1.0, 0.0, 0.0], limit=1))


def test_index_is_reloaded_from_disk(store, tmp_path):
    reopened = FAISSVectorStore(index_dir=tmp_path / "collections")

    hits = asyncio.run(reopened.search("docs", [0.0, 1.0, 0.0], limit=1))

    assert hits[0].point_id == "b"
    assert asyncio.run(reopened.count("docs")) == 3


def test_delete_collection_removes_index_and_payloads(store, tmp_path):
    assert asyncio.run(store.delete_collection("docs")) is True

    assert not (tmp_path / "collections" / "docs").exists()
    assert db.get_chunk_count("docs") == 0
    assert asyncio.run(store.collection_exists("docs")) is False
