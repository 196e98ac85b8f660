"""Pytest configuration and fixtures for unit tests."""
from typing import Callable

import pytest

from docsqa import db
from docsqa.config import ClientConfig
from docsqa.rag.store import RetrievedChunk

from fakes import CHAT_URL, EMBED_URL


@pytest.fixture
def embed_config() -> ClientConfig:
    return ClientConfig(endpoint_url=EMBED_URL, model_name="bge-m3", timeout=5.0)


@pytest.fixture
def chat_config() -> ClientConfig:
    return ClientConfig(endpoint_url=CHAT_URL, model_name="deepseek-r1:1.5b")


@pytest.fixture
def search_config() -> ClientConfig:
    return ClientConfig(endpoint_url="", limit=5, score_threshold=0.65)


@pytest.fixture
def make_chunk() -> Callable[..., RetrievedChunk]:
    def factory(text: str, score: float = 0.9, point_id: str = "p") -> RetrievedChunk:
        return RetrievedChunk(point_id=point_id, score=score, payload={"text": text})

    return factory


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the SQLite payload store at a temporary file."""
    path = tmp_path / "test.sqlite"
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_database()
    return path
