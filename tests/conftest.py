"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from avatar_rag.db.connection import Database
from avatar_rag.db.repository import VectorStore
from avatar_rag.ingest.embedder import EmbeddingConfig, EmbeddingGenerator
from avatar_rag.rag.generator import GenerationConfig, ResponseGenerator

# Three-dimensional topic vectors keep similarity arithmetic readable in tests.
CAMERA = [1.0, 0.0, 0.0]
COOKING = [0.0, 1.0, 0.0]
OTHER = [0.0, 0.0, 1.0]
DIMS = 3


class FakeEmbeddingProvider:
    """Maps text to a topic vector by keyword; records every batch."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def create_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector_for(t) for t in texts]

    @staticmethod
    def vector_for(text: str) -> list[float]:
        lowered = text.lower()
        if "camera" in lowered or "lens" in lowered:
            return list(CAMERA)
        if "cook" in lowered or "recipe" in lowered:
            return list(COOKING)
        return list(OTHER)


class FakeChatProvider:
    """Returns a canned reply; records messages and sampling kwargs."""

    def __init__(self, reply: str = "  Here is my answer.  ") -> None:
        self.reply = reply
        self.calls: list[dict] = []

    async def create_chat_completion(self, messages: list[dict], **kwargs) -> str:
        self.calls.append({"messages": messages, **kwargs})
        return self.reply

    @property
    def last_system_prompt(self) -> str:
        return self.calls[-1]["messages"][0]["content"]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.open()
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_db):
    return VectorStore(tmp_db, dimensions=DIMS)


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def chat_provider():
    return FakeChatProvider()


@pytest.fixture
def embedder(embedding_provider):
    return EmbeddingGenerator(embedding_provider, EmbeddingConfig(dimensions=DIMS))


@pytest.fixture
def generator(chat_provider):
    return ResponseGenerator(chat_provider, GenerationConfig())
