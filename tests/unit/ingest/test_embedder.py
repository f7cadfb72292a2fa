"""Tests for the embedding generator."""

from __future__ import annotations

import pytest

from avatar_rag.errors import ContentTooLargeError, EmbeddingProviderError
from avatar_rag.ingest.chunker import chunk_text
from avatar_rag.ingest.embedder import EmbeddingConfig, EmbeddingGenerator


class _FixedProvider:
    def __init__(self, vector: list[float]) -> None:
        self.vector = vector
        self.calls: list[list[str]] = []

    async def create_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [list(self.vector) for _ in texts]


class _ShortProvider:
    async def create_embeddings(self, texts: list[str]) -> list[list[float]]:
        return [[1.0, 0.0, 0.0]]


async def test_embed_single_text_returns_vector(embedder):
    vector = await embedder.embed("Which camera do you use?")
    assert vector == [1.0, 0.0, 0.0]


async def test_embed_list_returns_vectors_in_order(embedder):
    vectors = await embedder.embed(["my recipe", "new lens", "hello"])
    assert vectors == [[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]


async def test_embed_cleans_text_before_sending(embedder, embedding_provider):
    await embedder.embed("  lots   of \t space\r\n\n\nhere ")
    assert embedding_provider.calls == [["lots of space\nhere"]]


async def test_embed_batches_by_batch_size():
    provider = _FixedProvider([0.5, 0.5])
    gen = EmbeddingGenerator(provider, EmbeddingConfig(dimensions=2, batch_size=2))
    vectors = await gen.embed(["a", "b", "c", "d", "e"])
    assert len(vectors) == 5
    assert [len(batch) for batch in provider.calls] == [2, 2, 1]


async def test_embed_too_large_raises_before_provider_call():
    provider = _FixedProvider([0.5, 0.5])
    gen = EmbeddingGenerator(provider, EmbeddingConfig(dimensions=2, max_tokens=10))
    with pytest.raises(ContentTooLargeError) as exc_info:
        await gen.embed("x" * 41)
    assert exc_info.value.estimated_tokens == 11
    assert exc_info.value.max_tokens == 10
    assert provider.calls == []


async def test_embed_dimension_mismatch_is_malformed():
    gen = EmbeddingGenerator(_FixedProvider([0.1, 0.2]), EmbeddingConfig(dimensions=3))
    with pytest.raises(EmbeddingProviderError) as exc_info:
        await gen.embed("text")
    assert exc_info.value.kind == "malformed"


async def test_embed_wrong_vector_count_is_malformed():
    gen = EmbeddingGenerator(_ShortProvider(), EmbeddingConfig(dimensions=3))
    with pytest.raises(EmbeddingProviderError, match="Expected 2 embeddings"):
        await gen.embed(["one", "two"])


async def test_embed_chunks_attaches_vectors_without_touching_text(embedder):
    chunks = chunk_text("My favourite camera is small. " * 80, chunk_size=500, overlap=50)
    embedded = await embedder.embed_chunks(chunks)

    assert len(embedded) == len(chunks)
    for before, after in zip(chunks, embedded):
        assert after.text == before.text
        assert after.start_char == before.start_char
        assert after.embedding == (1.0, 0.0, 0.0)
        assert after.token_estimate > 0
        assert before.embedding is None


async def test_embed_chunks_empty(embedder, embedding_provider):
    assert await embedder.embed_chunks([]) == []
    assert embedding_provider.calls == []


def test_config_validation():
    with pytest.raises(ValueError):
        EmbeddingConfig(batch_size=0)
    with pytest.raises(ValueError):
        EmbeddingConfig(dimensions=0)
