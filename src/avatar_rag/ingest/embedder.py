"""Embedding generator: clean, guard, batch and validate embedding calls.

Text is normalized with ``clean`` before embedding. The token-estimate guard
runs before any provider call; returned vectors are checked against the
configured dimension.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from avatar_rag.db.models import ContentChunk
from avatar_rag.errors import MALFORMED, ContentTooLargeError, EmbeddingProviderError
from avatar_rag.ingest.normalizer import clean, estimate_token_count
from avatar_rag.rag.llm_client import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    max_tokens: int = 8000
    batch_size: int = 64
    num_retries: int = 3

    def __post_init__(self) -> None:
        if self.dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")


class EmbeddingGenerator:
    """Turn text into fixed-length vectors through an EmbeddingProvider.

    Args:
        provider: Any object implementing ``create_embeddings(texts)``.
        config: Dimensions, token guard and batch size.
    """

    def __init__(self, provider: EmbeddingProvider, config: EmbeddingConfig | None = None) -> None:
        self._provider = provider
        self._config = config or EmbeddingConfig()

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    async def embed(self, text: str | list[str]) -> list[float] | list[list[float]]:
        """Embed one text (returns a vector) or a list of texts (returns a list).

        Raises:
            ContentTooLargeError: A text's token estimate exceeds ``max_tokens``.
            EmbeddingProviderError: Provider failure or a malformed vector.
        """
        if isinstance(text, str):
            vectors = await self._embed_many([text])
            return vectors[0]
        return await self._embed_many(list(text))

    async def embed_chunks(self, chunks: list[ContentChunk]) -> list[ContentChunk]:
        """Return copies of *chunks* with embeddings attached, in input order."""
        if not chunks:
            return []
        vectors = await self._embed_many([c.text for c in chunks])
        return [
            chunk.with_embedding(vector, estimate_token_count(chunk.text))
            for chunk, vector in zip(chunks, vectors)
        ]

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        cleaned = [clean(t) for t in texts]
        for t in cleaned:
            estimated = estimate_token_count(t)
            if estimated > self._config.max_tokens:
                raise ContentTooLargeError(estimated, self._config.max_tokens)

        vectors: list[list[float]] = []
        size = self._config.batch_size
        for i in range(0, len(cleaned), size):
            batch = cleaned[i : i + size]
            logger.debug("Embedding batch %d (%d texts)", i // size + 1, len(batch))
            result = await self._provider.create_embeddings(batch)
            if len(result) != len(batch):
                raise EmbeddingProviderError(
                    f"Expected {len(batch)} embeddings, got {len(result)}", kind=MALFORMED
                )
            for vector in result:
                self._check_dimensions(vector)
            vectors.extend(result)
        return vectors

    def _check_dimensions(self, vector: list[float]) -> None:
        if len(vector) != self._config.dimensions:
            raise EmbeddingProviderError(
                f"Embedding has {len(vector)} dimensions, expected {self._config.dimensions}. "
                "Check embedding.dimensions against the embedding model.",
                kind=MALFORMED,
            )
