"""avatar-rag ingest pipeline: normalizer, chunker, embedder, fetchers."""

from avatar_rag.ingest.chunker import TextChunker, chunk_text
from avatar_rag.ingest.embedder import EmbeddingConfig, EmbeddingGenerator
from avatar_rag.ingest.normalizer import clean, clean_transcript, estimate_token_count

__all__ = [
    "TextChunker",
    "chunk_text",
    "EmbeddingConfig",
    "EmbeddingGenerator",
    "clean",
    "clean_transcript",
    "estimate_token_count",
]
