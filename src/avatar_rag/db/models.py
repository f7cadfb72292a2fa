"""Domain models for the avatar RAG store."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

YOUTUBE_VIDEO = "youtube_video"
YOUTUBE_CHANNEL = "youtube_channel"
INSTAGRAM_POST = "instagram_post"
INSTAGRAM_ACCOUNT = "instagram_account"
CUSTOM_TEXT = "custom_text"

SOURCE_TYPES: frozenset[str] = frozenset(
    [YOUTUBE_VIDEO, YOUTUBE_CHANNEL, INSTAGRAM_POST, INSTAGRAM_ACCOUNT, CUSTOM_TEXT]
)

# Collection types expand into several single-item ingestions
COLLECTION_TYPES: dict[str, str] = {
    YOUTUBE_CHANNEL: YOUTUBE_VIDEO,
    INSTAGRAM_ACCOUNT: INSTAGRAM_POST,
}


def is_valid_source_type(source_type: str) -> bool:
    return source_type in SOURCE_TYPES


@dataclass(frozen=True)
class ContentChunk:
    """A segment of normalized source text, optionally with its embedding.

    Offsets refer to the normalized text the chunk was cut from; ``text`` is
    the trimmed window content.
    """

    text: str
    start_char: int
    end_char: int
    token_estimate: int = 0
    embedding: tuple[float, ...] | None = None

    def with_embedding(self, embedding: list[float], token_estimate: int) -> ContentChunk:
        """Return a copy carrying *embedding*. A chunk is embedded at most once."""
        if self.embedding is not None:
            raise ValueError("chunk already has an embedding")
        return dataclasses.replace(
            self, embedding=tuple(embedding), token_estimate=token_estimate
        )


@dataclass
class ContentSource:
    id: str
    owner_id: str
    source_type: str
    source_id: str
    source_label: str = ""
    source_url: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    parent_id: str | None = None
    created_at: str | None = None


@dataclass
class StoredChunk:
    id: str
    owner_id: str
    content_type: str
    content_id: str
    chunk_index: int
    text: str
    content_source: str = ""
    start_char: int = 0
    end_char: int = 0
    token_estimate: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None


@dataclass
class StoredChunkId:
    id: str
    chunk_index: int


@dataclass
class RankedChunk:
    """A search hit: the stored chunk and its cosine similarity to the query."""

    chunk: StoredChunk
    similarity: float


@dataclass
class QueryRecord:
    id: str
    owner_id: str
    query_text: str
    response_text: str
    retrieved_chunk_ids: list[str] = field(default_factory=list)
    query_embedding: list[float] | None = None
    created_at: str | None = None
