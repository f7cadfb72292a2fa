"""Ingestion orchestrator: fetch → clean → chunk → embed → store.

Every typed pipeline error is converted into an ``IngestResult`` here, once.
Collections (YouTube channels, Instagram accounts) are ingested item by item
and keep going past per-item failures.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from avatar_rag.db.models import (
    COLLECTION_TYPES,
    CUSTOM_TEXT,
    INSTAGRAM_ACCOUNT,
    INSTAGRAM_POST,
    YOUTUBE_VIDEO,
    is_valid_source_type,
)
from avatar_rag.db.repository import VectorStore
from avatar_rag.errors import (
    AvatarRagError,
    FetchError,
    InsufficientContentError,
    StoreError,
    TenancyViolationError,
    UnsupportedSourceError,
)
from avatar_rag.ingest.chunker import TextChunker
from avatar_rag.ingest.embedder import EmbeddingGenerator
from avatar_rag.ingest.fetchers import (
    CollectionFetcher,
    CommentFetcher,
    ContentFetcher,
    canonical_url,
    compose_post_text,
    parse_source_id,
)
from avatar_rag.ingest.normalizer import clean, clean_transcript, extract_keywords
from avatar_rag.rag.generator import ResponseGenerator

logger = logging.getLogger(__name__)

_DEFAULT_COLLECTION_LIMITS: dict[str, int] = {
    INSTAGRAM_ACCOUNT: 10,
}
_DEFAULT_COLLECTION_LIMIT = 5


@dataclass
class ChunkingConfig:
    """Chunk sizes and the minimum text length (avatar.yaml: chunking:)."""

    chunk_size: int = 1500
    overlap: int = 150
    min_content_chars: int = 100
    post_chunk_size: int = 1000
    post_overlap: int = 100

    def __post_init__(self) -> None:
        for name in ("chunk_size", "post_chunk_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"chunking.{name} must be >= 1")
        for name in ("overlap", "post_overlap", "min_content_chars"):
            if getattr(self, name) < 0:
                raise ValueError(f"chunking.{name} must be >= 0")


@dataclass
class IngestOptions:
    """Per-call overrides. None means "use the configured default"."""

    chunk_size: int | None = None
    overlap: int | None = None
    max_items: int | None = None
    summarize: bool = False


@dataclass
class IngestResult:
    success: bool
    content_type: str
    content_id: str | None = None
    content_title: str | None = None
    chunks_processed: int = 0
    total_tokens: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    error_type: str | None = None
    items: list[IngestResult] = field(default_factory=list)

    @property
    def failed_items(self) -> int:
        return sum(1 for r in self.items if not r.success)


class ContentIngestor:
    """Run the ingestion pipeline for one source.

    Args:
        embedder: Embedding generator for chunk vectors.
        store: Owner-scoped vector store.
        fetchers: Source type → fetcher. Custom text needs none.
        chunking: Chunk sizes and minimum content length.
        summarizer: Optional generator used for per-source summaries.
    """

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        store: VectorStore,
        fetchers: dict[str, ContentFetcher] | None = None,
        chunking: ChunkingConfig | None = None,
        summarizer: ResponseGenerator | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._fetchers = dict(fetchers or {})
        self._chunking = chunking or ChunkingConfig()
        self._summarizer = summarizer

    @property
    def supported_types(self) -> list[str]:
        """Source types that can be ingested with the registered fetchers."""
        return [CUSTOM_TEXT, *sorted(self._fetchers)]

    async def ingest(
        self,
        source_type: str,
        source_id: str,
        owner_id: str,
        metadata: dict[str, Any] | None = None,
        options: IngestOptions | None = None,
    ) -> IngestResult:
        """Ingest one source and return a structured result (never raises pipeline errors).

        Args:
            source_type: One of the known source types.
            source_id: URL or id of the source; for custom text, the text itself.
            owner_id: Owner the content is stored under.
            metadata: Extra metadata merged over the fetched metadata.
            options: Per-call chunking/collection overrides.
        """
        options = options or IngestOptions()
        try:
            if not owner_id:
                raise TenancyViolationError("owner_id is required to ingest content")
            if not is_valid_source_type(source_type):
                raise UnsupportedSourceError(f"Unsupported source type: {source_type!r}")
            if source_type in COLLECTION_TYPES:
                return await self._ingest_collection(source_type, source_id, owner_id, metadata, options)
            return await self._ingest_item(source_type, source_id, owner_id, metadata, options)
        except AvatarRagError as exc:
            logger.warning("Ingestion of %s failed: %s", source_type, exc)
            return IngestResult(
                success=False,
                content_type=source_type,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    # ------------------------------------------------------------------
    # Single items
    # ------------------------------------------------------------------

    async def _ingest_item(
        self,
        source_type: str,
        raw_id: str,
        owner_id: str,
        metadata: dict[str, Any] | None,
        options: IngestOptions,
        parent_id: str | None = None,
    ) -> IngestResult:
        content_id, text, fetched = await self._load(source_type, raw_id)
        item_meta = {**fetched, **(metadata or {})}
        if source_type == CUSTOM_TEXT:
            item_meta.setdefault("title", "Custom Text")
            item_meta["keywords"] = extract_keywords(text, 10)
            item_meta.setdefault("created_at", datetime.now(timezone.utc).isoformat())

        if len(text) < self._chunking.min_content_chars:
            raise InsufficientContentError(len(text), self._chunking.min_content_chars)

        chunker = self._chunker_for(source_type, options)
        chunks = chunker.chunk(text)
        if not chunks:
            raise InsufficientContentError(len(text), self._chunking.min_content_chars)

        logger.info("Ingesting %s %s: %d chunks", source_type, content_id, len(chunks))
        embedded = await self._embedder.embed_chunks(chunks)

        title = _title_for(source_type, item_meta, content_id)
        url = str(item_meta.get("url") or canonical_url(source_type, content_id))
        with _storing(source_type, content_id):
            source, stored = self._store.store_with_source(
                embedded,
                owner_id,
                source_type,
                content_id,
                source_label=title,
                source_url=url,
                metadata=item_meta,
                parent_id=parent_id,
            )

        if options.summarize and self._summarizer is not None:
            summary = await self._summarizer.summarize(text)
            with _storing(source_type, content_id):
                self._store.add_summary(source.id, summary)

        return IngestResult(
            success=True,
            content_type=source_type,
            content_id=content_id,
            content_title=title,
            chunks_processed=len(stored),
            total_tokens=sum(c.token_estimate for c in embedded),
            metadata=item_meta,
        )

    async def _load(self, source_type: str, raw_id: str) -> tuple[str, str, dict[str, Any]]:
        """Return (content_id, normalized text, fetched metadata) for one item."""
        if source_type == CUSTOM_TEXT:
            return f"custom_{uuid.uuid4().hex[:16]}", clean(raw_id or ""), {}

        content_id = parse_source_id(source_type, raw_id)
        fetcher = self._fetcher_for(source_type)
        with _fetching(source_type, content_id):
            fetched = dict(await fetcher.get_metadata(content_id) or {})
            raw_text = await fetcher.get_transcript_or_text(content_id) or ""
            comments = None
            if source_type == INSTAGRAM_POST and isinstance(fetcher, CommentFetcher):
                comments = await fetcher.get_comments(content_id)

        if source_type == YOUTUBE_VIDEO:
            return content_id, clean_transcript(raw_text), fetched
        if comments is not None:
            raw_text = compose_post_text(raw_text, comments)
        return content_id, clean(raw_text), fetched

    def _chunker_for(self, source_type: str, options: IngestOptions) -> TextChunker:
        cfg = self._chunking
        if source_type == INSTAGRAM_POST:
            size, overlap = cfg.post_chunk_size, cfg.post_overlap
        else:
            size, overlap = cfg.chunk_size, cfg.overlap
        return TextChunker(
            chunk_size=options.chunk_size or size,
            overlap=options.overlap if options.overlap is not None else overlap,
        )

    def _fetcher_for(self, source_type: str) -> ContentFetcher:
        fetcher = self._fetchers.get(source_type)
        if fetcher is None:
            raise UnsupportedSourceError(f"No fetcher registered for source type {source_type!r}")
        return fetcher

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def _ingest_collection(
        self,
        source_type: str,
        raw_id: str,
        owner_id: str,
        metadata: dict[str, Any] | None,
        options: IngestOptions,
    ) -> IngestResult:
        collection_id = parse_source_id(source_type, raw_id)
        fetcher = self._fetcher_for(source_type)
        if not isinstance(fetcher, CollectionFetcher):
            raise UnsupportedSourceError(
                f"Fetcher for {source_type!r} cannot list items of a collection"
            )

        limit = options.max_items or _DEFAULT_COLLECTION_LIMITS.get(
            source_type, _DEFAULT_COLLECTION_LIMIT
        )
        with _fetching(source_type, collection_id):
            fetched = dict(await fetcher.get_metadata(collection_id) or {})
            item_ids = await fetcher.list_items(collection_id, limit)
        if not item_ids:
            raise AvatarRagError(f"No items found for {source_type} {collection_id}")

        title = str(fetched.get("title") or fetched.get("name") or collection_id)
        collection_meta = {**fetched, **(metadata or {}), "item_ids": list(item_ids)}

        item_type = COLLECTION_TYPES[source_type]
        results: list[IngestResult] = []
        for item_id in item_ids:
            try:
                result = await self._ingest_item(
                    item_type, item_id, owner_id, None, options, parent_id=collection_id
                )
            except AvatarRagError as exc:
                logger.warning("Skipping %s %s: %s", item_type, item_id, exc)
                result = IngestResult(
                    success=False,
                    content_type=item_type,
                    content_id=item_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            results.append(result)

        succeeded = [r for r in results if r.success]
        logger.info(
            "Ingested %d of %d items from %s %s",
            len(succeeded), len(results), source_type, collection_id,
        )
        if succeeded:
            with _storing(source_type, collection_id):
                collection = self._store.store_source(
                    owner_id,
                    source_type,
                    source_label=title,
                    source_url=str(fetched.get("url") or canonical_url(source_type, collection_id)),
                    metadata=collection_meta,
                    source_id=collection_id,
                )
                self._store.prune_versions(owner_id, collection_id, keep_ref=collection.id)

        return IngestResult(
            success=bool(succeeded),
            content_type=source_type,
            content_id=collection_id,
            content_title=title,
            chunks_processed=sum(r.chunks_processed for r in succeeded),
            total_tokens=sum(r.total_tokens for r in succeeded),
            metadata=collection_meta,
            error=None if succeeded else "No item of the collection could be ingested",
            items=results,
        )


@contextmanager
def _fetching(source_type: str, content_id: str) -> Iterator[None]:
    """Re-raise any fetcher failure as ``FetchError``."""
    try:
        yield
    except AvatarRagError:
        raise
    except Exception as exc:
        raise FetchError(f"Fetching {source_type} {content_id} failed: {exc}") from exc


@contextmanager
def _storing(source_type: str, content_id: str) -> Iterator[None]:
    """Re-raise database and validation failures of a store write as ``StoreError``."""
    try:
        yield
    except (sqlite3.Error, ValueError) as exc:
        raise StoreError(f"Storing {source_type} {content_id} failed: {exc}") from exc


def _title_for(source_type: str, metadata: dict[str, Any], content_id: str) -> str:
    if metadata.get("title"):
        return str(metadata["title"])
    if source_type == INSTAGRAM_POST:
        caption = str(metadata.get("caption") or "")
        return caption[:50] + "..." if caption else "Instagram Post"
    return content_id
