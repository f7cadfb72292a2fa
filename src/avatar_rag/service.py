"""AvatarService: the public surface for ingesting content and answering questions.

Providers, the store and every pipeline component are built once from an
``AvatarConfig`` and injected; nothing is created at import time.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from pathlib import Path
from typing import Any

from avatar_rag.config import AvatarConfig
from avatar_rag.db.connection import Database
from avatar_rag.db.models import ContentSource, QueryRecord
from avatar_rag.db.repository import VectorStore
from avatar_rag.ingest.embedder import EmbeddingGenerator
from avatar_rag.ingest.fetchers import ContentFetcher
from avatar_rag.ingest.pipeline import ContentIngestor, IngestOptions, IngestResult
from avatar_rag.rag.generator import ResponseGenerator
from avatar_rag.rag.llm_client import (
    ChatProvider,
    EmbeddingProvider,
    LiteLLMChatProvider,
    LiteLLMEmbeddingProvider,
)
from avatar_rag.rag.query import KeywordMatch, QueryOptions, QueryProcessor, QueryResult

logger = logging.getLogger(__name__)


class AvatarService:
    """Wire ingestion and query pipelines around one vector store.

    Args:
        cfg: Loaded configuration.
        store: Vector store (may be unconfigured).
        embedding_provider: Provider for embeddings.
        chat_provider: Provider for completions.
        fetchers: Source type → content fetcher.
        conn: Connection owned by this service, closed by ``close()``.
    """

    def __init__(
        self,
        cfg: AvatarConfig,
        store: VectorStore,
        embedding_provider: EmbeddingProvider,
        chat_provider: ChatProvider,
        fetchers: dict[str, ContentFetcher] | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self.config = cfg
        self.store = store
        self._conn = conn
        embedder = EmbeddingGenerator(embedding_provider, cfg.embedding)
        generator = ResponseGenerator(chat_provider, cfg.generation)
        self.ingestor = ContentIngestor(
            embedder, store, fetchers=fetchers, chunking=cfg.chunking, summarizer=generator
        )
        self.processor = QueryProcessor(
            embedder, store, generator, retrieval=cfg.retrieval, assembler=cfg.assembler
        )

    @classmethod
    def from_config(
        cls,
        cfg: AvatarConfig,
        fetchers: dict[str, ContentFetcher] | None = None,
        db_path: Path | str | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        chat_provider: ChatProvider | None = None,
    ) -> AvatarService:
        """Open (and migrate) the store at *db_path* or ``cfg.store.path`` and build the service."""
        path = db_path if db_path is not None else cfg.store.path
        conn = Database(path).open()
        logger.debug("Opened avatar store at %s", path)
        return cls(
            cfg,
            VectorStore(conn, dimensions=cfg.embedding.dimensions),
            embedding_provider
            or LiteLLMEmbeddingProvider(cfg.embedding.model, num_retries=cfg.embedding.num_retries),
            chat_provider or LiteLLMChatProvider(num_retries=cfg.generation.num_retries),
            fetchers=fetchers,
            conn=conn,
        )

    @property
    def supported_types(self) -> list[str]:
        return self.ingestor.supported_types

    async def ingest(
        self,
        source_type: str,
        source_id: str,
        owner_id: str,
        metadata: dict[str, Any] | None = None,
        options: IngestOptions | None = None,
    ) -> IngestResult:
        return await self.ingestor.ingest(source_type, source_id, owner_id, metadata, options)

    async def query(
        self,
        message: str,
        owner_id: str,
        options: QueryOptions | None = None,
    ) -> QueryResult:
        options = options or QueryOptions()
        if options.persona is None:
            options = replace(options, persona=self.config.persona)
        return await self.processor.query(message, owner_id, options)

    async def search_by_keyword(self, keyword: str, owner_id: str, **kwargs: Any) -> list[KeywordMatch]:
        return await self.processor.search_by_keyword(keyword, owner_id, **kwargs)

    def list_sources(self, owner_id: str) -> list[ContentSource]:
        return self.store.list_sources(owner_id)

    def delete_source(self, content_id: str, owner_id: str) -> bool:
        return self.store.delete_source(content_id, owner_id)

    def get_history(self, owner_id: str, limit: int = 20, offset: int = 0) -> list[QueryRecord]:
        return self.processor.get_history(owner_id, limit=limit, offset=offset)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> AvatarService:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
