"""Query orchestrator: embed → owner-scoped search → assemble → generate → record.

Errors are not converted here; they propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from avatar_rag.db.models import QueryRecord, RankedChunk
from avatar_rag.db.repository import DateRange, SearchOptions, VectorStore
from avatar_rag.errors import TenancyViolationError
from avatar_rag.ingest.embedder import EmbeddingGenerator
from avatar_rag.ingest.normalizer import clean
from avatar_rag.rag.assembler import AssemblerConfig, assemble
from avatar_rag.rag.generator import PersonaConfig, ResponseGenerator

logger = logging.getLogger(__name__)

KEYWORD_THRESHOLD = 0.7
KEYWORD_MATCH_COUNT = 20


@dataclass
class RetrievalConfig:
    """Similarity search defaults (avatar.yaml: retrieval:)."""

    threshold: float = 0.75
    match_count: int = 5

    def __post_init__(self) -> None:
        if not -1.0 <= self.threshold <= 1.0:
            raise ValueError(f"retrieval.threshold must be in [-1, 1], got {self.threshold}")
        if self.match_count < 1:
            raise ValueError(f"retrieval.match_count must be >= 1, got {self.match_count}")


@dataclass
class QueryOptions:
    threshold: float | None = None
    match_count: int | None = None
    content_types: list[str] = field(default_factory=list)
    content_ids: list[str] = field(default_factory=list)
    date_range: DateRange | None = None
    persona: PersonaConfig | None = None
    history: list[dict] | None = None
    record_history: bool = True


@dataclass
class SourceReference:
    """A chunk the answer was grounded on."""

    chunk_id: str
    content_type: str
    content_id: str
    content_source: str
    similarity: float
    text: str = ""


@dataclass
class QueryResult:
    query: str
    response: str
    sources: list[SourceReference] = field(default_factory=list)
    has_results: bool = False
    context_tokens: int = 0
    history_id: str | None = None


@dataclass
class KeywordMatch:
    """Search hits of one content item, best similarity first."""

    content_id: str
    content_type: str
    content_source: str
    max_similarity: float
    matches: list[SourceReference] = field(default_factory=list)


class QueryProcessor:
    """Answer questions from an owner's ingested content.

    Args:
        embedder: Embeds the query text.
        store: Owner-scoped vector store.
        generator: Produces the avatar's answer.
        retrieval: Default threshold and match count.
        assembler: Context token budget and label settings.
    """

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        store: VectorStore,
        generator: ResponseGenerator,
        retrieval: RetrievalConfig | None = None,
        assembler: AssemblerConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._generator = generator
        self._retrieval = retrieval or RetrievalConfig()
        self._assembler = assembler or AssemblerConfig()

    async def query(
        self,
        message: str,
        owner_id: str,
        options: QueryOptions | None = None,
    ) -> QueryResult:
        """Return the avatar's answer to *message* using *owner_id*'s content only.

        When nothing matches, the answer is generated with an empty context
        and ``has_results`` is False.
        """
        options = options or QueryOptions()
        if not owner_id:
            raise TenancyViolationError("owner_id is required to query content")
        cleaned = clean(message)
        if not cleaned:
            raise ValueError("query text is empty")

        logger.info("Processing query for owner %s", owner_id)
        vector = await self._embedder.embed(cleaned)
        hits = self._store.search(vector, owner_id, self._search_options(options))
        context = assemble(hits, self._assembler)
        if context.is_empty:
            logger.info("No content above threshold; answering without context")

        response = await self._generator.generate(
            cleaned, context.text, options.persona, options.history
        )

        history_id = None
        if options.record_history:
            record = self._store.record_history(
                owner_id, cleaned, vector, response, [h.chunk.id for h in hits]
            )
            history_id = record.id

        return QueryResult(
            query=cleaned,
            response=response,
            sources=[_reference(h) for h in context.chunks],
            has_results=not context.is_empty,
            context_tokens=context.total_tokens,
            history_id=history_id,
        )

    async def search_by_keyword(
        self,
        keyword: str,
        owner_id: str,
        threshold: float = KEYWORD_THRESHOLD,
        match_count: int = KEYWORD_MATCH_COUNT,
        content_types: list[str] | None = None,
        content_ids: list[str] | None = None,
    ) -> list[KeywordMatch]:
        """Semantic search for *keyword*, grouped per content item (best first)."""
        if not owner_id:
            raise TenancyViolationError("owner_id is required to search content")
        cleaned = clean(keyword)
        if not cleaned:
            return []
        vector = await self._embedder.embed(cleaned)
        hits = self._store.search(
            vector,
            owner_id,
            SearchOptions(
                threshold=threshold,
                match_count=match_count,
                content_types=list(content_types or []),
                content_ids=list(content_ids or []),
            ),
        )

        grouped: dict[str, KeywordMatch] = {}
        for hit in hits:
            c = hit.chunk
            group = grouped.get(c.content_id)
            if group is None:
                group = KeywordMatch(
                    content_id=c.content_id,
                    content_type=c.content_type,
                    content_source=c.content_source,
                    max_similarity=hit.similarity,
                )
                grouped[c.content_id] = group
            group.matches.append(_reference(hit))
            group.max_similarity = max(group.max_similarity, hit.similarity)

        return sorted(grouped.values(), key=lambda g: g.max_similarity, reverse=True)

    def get_history(self, owner_id: str, limit: int = 20, offset: int = 0) -> list[QueryRecord]:
        return self._store.get_history(owner_id, limit=limit, offset=offset)

    def _search_options(self, options: QueryOptions) -> SearchOptions:
        return SearchOptions(
            threshold=(
                options.threshold if options.threshold is not None else self._retrieval.threshold
            ),
            match_count=options.match_count or self._retrieval.match_count,
            content_types=list(options.content_types),
            content_ids=list(options.content_ids),
            date_range=options.date_range,
        )


def _reference(hit: RankedChunk) -> SourceReference:
    c = hit.chunk
    return SourceReference(
        chunk_id=c.id,
        content_type=c.content_type,
        content_id=c.content_id,
        content_source=c.content_source,
        similarity=hit.similarity,
        text=c.text,
    )
