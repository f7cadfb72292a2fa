"""Owner-scoped vector store over SQLite + sqlite-vec.

Single interface for: content sources, embedded chunks, cosine similarity
search, query history and source summaries. Every read and write takes an
owner id; the owner predicate is part of every search statement, so chunks
of one owner can never be ranked into another owner's results.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
import struct
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlite_vec import serialize_float32

from avatar_rag.db.models import (
    ContentChunk,
    ContentSource,
    QueryRecord,
    RankedChunk,
    StoredChunk,
    StoredChunkId,
    is_valid_source_type,
)
from avatar_rag.errors import NotConfiguredError, TenancyViolationError, UnsupportedSourceError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.75
DEFAULT_MATCH_COUNT = 5


# ------------------------------------------------------------------
# Search options + pure helpers
# ------------------------------------------------------------------


@dataclass
class DateRange:
    """Inclusive date window applied to a chunk's publish (or creation) date."""

    start: datetime | date | str | None = None
    end: datetime | date | str | None = None


@dataclass
class SearchOptions:
    """Filters for ``VectorStore.search``.

    Attributes:
        threshold: Minimum cosine similarity (exclusive), in [-1, 1].
        match_count: Maximum number of hits returned.
        content_types: Restrict to these source types (empty = all).
        content_ids: Restrict to these content ids (empty = all).
        date_range: Restrict by ``published_at`` metadata, else creation time.
    """

    threshold: float = DEFAULT_THRESHOLD
    match_count: int = DEFAULT_MATCH_COUNT
    content_types: list[str] = field(default_factory=list)
    content_ids: list[str] = field(default_factory=list)
    date_range: DateRange | None = None

    def __post_init__(self) -> None:
        if not -1.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be in [-1, 1], got {self.threshold}")
        if self.match_count < 1:
            raise ValueError(f"match_count must be >= 1, got {self.match_count}")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    Empty, zero-norm or different-length vectors have similarity 0.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def build_filter_clause(options: SearchOptions) -> tuple[str, list]:
    """Translate optional filters into an ``AND ...`` SQL fragment + params.

    The fragment expects the chunks table aliased as ``c``.
    """
    clauses: list[str] = []
    params: list = []

    if options.content_types:
        placeholders = ",".join("?" * len(options.content_types))
        clauses.append(f"c.content_type IN ({placeholders})")
        params.extend(options.content_types)

    if options.content_ids:
        placeholders = ",".join("?" * len(options.content_ids))
        clauses.append(f"c.content_id IN ({placeholders})")
        params.extend(options.content_ids)

    dr = options.date_range
    if dr is not None:
        item_date = "datetime(COALESCE(json_extract(c.metadata, '$.published_at'), c.created_at))"
        if dr.start is not None:
            clauses.append(f"{item_date} >= datetime(?)")
            params.append(_iso(dr.start))
        if dr.end is not None:
            clauses.append(f"{item_date} <= datetime(?)")
            params.append(_iso(dr.end))

    sql = "".join(f" AND {c}" for c in clauses)
    return sql, params


def _iso(value: datetime | date | str) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------

_CHUNK_COLUMNS = (
    "c.id, c.owner_id, c.content_type, c.content_id, c.content_source, c.chunk_index, "
    "c.chunk_text, c.start_char, c.end_char, c.token_estimate, c.metadata, c.created_at"
)

_SOURCE_COLUMNS = (
    "id, owner_id, source_type, source_id, source_label, source_url, metadata, "
    "parent_id, created_at"
)


class VectorStore:
    """Data access layer for all owner-scoped avatar content.

    Wraps an open sqlite3.Connection (sqlite-vec loaded, migrations applied).
    The connection is owned by the caller. A store created without a
    connection raises ``NotConfiguredError`` on every call.

    Args:
        conn: Open connection, or None when no database is configured.
        dimensions: Expected embedding length; enforced on write when set.
    """

    def __init__(self, conn: sqlite3.Connection | None, dimensions: int | None = None) -> None:
        self._conn = conn
        self._dimensions = dimensions

    @property
    def is_configured(self) -> bool:
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotConfiguredError(
                "Vector store is not configured: no database connection. "
                "Set store.path in avatar.yaml or pass --db."
            )
        return self._conn

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def store_source(
        self,
        owner_id: str,
        source_type: str,
        source_label: str,
        source_url: str = "",
        metadata: dict | None = None,
        source_id: str | None = None,
        parent_id: str | None = None,
    ) -> ContentSource:
        """Record one ingested origin and return it with its assigned id.

        Args:
            owner_id: Influencer/user the content belongs to.
            source_type: One of the known source types.
            source_label: Human-readable name (video title, account name).
            source_url: Canonical URL of the origin, if any.
            metadata: Open key-value map stored as JSON.
            source_id: Provider id; defaults to *source_url* or a new UUID.
            parent_id: Provider id of the channel/account this item came from.
        """
        conn = self._connection()
        source = _new_source(
            owner_id, source_type, source_label, source_url, metadata, source_id, parent_id
        )
        with conn:
            _insert_source(conn, source)
        return self._reload_source(source.id)

    def store_with_source(
        self,
        chunks: list[ContentChunk],
        owner_id: str,
        source_type: str,
        source_id: str,
        source_label: str = "",
        source_url: str = "",
        metadata: dict | None = None,
        parent_id: str | None = None,
    ) -> tuple[ContentSource, list[StoredChunkId]]:
        """Write a source record and its embedded chunks as one new version.

        The source row, its chunk rows and the removal of older versions of
        *source_id* share a single transaction: either the new version
        replaces the old one completely or nothing changes.

        Returns:
            The stored source and the chunk ids in chunk order.
        """
        conn = self._connection()
        source = _new_source(
            owner_id, source_type, source_label, source_url, metadata, source_id, parent_id
        )
        self._check_embeddings(chunks)
        rows, ids = _chunk_rows(
            chunks, owner_id, source_type, source.source_id, source.source_label,
            source.metadata, source.id,
        )
        with conn:
            _insert_source(conn, source)
            _insert_chunks(conn, rows)
            pruned = _delete_older(conn, owner_id, source.source_id, source.id)
        if pruned:
            logger.info("Replaced %d chunks of an older version of %s", pruned, source.source_id)
        logger.debug("Stored %d chunks for %s/%s", len(ids), owner_id, source.source_id)
        return self._reload_source(source.id), ids

    def _reload_source(self, ref: str) -> ContentSource:
        row = self._connection().execute(
            f"SELECT {_SOURCE_COLUMNS} FROM content_sources WHERE id = ?", (ref,)
        ).fetchone()
        return _row_to_source(row)

    def list_sources(self, owner_id: str) -> list[ContentSource]:
        """Return the owner's sources, newest first."""
        conn = self._connection()
        _require_owner(owner_id)
        rows = conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM content_sources WHERE owner_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_source(r) for r in rows]

    def get_source(self, owner_id: str, source_id: str) -> ContentSource | None:
        """Return the latest source record for *source_id*, or None."""
        conn = self._connection()
        _require_owner(owner_id)
        row = conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM content_sources WHERE owner_id = ? AND source_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (owner_id, source_id),
        ).fetchone()
        return _row_to_source(row) if row else None

    def delete_source(self, content_id: str, owner_id: str) -> bool:
        """Delete a source, its chunks, and any items ingested through it.

        Returns True if anything was deleted.
        """
        conn = self._connection()
        _require_owner(owner_id)
        child_ids = [
            r[0]
            for r in conn.execute(
                "SELECT DISTINCT source_id FROM content_sources WHERE owner_id = ? AND parent_id = ?",
                (owner_id, content_id),
            ).fetchall()
        ]
        ids = [content_id, *child_ids]
        placeholders = ",".join("?" * len(ids))
        with conn:
            chunks_deleted = conn.execute(
                f"DELETE FROM content_chunks WHERE owner_id = ? AND content_id IN ({placeholders})",
                (owner_id, *ids),
            ).rowcount
            sources_deleted = conn.execute(
                f"DELETE FROM content_sources WHERE owner_id = ? AND source_id IN ({placeholders})",
                (owner_id, *ids),
            ).rowcount
        logger.info(
            "Deleted content %s for owner %s (%d sources, %d chunks)",
            content_id, owner_id, sources_deleted, chunks_deleted,
        )
        return (chunks_deleted + sources_deleted) > 0

    def prune_versions(self, owner_id: str, content_id: str, keep_ref: str) -> int:
        """Remove older versions of *content_id*, keeping source record *keep_ref*.

        Returns the number of chunk rows removed.
        """
        conn = self._connection()
        _require_owner(owner_id)
        with conn:
            return _delete_older(conn, owner_id, content_id, keep_ref)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def store(
        self,
        chunks: list[ContentChunk],
        owner_id: str,
        source_type: str,
        source_id: str,
        source_label: str = "",
        metadata: dict | None = None,
        source_ref: str | None = None,
    ) -> list[StoredChunkId]:
        """Persist embedded chunks in one transaction; return ids in chunk order.

        Every chunk must already carry an embedding. Validation happens before
        the first insert, so a failed call writes nothing.

        Args:
            chunks: Embedded chunks in document order.
            owner_id: Owner scoping every row.
            source_type: Content type of the origin.
            source_id: Provider content id the chunks belong to.
            source_label: Human-readable origin label (title, permalink).
            metadata: Shared metadata merged into every chunk's metadata.
            source_ref: Id of the ContentSource row this batch belongs to.
        """
        conn = self._connection()
        _require_owner(owner_id)
        _require_source_type(source_type)
        if not chunks:
            return []

        self._check_embeddings(chunks)
        rows, ids = _chunk_rows(
            chunks, owner_id, source_type, source_id, source_label, metadata, source_ref
        )
        with conn:
            _insert_chunks(conn, rows)
        logger.debug("Stored %d chunks for %s/%s", len(ids), owner_id, source_id)
        return ids

    def _check_embeddings(self, chunks: list[ContentChunk]) -> None:
        for i, chunk in enumerate(chunks):
            if chunk.embedding is None:
                raise ValueError(f"chunk {i} has no embedding; embed before storing")
            if self._dimensions is not None and len(chunk.embedding) != self._dimensions:
                raise ValueError(
                    f"chunk {i} embedding has {len(chunk.embedding)} dimensions, "
                    f"expected {self._dimensions}"
                )

    def get_chunks(self, owner_id: str, content_id: str) -> list[StoredChunk]:
        """Return the chunks of *content_id* in document order."""
        conn = self._connection()
        _require_owner(owner_id)
        rows = conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM content_chunks c "
            "WHERE c.owner_id = ? AND c.content_id = ? ORDER BY c.chunk_index",
            (owner_id, content_id),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, owner_id: str, content_id: str | None = None) -> int:
        """Return the number of chunks stored for the owner (optionally one content id)."""
        conn = self._connection()
        _require_owner(owner_id)
        if content_id is None:
            row = conn.execute(
                "SELECT COUNT(*) FROM content_chunks WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM content_chunks WHERE owner_id = ? AND content_id = ?",
                (owner_id, content_id),
            ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def search(
        self,
        query_vector: Sequence[float],
        owner_id: str,
        options: SearchOptions | None = None,
    ) -> list[RankedChunk]:
        """Return the owner's chunks most similar to *query_vector*.

        Cosine similarity is computed in SQL with sqlite-vec; owner, type,
        id and date filters are part of the same statement. Results have
        ``similarity > threshold``, best first, at most ``match_count``.
        """
        conn = self._connection()
        _require_owner(owner_id)
        opts = options or SearchOptions()
        if not query_vector:
            return []

        filter_sql, filter_params = build_filter_clause(opts)
        sql = f"""
            SELECT * FROM (
                SELECT {_CHUNK_COLUMNS},
                    CASE
                        WHEN vec_length(c.embedding) = ?
                        THEN COALESCE(1.0 - vec_distance_cosine(c.embedding, ?), 0.0)
                        ELSE 0.0
                    END AS similarity
                FROM content_chunks c
                WHERE c.owner_id = ?{filter_sql}
            )
            WHERE similarity > ?
            ORDER BY similarity DESC, chunk_index ASC
            LIMIT ?
        """
        if _is_zero(query_vector):
            # Zero-norm query: every similarity is 0 by definition.
            params = [-1, serialize_float32(list(query_vector))]
        else:
            params = [len(query_vector), serialize_float32(list(query_vector))]
        params += [owner_id, *filter_params, opts.threshold, opts.match_count]

        rows = conn.execute(sql, params).fetchall()
        results = [
            RankedChunk(chunk=_row_to_chunk(r), similarity=max(-1.0, min(1.0, r["similarity"])))
            for r in rows
        ]
        logger.debug(
            "Search for owner %s returned %d hits (threshold %.2f)",
            owner_id, len(results), opts.threshold,
        )
        return results

    # ------------------------------------------------------------------
    # Query history
    # ------------------------------------------------------------------

    def record_history(
        self,
        owner_id: str,
        query: str,
        query_vector: Sequence[float] | None,
        response: str,
        retrieved_chunk_ids: list[str] | None = None,
    ) -> QueryRecord:
        """Append one query/response exchange to the owner's history."""
        conn = self._connection()
        _require_owner(owner_id)
        record_id = str(uuid.uuid4())
        chunk_ids = list(retrieved_chunk_ids or [])
        blob = serialize_float32(list(query_vector)) if query_vector else None
        with conn:
            conn.execute(
                """
                INSERT INTO query_history
                    (id, owner_id, query_text, query_embedding, response_text, retrieved_chunk_ids)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (record_id, owner_id, query, blob, response, json.dumps(chunk_ids)),
            )
        row = conn.execute(
            "SELECT * FROM query_history WHERE id = ?", (record_id,)
        ).fetchone()
        return _row_to_record(row)

    def get_history(self, owner_id: str, limit: int = 20, offset: int = 0) -> list[QueryRecord]:
        """Return the owner's history, newest first."""
        conn = self._connection()
        _require_owner(owner_id)
        rows = conn.execute(
            "SELECT * FROM query_history WHERE owner_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (owner_id, limit, offset),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Source summaries
    # ------------------------------------------------------------------

    def add_summary(self, source_ref: str, summary_text: str) -> None:
        """Upsert the summary for the source record *source_ref*."""
        conn = self._connection()
        with conn:
            conn.execute(
                """
                INSERT INTO source_summaries (source_ref, summary_text)
                VALUES (?, ?)
                ON CONFLICT(source_ref) DO UPDATE SET
                    summary_text = excluded.summary_text,
                    generated_at = datetime('now')
                """,
                (source_ref, summary_text),
            )

    def get_summary(self, source_ref: str) -> str | None:
        conn = self._connection()
        row = conn.execute(
            "SELECT summary_text FROM source_summaries WHERE source_ref = ?", (source_ref,)
        ).fetchone()
        return row["summary_text"] if row else None


# ------------------------------------------------------------------
# Guards
# ------------------------------------------------------------------


def _require_owner(owner_id: str) -> None:
    if not owner_id:
        raise TenancyViolationError("owner_id is required for every store operation")


def _require_source_type(source_type: str) -> None:
    if not is_valid_source_type(source_type):
        raise UnsupportedSourceError(f"Unsupported source type: {source_type!r}")


def _is_zero(vector: Sequence[float]) -> bool:
    return all(x == 0 for x in vector)


# ------------------------------------------------------------------
# Writes (run inside the caller's transaction)
# ------------------------------------------------------------------


def _new_source(
    owner_id: str,
    source_type: str,
    source_label: str,
    source_url: str,
    metadata: dict | None,
    source_id: str | None,
    parent_id: str | None,
) -> ContentSource:
    _require_owner(owner_id)
    _require_source_type(source_type)
    return ContentSource(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        source_type=source_type,
        source_id=source_id or source_url or uuid.uuid4().hex,
        source_label=source_label or "",
        source_url=source_url or "",
        metadata=dict(metadata or {}),
        parent_id=parent_id,
    )


def _insert_source(conn: sqlite3.Connection, source: ContentSource) -> None:
    conn.execute(
        """
        INSERT INTO content_sources
            (id, owner_id, source_type, source_id, source_label, source_url, metadata, parent_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            source.id,
            source.owner_id,
            source.source_type,
            source.source_id,
            source.source_label,
            source.source_url,
            json.dumps(source.metadata, default=str),
            source.parent_id,
        ),
    )


def _chunk_rows(
    chunks: list[ContentChunk],
    owner_id: str,
    source_type: str,
    source_id: str,
    source_label: str,
    metadata: dict | None,
    source_ref: str | None,
) -> tuple[list[tuple], list[StoredChunkId]]:
    shared = dict(metadata or {})
    ids: list[StoredChunkId] = []
    rows = []
    for index, chunk in enumerate(chunks):
        chunk_id = str(uuid.uuid4())
        chunk_meta = {
            **shared,
            "start_char": chunk.start_char,
            "end_char": chunk.end_char,
            "token_estimate": chunk.token_estimate,
        }
        rows.append(
            (
                chunk_id,
                source_ref,
                owner_id,
                source_type,
                source_id,
                source_label or "",
                index,
                chunk.text,
                chunk.start_char,
                chunk.end_char,
                chunk.token_estimate,
                json.dumps(chunk_meta, default=str),
                serialize_float32(list(chunk.embedding)),
            )
        )
        ids.append(StoredChunkId(id=chunk_id, chunk_index=index))
    return rows, ids


def _insert_chunks(conn: sqlite3.Connection, rows: list[tuple]) -> None:
    conn.executemany(
        """
        INSERT INTO content_chunks
            (id, source_ref, owner_id, content_type, content_id, content_source,
             chunk_index, chunk_text, start_char, end_char, token_estimate,
             metadata, embedding)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        rows,
    )


def _delete_older(conn: sqlite3.Connection, owner_id: str, content_id: str, keep_ref: str) -> int:
    removed = conn.execute(
        """
        DELETE FROM content_chunks
        WHERE owner_id = ? AND content_id = ?
          AND (source_ref IS NULL OR source_ref != ?)
        """,
        (owner_id, content_id, keep_ref),
    ).rowcount
    conn.execute(
        "DELETE FROM content_sources WHERE owner_id = ? AND source_id = ? AND id != ?",
        (owner_id, content_id, keep_ref),
    )
    return removed


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_source(row: sqlite3.Row) -> ContentSource:
    return ContentSource(
        id=row["id"],
        owner_id=row["owner_id"],
        source_type=row["source_type"],
        source_id=row["source_id"],
        source_label=row["source_label"],
        source_url=row["source_url"],
        metadata=json.loads(row["metadata"]),
        parent_id=row["parent_id"],
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> StoredChunk:
    return StoredChunk(
        id=row["id"],
        owner_id=row["owner_id"],
        content_type=row["content_type"],
        content_id=row["content_id"],
        content_source=row["content_source"],
        chunk_index=row["chunk_index"],
        text=row["chunk_text"],
        start_char=row["start_char"],
        end_char=row["end_char"],
        token_estimate=row["token_estimate"],
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_record(row: sqlite3.Row) -> QueryRecord:
    blob = row["query_embedding"]
    embedding = list(struct.unpack(f"{len(blob) // 4}f", blob)) if blob else None
    return QueryRecord(
        id=row["id"],
        owner_id=row["owner_id"],
        query_text=row["query_text"],
        response_text=row["response_text"],
        retrieved_chunk_ids=json.loads(row["retrieved_chunk_ids"]),
        query_embedding=embedding,
        created_at=row["created_at"],
    )
