"""Forward-only migration runner for the avatar content store.

Embeddings live in a plain BLOB column (float32, sqlite-vec layout) so that
similarity, owner scoping and filters run in a single SQL statement.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS content_sources (
    id              TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    source_type     TEXT NOT NULL,
    source_id       TEXT NOT NULL,
    source_label    TEXT NOT NULL DEFAULT '',
    source_url      TEXT NOT NULL DEFAULT '',
    metadata        TEXT NOT NULL DEFAULT '{}',
    parent_id       TEXT,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_sources_owner ON content_sources(owner_id, source_id);

CREATE TABLE IF NOT EXISTS content_chunks (
    id              TEXT PRIMARY KEY,
    source_ref      TEXT REFERENCES content_sources(id) ON DELETE CASCADE,
    owner_id        TEXT NOT NULL,
    content_type    TEXT NOT NULL,
    content_id      TEXT NOT NULL,
    content_source  TEXT NOT NULL DEFAULT '',
    chunk_index     INTEGER NOT NULL,
    chunk_text      TEXT NOT NULL,
    start_char      INTEGER NOT NULL,
    end_char        INTEGER NOT NULL,
    token_estimate  INTEGER NOT NULL DEFAULT 0,
    metadata        TEXT NOT NULL DEFAULT '{}',
    embedding       BLOB NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_chunks_owner ON content_chunks(owner_id, content_id);

CREATE TABLE IF NOT EXISTS query_history (
    id                  TEXT PRIMARY KEY,
    owner_id            TEXT NOT NULL,
    query_text          TEXT NOT NULL,
    query_embedding     BLOB,
    response_text       TEXT NOT NULL,
    retrieved_chunk_ids TEXT NOT NULL DEFAULT '[]',
    created_at          DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_history_owner ON query_history(owner_id, created_at);

CREATE TABLE IF NOT EXISTS source_summaries (
    source_ref      TEXT NOT NULL REFERENCES content_sources(id) ON DELETE CASCADE,
    summary_text    TEXT NOT NULL,
    generated_at    DATETIME NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (source_ref)
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    conn.execute(_CREATE_SCHEMA_VERSION)
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0
