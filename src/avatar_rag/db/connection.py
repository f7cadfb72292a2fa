"""Opening an avatar store: SQLite with sqlite-vec loaded and the schema migrated."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import sqlite_vec

from avatar_rag.db.migrations import current_version
from avatar_rag.db.schema import CURRENT_VERSION, initialize

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class Database:
    """One avatar store file.

    ``open()`` is the normal entry point: it connects and brings the schema
    up to date. ``connect()`` only opens the raw connection.

    Args:
        db_path: Path to the SQLite file (created if missing), or
            ``":memory:"`` for a throwaway store.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path if db_path == MEMORY else Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY

    def connect(self) -> sqlite3.Connection:
        """Open a connection with sqlite-vec loaded and foreign keys enforced."""
        if not self.is_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        if not self.is_memory:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def migrate(self, conn: sqlite3.Connection) -> int:
        """Apply pending migrations to *conn*; return the version it had before."""
        before = current_version(conn)
        initialize(conn)
        if before < CURRENT_VERSION:
            logger.info(
                "Migrated avatar store %s from schema v%d to v%d",
                self.db_path, before, CURRENT_VERSION,
            )
        return before

    def open(self) -> sqlite3.Connection:
        """Connect and migrate; return a connection ready for ``VectorStore``."""
        conn = self.connect()
        try:
            self.migrate(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
