"""avatar-rag database layer."""

from avatar_rag.db.connection import Database
from avatar_rag.db.migrations import MIGRATIONS, run_migrations
from avatar_rag.db.repository import SearchOptions, VectorStore, cosine_similarity
from avatar_rag.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "SearchOptions",
    "VectorStore",
    "cosine_similarity",
]
