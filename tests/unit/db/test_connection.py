"""Tests for the Database connection layer."""

from __future__ import annotations

from pathlib import Path

import pytest

from avatar_rag.db.connection import Database
from avatar_rag.db.schema import CURRENT_VERSION


def test_connect_creates_file(tmp_path):
    db_path = tmp_path / ".avatar-rag.db"
    db = Database(db_path)
    conn = db.connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_cosine_distance_available(tmp_path):
    from sqlite_vec import serialize_float32

    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    distance = conn.execute(
        "SELECT vec_distance_cosine(?, ?)",
        (serialize_float32([1.0, 0.0]), serialize_float32([0.0, 1.0])),
    ).fetchone()[0]
    conn.close()
    assert distance == pytest.approx(1.0)


def test_foreign_keys_enabled(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    result = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    conn.close()
    assert result == 1


def test_wal_journal_mode(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_in_memory_database():
    db = Database(":memory:")
    assert db.db_path == ":memory:"
    with db as conn:
        assert conn.execute("SELECT vec_version()").fetchone()[0]


def test_row_factory_set(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(Exception):
        conn.execute("SELECT 1")


def test_context_manager_accepts_path_str(tmp_path):
    db = Database(str(tmp_path / ".avatar-rag.db"))
    assert isinstance(db.db_path, Path)
    with db as conn:
        result = conn.execute("SELECT 1").fetchone()[0]
    assert result == 1


def test_open_migrates_schema(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.open()
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    conn.close()
    assert {"content_sources", "content_chunks", "query_history"} <= tables


def test_migrate_reports_previous_version(tmp_path):
    db = Database(tmp_path / ".avatar-rag.db")
    conn = db.connect()
    assert db.migrate(conn) == 0
    assert db.migrate(conn) == CURRENT_VERSION
    conn.close()


def test_connect_creates_parent_directories(tmp_path):
    db_path = tmp_path / "data" / "avatars" / "store.db"
    with Database(db_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM content_sources").fetchone()[0] == 0
    assert db_path.exists()


def test_context_manager_opens_migrated_store():
    with Database(":memory:") as conn:
        version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION
