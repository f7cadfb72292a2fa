"""Tests for the avatar-rag ingest command."""

from __future__ import annotations

import yaml

from avatar_rag.cli.main import app
from avatar_rag.config import load_config
from avatar_rag.service import AvatarService

NOTES = (
    "My everyday camera is a small rangefinder with a 35mm lens. "
    "I pick it because it disappears in my hand and strangers stay relaxed around it."
)


def _sources(workdir, owner="alice"):
    with AvatarService.from_config(load_config(), db_path=workdir / ".avatar-rag.db") as svc:
        return svc.list_sources(owner)


def test_ingest_exits_without_input(runner, workdir):
    result = runner.invoke(app, ["ingest", "--owner", "alice"])
    assert result.exit_code == 1
    assert "Nothing to ingest" in result.output


def test_ingest_text_creates_store(runner, workdir):
    assert not (workdir / ".avatar-rag.db").exists()

    result = runner.invoke(app, ["ingest", "--text", NOTES, "--owner", "alice"])

    assert result.exit_code == 0, result.output
    assert "✓ Custom Text" in result.output
    assert "1 chunks" in result.output
    assert (workdir / ".avatar-rag.db").exists()
    [source] = _sources(workdir)
    assert source.source_type == "custom_text"


def test_ingest_file_uses_stem_as_title(runner, workdir):
    (workdir / "gear-notes.txt").write_text(NOTES, encoding="utf-8")

    result = runner.invoke(app, ["ingest", "--file", "gear-notes.txt", "--owner", "alice"])

    assert result.exit_code == 0, result.output
    assert "gear-notes" in result.output
    assert _sources(workdir)[0].source_label == "gear-notes"


def test_ingest_missing_file(runner, workdir):
    result = runner.invoke(app, ["ingest", "--file", "missing.txt"])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_ingest_custom_db_path(runner, workdir):
    result = runner.invoke(app, ["ingest", "--text", NOTES, "--db", "other.db", "--owner", "alice"])
    assert result.exit_code == 0, result.output
    assert (workdir / "other.db").exists()
    assert not (workdir / ".avatar-rag.db").exists()


def test_ingest_owner_from_env(runner, workdir, monkeypatch):
    monkeypatch.setenv("AVATAR_OWNER", "bob")
    result = runner.invoke(app, ["ingest", "--text", NOTES])
    assert result.exit_code == 0, result.output
    assert len(_sources(workdir, "bob")) == 1
    assert _sources(workdir, "alice") == []


def test_ingest_short_text_fails(runner, workdir):
    result = runner.invoke(app, ["ingest", "--text", "Too short.", "--owner", "alice"])
    assert result.exit_code == 1
    assert "Ingestion failed" in result.output


def test_ingest_unknown_type(runner, workdir):
    result = runner.invoke(app, ["ingest", "--type", "podcast", "--source", "x"])
    assert result.exit_code == 1
    assert "cannot be ingested" in result.output


def test_ingest_type_without_fetcher(runner, workdir):
    result = runner.invoke(
        app, ["ingest", "--type", "youtube_video", "--source", "https://youtu.be/dQw4w9WgXcQ"]
    )
    assert result.exit_code == 1
    assert "Supported: custom_text" in result.output


class _UnreachableVideoFetcher:
    async def get_metadata(self, content_id):
        raise ConnectionError("connection reset by peer")

    async def get_transcript_or_text(self, content_id):
        return ""


def test_ingest_fetcher_failure_is_reported(runner, workdir, monkeypatch):
    build = AvatarService.from_config.__func__

    def _with_fetcher(cls, cfg, fetchers=None, db_path=None, **providers):
        fetchers = {"youtube_video": _UnreachableVideoFetcher()}
        return build(cls, cfg, fetchers=fetchers, db_path=db_path, **providers)

    monkeypatch.setattr(AvatarService, "from_config", classmethod(_with_fetcher))
    result = runner.invoke(
        app, ["ingest", "--type", "youtube_video", "--source", "https://youtu.be/dQw4w9WgXcQ"]
    )

    assert result.exit_code == 1
    assert "Ingestion failed" in result.output
    assert "connection reset by peer" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_ingest_rejects_api_key_in_config(runner, workdir):
    (workdir / "avatar.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 3, "api_key": "sk-1"}}), encoding="utf-8"
    )
    result = runner.invoke(app, ["ingest", "--text", NOTES])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
