"""CLI fixtures: an isolated working directory and fake providers."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

import avatar_rag.config as config_module
from avatar_rag.cli import runtime
from avatar_rag.cli.main import app
from avatar_rag.service import AvatarService

NOTES = (
    "My everyday camera is a small rangefinder with a 35mm lens. "
    "I pick it because it disappears in my hand and strangers stay relaxed around it."
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch, embedding_provider, chat_provider) -> Path:
    """CWD with a 3-dimension avatar.yaml; services use the fake providers."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "avatar.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 3}}), encoding="utf-8"
    )
    monkeypatch.setattr(config_module, "_GLOBAL_CONFIG_PATH", tmp_path / "no-home" / "config.yaml")
    for var in ("AVATAR_OWNER", "AVATAR_DB_PATH", "AVATAR_EMBEDDING_MODEL", "AVATAR_GENERATION_MODEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(runtime.console, "width", 200)

    build = AvatarService.from_config.__func__
    fakes = {"embedding_provider": embedding_provider, "chat_provider": chat_provider}

    def _from_config(cls, cfg, fetchers=None, db_path=None, **providers):
        return build(cls, cfg, fetchers=fetchers, db_path=db_path, **{**fakes, **providers})

    monkeypatch.setattr(AvatarService, "from_config", classmethod(_from_config))
    return tmp_path


@pytest.fixture
def ingested(runner, workdir) -> str:
    """Ingest NOTES for owner alice and return the content id."""
    result = runner.invoke(
        app, ["ingest", "--text", NOTES, "--title", "Gear notes", "--owner", "alice"]
    )
    assert result.exit_code == 0, result.output
    db_path = workdir / ".avatar-rag.db"
    with AvatarService.from_config(config_module.load_config(), db_path=db_path) as svc:
        [source] = svc.list_sources("alice")
    return source.source_id
