"""Shared CLI plumbing: logging setup, config loading, service construction."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from avatar_rag.cli.errors import err_config, err_no_db
from avatar_rag.config import AvatarConfig, load_config
from avatar_rag.errors import ConfigError
from avatar_rag.service import AvatarService

console = Console()

DEFAULT_OWNER = "default"


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich (DEBUG with --verbose, else WARNING)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # LiteLLM and HTTP client chatter stays at WARNING even with --verbose
    for name in ("LiteLLM", "litellm", "httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def load_cli_config() -> AvatarConfig:
    """Load config or exit with an actionable message."""
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(exc))
        raise typer.Exit(1)


def open_service(cfg: AvatarConfig, db: Path | None, must_exist: bool = True) -> AvatarService:
    """Open the store (``--db`` wins over config) and build the service."""
    db_path = db if db is not None else Path(cfg.store.path)
    if must_exist and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return AvatarService.from_config(cfg, db_path=db_path)
