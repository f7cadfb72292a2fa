"""avatar-rag init: set up config files and an empty avatar store.

Creates (each only when missing):
  ~/.avatar-rag/config.yaml   global model defaults (mode 0o600)
  avatar.yaml                 project config in the current directory
  .avatar-rag.db              the avatar store, migrated to the current schema

Safe to re-run: existing files are kept and an older store is migrated.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from avatar_rag.cli.runtime import console, load_cli_config
from avatar_rag.config import ensure_global_config, ensure_project_config
from avatar_rag.db.connection import Database
from avatar_rag.db.schema import CURRENT_VERSION


def init_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Where to create the avatar store (default: store.path)."),
    ] = None,
) -> None:
    """Create the global config, a project avatar.yaml and the avatar store."""
    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    project_cfg, created = ensure_project_config()
    if created:
        console.print(f"  [green]✓[/] {project_cfg.name}")
    else:
        console.print(f"  [dim]·[/] {project_cfg.name} exists, kept")

    cfg = load_cli_config()
    db_path = db if db is not None else Path(cfg.store.path)
    _create_store(db_path)

    console.print("\nNext steps:")
    console.print("  1. avatar-rag ingest --text '...'            (add content)")
    console.print("  2. avatar-rag sources                        (list what is stored)")
    console.print("  3. avatar-rag query 'what camera do you use?'")


def _create_store(db_path: Path) -> None:
    existed = db_path.exists()
    database = Database(db_path)
    conn = database.connect()
    try:
        before = database.migrate(conn)
    finally:
        conn.close()

    if not existed:
        console.print(f"  [green]✓[/] {db_path} (schema v{CURRENT_VERSION})")
    elif before < CURRENT_VERSION:
        console.print(f"  [green]✓[/] {db_path} migrated v{before} → v{CURRENT_VERSION}")
    else:
        console.print(f"  [dim]·[/] {db_path} already at schema v{CURRENT_VERSION}")
