"""avatar-rag remove: delete a source and everything ingested through it.

Removes the source record, its chunks, its summary and, for channels and
accounts, every item ingested from them.

Usage:
  avatar-rag remove dQw4w9WgXcQ --owner alice
  avatar-rag remove custom_3f2a... --owner alice --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from avatar_rag.cli.errors import err_source_not_found
from avatar_rag.cli.runtime import DEFAULT_OWNER, console, load_cli_config, open_service


def remove_cmd(
    content_id: Annotated[str, typer.Argument(help="Content id to remove (see: avatar-rag sources).")],
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", envvar="AVATAR_OWNER", help="Owner of the content."),
    ] = DEFAULT_OWNER,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the avatar store."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source and all its chunks from the avatar store."""
    cfg = load_cli_config()
    with open_service(cfg, db) as service:
        existing = service.store.get_source(owner, content_id)
        chunk_count = service.store.count_chunks(owner, content_id)
        if existing is None and chunk_count == 0:
            console.print(err_source_not_found(content_id, owner))
            raise typer.Exit(0)

        label = existing.source_label if existing else content_id
        console.print(f"\nRemove source: [bold]{label}[/] [dim]({content_id})[/]")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        service.delete_source(content_id, owner)

    console.print(f"\n[green]✓[/] Removed: {label}")
