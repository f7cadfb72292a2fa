"""avatar-rag sources: list an owner's ingested content."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from avatar_rag.cli.runtime import DEFAULT_OWNER, console, load_cli_config, open_service
from avatar_rag.db.models import COLLECTION_TYPES


def sources_cmd(
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", envvar="AVATAR_OWNER", help="Owner whose sources are listed."),
    ] = DEFAULT_OWNER,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the avatar store."),
    ] = None,
) -> None:
    """List ingested sources with their chunk counts."""
    cfg = load_cli_config()
    with open_service(cfg, db) as service:
        sources = service.list_sources(owner)
        if not sources:
            console.print(
                Panel(
                    f"[dim]No sources ingested for owner '{owner}'.[/]\n"
                    "  Run:  avatar-rag ingest --text '...'",
                    title="[bold]Sources[/]",
                    expand=False,
                )
            )
            return

        table = Table(show_header=True, box=None, padding=(0, 1))
        table.add_column("Content id")
        table.add_column("Type", style="dim")
        table.add_column("Label")
        table.add_column("Chunks", justify="right")
        table.add_column("Ingested", style="dim")
        for src in sources:
            chunks = (
                "-"
                if src.source_type in COLLECTION_TYPES
                else str(service.store.count_chunks(owner, src.source_id))
            )
            table.add_row(
                src.source_id, src.source_type, src.source_label, chunks, src.created_at or ""
            )
        total = service.store.count_chunks(owner)

    console.print(
        Panel(
            table,
            title=f"[bold]Sources[/] [dim]({len(sources)} sources, {total:,} chunks)[/]",
            expand=False,
        )
    )
