"""avatar-rag history: show past questions and answers."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from avatar_rag.cli.runtime import DEFAULT_OWNER, console, load_cli_config, open_service


def history_cmd(
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", envvar="AVATAR_OWNER", help="Owner whose history is shown."),
    ] = DEFAULT_OWNER,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the avatar store."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Entries to show.")] = 20,
    offset: Annotated[int, typer.Option("--offset", min=0, help="Entries to skip.")] = 0,
) -> None:
    """Show the owner's query history, newest first."""
    cfg = load_cli_config()
    with open_service(cfg, db) as service:
        records = service.get_history(owner, limit=limit, offset=offset)

    if not records:
        console.print(f"[dim]No history for owner '{owner}'.[/]")
        return

    table = Table(show_header=True, padding=(0, 1))
    table.add_column("When", style="dim")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Chunks", justify="right")
    for rec in records:
        table.add_row(
            rec.created_at or "",
            rec.query_text,
            rec.response_text[:120] + ("…" if len(rec.response_text) > 120 else ""),
            str(len(rec.retrieved_chunk_ids)),
        )
    console.print(table)
