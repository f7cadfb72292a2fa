"""avatar-rag ingest: add content to an owner's avatar store.

Custom text comes from --text or --file. Other source types (YouTube,
Instagram) need a fetcher registered with the service; without one the
result reports the type as unsupported.

Usage:
  avatar-rag ingest --owner alice --file notes.txt --title "Training notes"
  avatar-rag ingest --owner alice --text "..."
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from avatar_rag.cli.errors import describe_error, err_no_input, err_unsupported_type
from avatar_rag.cli.runtime import DEFAULT_OWNER, console, load_cli_config, open_service
from avatar_rag.db.models import CUSTOM_TEXT, SOURCE_TYPES
from avatar_rag.errors import AvatarRagError
from avatar_rag.ingest.pipeline import IngestOptions, IngestResult


def ingest_cmd(
    text: Annotated[
        str | None,
        typer.Option("--text", "-t", help="Custom text to ingest."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Read custom text from a UTF-8 file."),
    ] = None,
    source: Annotated[
        str | None,
        typer.Option("--source", "-s", help="URL or id of a video, channel, post or account."),
    ] = None,
    source_type: Annotated[
        str,
        typer.Option("--type", help=f"Source type ({', '.join(sorted(SOURCE_TYPES))})."),
    ] = CUSTOM_TEXT,
    title: Annotated[
        str | None,
        typer.Option("--title", help="Title stored with the content."),
    ] = None,
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", envvar="AVATAR_OWNER", help="Owner id the content belongs to."),
    ] = DEFAULT_OWNER,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the avatar store (created if missing)."),
    ] = None,
    chunk_size: Annotated[
        int | None,
        typer.Option("--chunk-size", min=1, help="Override the chunk size in characters."),
    ] = None,
    overlap: Annotated[
        int | None,
        typer.Option("--overlap", min=0, help="Override the chunk overlap in characters."),
    ] = None,
    max_items: Annotated[
        int | None,
        typer.Option("--max-items", min=1, help="Items to ingest from a channel or account."),
    ] = None,
    summarize: Annotated[
        bool,
        typer.Option("--summarize", help="Store a short summary of each ingested item."),
    ] = False,
) -> None:
    """Ingest content into the avatar store."""
    if source_type not in SOURCE_TYPES:
        console.print(err_unsupported_type(source_type, sorted(SOURCE_TYPES)))
        raise typer.Exit(1)

    if source_type == CUSTOM_TEXT:
        if file is not None:
            if not file.is_file():
                console.print(f"[red]Error:[/] File not found: '{file}'")
                raise typer.Exit(1)
            payload = file.read_text(encoding="utf-8", errors="replace")
            title = title or file.stem
        else:
            payload = text
    else:
        payload = source
    if not payload:
        console.print(err_no_input())
        raise typer.Exit(1)

    cfg = load_cli_config()
    options = IngestOptions(
        chunk_size=chunk_size, overlap=overlap, max_items=max_items, summarize=summarize
    )
    metadata = {"title": title} if title else None

    with open_service(cfg, db, must_exist=False) as service:
        if source_type != CUSTOM_TEXT and source_type not in service.supported_types:
            console.print(err_unsupported_type(source_type, service.supported_types))
            raise typer.Exit(1)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task(f"Ingesting ({source_type})…", total=None)
            try:
                result = asyncio.run(
                    service.ingest(source_type, payload, owner, metadata, options)
                )
            except AvatarRagError as exc:
                console.print(describe_error(exc))
                raise typer.Exit(1)

    _print_result(result)
    if not result.success:
        raise typer.Exit(1)


def _print_result(result: IngestResult) -> None:
    if not result.success and not result.items:
        console.print(f"[red]✗ Ingestion failed:[/] {result.error}")
        return

    label = result.content_title or result.content_id
    mark = "[green]✓[/]" if result.success else "[red]✗[/]"
    console.print(f"{mark} {label} [dim]({result.content_id})[/]")
    console.print(f"  {result.chunks_processed} chunks, ~{result.total_tokens:,} tokens")

    if result.items:
        table = Table(show_header=True, box=None, padding=(0, 1))
        table.add_column("", width=1)
        table.add_column("Item")
        table.add_column("Chunks", justify="right")
        table.add_column("Error", style="dim")
        for item in result.items:
            table.add_row(
                "[green]✓[/]" if item.success else "[red]✗[/]",
                item.content_title or item.content_id or "?",
                str(item.chunks_processed),
                item.error or "",
            )
        console.print(table)
        console.print(
            f"  {len(result.items) - result.failed_items} of {len(result.items)} items ingested"
        )
