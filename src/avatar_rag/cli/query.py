"""avatar-rag query: ask the avatar a question.

Usage:
  avatar-rag query "What camera do you use?" --owner alice
  avatar-rag query "..." --owner alice --type youtube_video --since 2024-01-01 --sources
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from avatar_rag.cli.errors import describe_error
from avatar_rag.cli.runtime import DEFAULT_OWNER, console, load_cli_config, open_service
from avatar_rag.db.repository import DateRange
from avatar_rag.errors import AvatarRagError
from avatar_rag.rag.query import QueryOptions, QueryResult


def query_cmd(
    question: Annotated[str, typer.Argument(help="Question for the avatar.")],
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", envvar="AVATAR_OWNER", help="Owner whose content is searched."),
    ] = DEFAULT_OWNER,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the avatar store."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", min=-1.0, max=1.0, help="Minimum cosine similarity."),
    ] = None,
    match_count: Annotated[
        int | None,
        typer.Option("--match-count", "-k", min=1, help="Maximum chunks retrieved."),
    ] = None,
    content_type: Annotated[
        list[str] | None,
        typer.Option("--type", help="Restrict to a source type (repeatable)."),
    ] = None,
    content_id: Annotated[
        list[str] | None,
        typer.Option("--content-id", help="Restrict to a content id (repeatable)."),
    ] = None,
    since: Annotated[
        datetime | None,
        typer.Option("--since", help="Only content published on or after this date."),
    ] = None,
    until: Annotated[
        datetime | None,
        typer.Option("--until", help="Only content published on or before this date."),
    ] = None,
    show_sources: Annotated[
        bool,
        typer.Option("--sources", help="List the chunks the answer is based on."),
    ] = False,
    no_history: Annotated[
        bool,
        typer.Option("--no-history", help="Do not record this exchange in the history."),
    ] = False,
) -> None:
    """Answer a question from the owner's ingested content."""
    cfg = load_cli_config()
    options = QueryOptions(
        threshold=threshold,
        match_count=match_count,
        content_types=list(content_type or []),
        content_ids=list(content_id or []),
        date_range=DateRange(start=since, end=until) if since or until else None,
        record_history=not no_history,
    )

    with open_service(cfg, db) as service:
        try:
            result = asyncio.run(service.query(question, owner, options))
        except (AvatarRagError, ValueError) as exc:
            console.print(describe_error(exc))
            raise typer.Exit(1)

    _print_result(result, show_sources)


def _print_result(result: QueryResult, show_sources: bool) -> None:
    console.print(Panel(result.response, title="[bold]Avatar[/]", expand=False))
    if result.has_results:
        console.print(
            f"  [dim]{len(result.sources)} sources, ~{result.context_tokens:,} context tokens[/]"
        )
    else:
        console.print("  [yellow]no matching content[/]")

    if show_sources and result.sources:
        table = Table(show_header=True, box=None, padding=(0, 1))
        table.add_column("Similarity", justify="right")
        table.add_column("Type", style="dim")
        table.add_column("Source")
        table.add_column("Excerpt", style="dim")
        for ref in result.sources:
            excerpt = ref.text[:80].replace("\n", " ")
            table.add_row(
                f"{ref.similarity:.3f}",
                ref.content_type,
                ref.content_source or ref.content_id,
                excerpt + ("…" if len(ref.text) > 80 else ""),
            )
        console.print(table)
