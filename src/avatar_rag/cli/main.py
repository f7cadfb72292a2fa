"""avatar-rag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from avatar_rag.cli.history import history_cmd
from avatar_rag.cli.ingest import ingest_cmd
from avatar_rag.cli.init import init_cmd
from avatar_rag.cli.query import query_cmd
from avatar_rag.cli.remove import remove_cmd
from avatar_rag.cli.runtime import setup_logging
from avatar_rag.cli.sources import sources_cmd


def _get_version() -> str:
    try:
        return importlib.metadata.version("avatar-rag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"avatar-rag {_get_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="avatar-rag",
    help=(
        "avatar-rag: answer questions as a creator, from the creator's own content.\n\n"
        "  avatar-rag init     Create config files and an empty avatar store.\n"
        "  avatar-rag ingest   Add videos, posts or custom text to an owner's store.\n"
        "  avatar-rag query    Ask the avatar a question."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """avatar-rag: retrieval-augmented avatar answers."""
    setup_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("query")(query_cmd)
app.command("sources")(sources_cmd)
app.command("remove")(remove_cmd)
app.command("history")(history_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed avatar-rag version."""
    typer.echo(f"avatar-rag {_get_version()}")


if __name__ == "__main__":
    app()
