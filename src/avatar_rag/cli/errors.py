"""avatar-rag rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from avatar_rag.cli.errors import err_no_db
    console.print(err_no_db(".avatar-rag.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

import re

from avatar_rag.errors import (
    ConfigError,
    ContentTooLargeError,
    NotConfiguredError,
    ProviderError,
    TenancyViolationError,
)

_API_KEY_MSG_RE = re.compile(r"Set the (\w+) environment variable")


def err_no_api_key(env_var: str) -> str:
    """No API key in the environment.

    Example:
        No API key found. Set:  export OPENAI_API_KEY=sk-...
    """
    return (
        f"[red]Error:[/] No API key found ({env_var} is not set).\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str) -> str:
    """No avatar store at *db_path*."""
    return (
        f"[red]Error:[/] No avatar store found at '{db_path}'.\n"
        "  Run:  avatar-rag init  (or avatar-rag ingest) to create it, or pass --db PATH."
    )


def err_no_owner() -> str:
    return (
        "[red]Error:[/] No owner id given.\n"
        "  Pass --owner ID or set the AVATAR_OWNER environment variable."
    )


def err_source_not_found(content_id: str, owner_id: str) -> str:
    return (
        f"[yellow]Source not found:[/] '{content_id}' is not stored for owner '{owner_id}'.\n"
        f"  Run:  avatar-rag sources --owner {owner_id}  to see all ingested sources."
    )


def err_no_input() -> str:
    return (
        "[red]Error:[/] Nothing to ingest.\n"
        "  Use --text TEXT or --file PATH for custom text, or --source URL with --type."
    )


def err_unsupported_type(source_type: str, supported: list[str]) -> str:
    return (
        f"[red]Error:[/] Source type '{source_type}' cannot be ingested here.\n"
        f"  Supported: {', '.join(supported)}"
    )


def err_config(exc: ConfigError) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {exc}\n"
        "  Fix avatar.yaml (or ~/.avatar-rag/config.yaml) and retry."
    )


def err_provider(exc: ProviderError) -> str:
    """Provider call failed; advice depends on the failure kind."""
    if exc.is_auth:
        hint = "Check that your API key is valid and has access to the configured model."
    elif exc.is_rate_limit:
        hint = "The provider is rate limiting requests. Wait a moment and retry."
    elif exc.kind == "network":
        hint = "Could not reach the provider. Check your network connection and retry."
    elif exc.kind == "malformed":
        hint = "Check that embedding.dimensions matches the embedding model."
    else:
        hint = "Check the model names in avatar.yaml and retry."
    return f"[red]Error:[/] Provider call failed: {exc}\n  {hint}"


def describe_error(exc: Exception) -> str:
    """Return the actionable message for any pipeline error."""
    if isinstance(exc, NotConfiguredError):
        m = _API_KEY_MSG_RE.search(str(exc))
        if m:
            return err_no_api_key(m.group(1))
        return f"[red]Error:[/] {exc}"
    if isinstance(exc, ConfigError):
        return err_config(exc)
    if isinstance(exc, ProviderError):
        return err_provider(exc)
    if isinstance(exc, TenancyViolationError):
        return err_no_owner()
    if isinstance(exc, ContentTooLargeError):
        return f"[red]Error:[/] {exc}\n  Use --chunk-size to lower the chunk size."
    return f"[red]Error:[/] {exc}"
