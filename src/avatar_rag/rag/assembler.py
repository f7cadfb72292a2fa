"""Context assembler: ranked chunks → one prompt-ready context string.

Chunks are kept in similarity order, optionally headed by their source label,
and joined with a separator until the token budget is spent. The chunk that
crosses the budget is truncated to fit, unless not even its label and one
character of text fit; lower-ranked chunks are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from avatar_rag.db.models import RankedChunk
from avatar_rag.ingest.normalizer import estimate_token_count

SEPARATOR = "\n\n---\n\n"


@dataclass
class AssemblerConfig:
    token_budget: int = 4000  # max estimated tokens for the assembled context
    include_labels: bool = True

    def __post_init__(self) -> None:
        if self.token_budget < 1:
            raise ValueError("token_budget must be >= 1")


@dataclass
class AssembledContext:
    text: str = ""
    chunks: list[RankedChunk] = field(default_factory=list)
    total_tokens: int = 0
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.chunks


def format_chunk(ranked: RankedChunk, include_labels: bool = True) -> str:
    """Render one chunk, prefixed with ``[Source: <label>]`` when labels are on."""
    text = ranked.chunk.text
    if not include_labels:
        return text
    label = ranked.chunk.content_source or ranked.chunk.content_id
    return f"[Source: {label}]\n{text}"


def assemble(ranked_chunks: list[RankedChunk], config: AssemblerConfig | None = None) -> AssembledContext:
    """Join *ranked_chunks* (best first) into a context within the token budget.

    Args:
        ranked_chunks: Search hits; re-sorted by similarity descending.
        config: Token budget and label settings.

    Returns:
        AssembledContext; ``is_empty`` when there is nothing to include.
    """
    config = config or AssemblerConfig()
    if not ranked_chunks:
        return AssembledContext()

    ordered = sorted(ranked_chunks, key=lambda r: r.similarity, reverse=True)
    budget_chars = config.token_budget * 4

    parts: list[str] = []
    selected: list[RankedChunk] = []
    used = 0
    truncated = False

    for ranked in ordered:
        piece = format_chunk(ranked, config.include_labels)
        header = len(piece) - len(ranked.chunk.text)
        sep = len(SEPARATOR) if parts else 0
        remaining = budget_chars - used - sep
        # Room for the label alone is not room for the chunk.
        if remaining < header + 1:
            truncated = True
            break
        if len(piece) > remaining:
            parts.append(piece[:remaining].rstrip())
            selected.append(ranked)
            truncated = True
            break
        parts.append(piece)
        selected.append(ranked)
        used += sep + len(piece)

    text = SEPARATOR.join(parts)
    return AssembledContext(
        text=text,
        chunks=selected,
        total_tokens=estimate_token_count(text),
        truncated=truncated,
    )
