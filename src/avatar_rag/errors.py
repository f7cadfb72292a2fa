"""Error taxonomy for the avatar RAG pipeline.

Stages raise these typed errors; the ingestion orchestrator converts them
into structured results once, while query failures propagate to the caller.
"""

from __future__ import annotations


class AvatarRagError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigError(AvatarRagError, ValueError):
    """Raised when a configuration value is invalid or forbidden."""


class NotConfiguredError(AvatarRagError, RuntimeError):
    """A required dependency (vector store, provider credentials) is missing."""


class ContentTooLargeError(AvatarRagError):
    """Text exceeds the embedding token-estimate guard."""

    def __init__(self, estimated_tokens: int, max_tokens: int) -> None:
        self.estimated_tokens = estimated_tokens
        self.max_tokens = max_tokens
        super().__init__(
            f"Content too large for embedding: estimated {estimated_tokens} tokens "
            f"exceeds maximum of {max_tokens}. Re-chunk with a smaller chunk size."
        )


class InsufficientContentError(AvatarRagError):
    """Source text is too short to produce a meaningful chunk."""

    def __init__(self, length: int, minimum: int) -> None:
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"Not enough text content: {length} characters after cleaning "
            f"(minimum {minimum})."
        )


class TenancyViolationError(AvatarRagError):
    """An owner-scoped operation was attempted without an owner id."""


class UnsupportedSourceError(AvatarRagError):
    """Unknown source type, unparseable source id, or no fetcher registered."""


class FetchError(AvatarRagError):
    """A content fetcher failed to return metadata, text or item ids."""


class StoreError(AvatarRagError):
    """Writing ingested content to the vector store failed."""


# Provider error kinds
AUTH = "auth"
RATE_LIMIT = "rate_limit"
NETWORK = "network"
BAD_REQUEST = "bad_request"
MALFORMED = "malformed"
UNKNOWN = "unknown"


class ProviderError(AvatarRagError):
    """An external provider call failed.

    Attributes:
        kind: One of ``auth``, ``rate_limit``, ``network``, ``bad_request``,
            ``malformed`` or ``unknown`` so callers can pick a retry policy.
    """

    def __init__(self, message: str, kind: str = UNKNOWN) -> None:
        self.kind = kind
        super().__init__(message)

    @property
    def is_auth(self) -> bool:
        return self.kind == AUTH

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == RATE_LIMIT


class EmbeddingProviderError(ProviderError):
    """The embedding provider failed or returned an unusable vector."""


class LLMProviderError(ProviderError):
    """The chat-completion provider failed."""
