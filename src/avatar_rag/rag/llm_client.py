"""LiteLLM provider layer for embeddings and chat completions.

Every embedding and LLM call in the ingest/query pipelines routes through the
two provider classes here. LiteLLM's built-in retry is used (``num_retries``).
LiteLLM exceptions are translated into ProviderError kinds in one place.
API key presence is checked before each provider call.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import litellm

from avatar_rag.errors import (
    AUTH,
    BAD_REQUEST,
    MALFORMED,
    NETWORK,
    RATE_LIMIT,
    UNKNOWN,
    EmbeddingProviderError,
    LLMProviderError,
    NotConfiguredError,
    ProviderError,
)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format. Models
            without a provider prefix are treated as OpenAI models.

    Raises:
        NotConfiguredError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required, or a provider we have no mapping for

    if not os.getenv(env_var):
        raise NotConfiguredError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def classify_error(exc: Exception) -> str:
    """Map a LiteLLM (OpenAI-compatible) exception to a ProviderError kind."""
    if isinstance(exc, litellm.AuthenticationError):
        return AUTH
    if isinstance(exc, litellm.RateLimitError):
        return RATE_LIMIT
    if isinstance(exc, (litellm.Timeout, litellm.APIConnectionError)):
        return NETWORK
    if isinstance(exc, litellm.BadRequestError):
        return BAD_REQUEST
    return UNKNOWN


def _wrap(exc: Exception, error_cls: type[ProviderError], model: str) -> ProviderError:
    kind = classify_error(exc)
    return error_cls(f"{model}: {exc}", kind=kind)


# ------------------------------------------------------------------
# Provider interfaces
# ------------------------------------------------------------------


class EmbeddingProvider(Protocol):
    async def create_embeddings(self, texts: list[str]) -> list[list[float]]: ...


class ChatProvider(Protocol):
    async def create_chat_completion(
        self,
        messages: list[dict],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: float,
    ) -> str: ...


# ------------------------------------------------------------------
# LiteLLM implementations
# ------------------------------------------------------------------


class LiteLLMEmbeddingProvider:
    """Embedding provider backed by ``litellm.aembedding()``.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        num_retries: Retries on transient errors (LiteLLM exponential backoff).
    """

    def __init__(self, model: str = "openai/text-embedding-3-small", num_retries: int = 3) -> None:
        self.model = model
        self.num_retries = num_retries

    async def create_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order.

        Raises:
            NotConfiguredError: If the provider API key is missing.
            EmbeddingProviderError: On API failure after retries, or if the
                response does not contain one vector per input.
        """
        validate_api_key(self.model)
        try:
            response = await litellm.aembedding(
                model=self.model,
                input=texts,
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise _wrap(exc, EmbeddingProviderError, self.model) from exc

        data = list(getattr(response, "data", None) or [])
        if len(data) != len(texts):
            raise EmbeddingProviderError(
                f"{self.model}: expected {len(texts)} embeddings, got {len(data)}",
                kind=MALFORMED,
            )
        if all(_get(item, "index") is not None for item in data):
            data.sort(key=lambda item: _get(item, "index"))
        vectors = [_get(item, "embedding") for item in data]
        if any(not v for v in vectors):
            raise EmbeddingProviderError(f"{self.model}: empty embedding in response", kind=MALFORMED)
        return [list(v) for v in vectors]


class LiteLLMChatProvider:
    """Chat-completion provider backed by ``litellm.acompletion()``."""

    def __init__(self, num_retries: int = 3) -> None:
        self.num_retries = num_retries

    async def create_chat_completion(
        self,
        messages: list[dict],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        top_p: float = 1.0,
    ) -> str:
        """Return the text content of the first choice.

        Raises:
            NotConfiguredError: If the provider API key is missing.
            LLMProviderError: On API failure after retries or an empty response.
        """
        validate_api_key(model)
        try:
            response = await litellm.acompletion(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                top_p=top_p,
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise _wrap(exc, LLMProviderError, model) from exc

        choices = getattr(response, "choices", None)
        if not choices:
            raise LLMProviderError(f"{model}: response contained no choices", kind=MALFORMED)
        return choices[0].message.content or ""


def _get(item: object, key: str) -> object:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)
