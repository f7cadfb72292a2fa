"""Response generator: persona system prompt + retrieved context → LLM answer.

The system message is the persona prompt followed by the assembled context
between ``----- CONTEXT START -----`` / ``----- CONTEXT END -----`` markers.
With no context, the prompt tells the model to say it does not have enough
information instead of inventing influencer-specific claims.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields

from avatar_rag.errors import ConfigError, LLMProviderError, NotConfiguredError
from avatar_rag.rag.llm_client import ChatProvider

logger = logging.getLogger(__name__)

CONTEXT_START = "----- CONTEXT START -----"
CONTEXT_END = "----- CONTEXT END -----"

_RESPONSE_LENGTHS: dict[str, str] = {
    "short": "Keep your responses concise and to the point, ideally 1-2 sentences.",
    "medium": "Provide moderate-length responses with enough detail to be helpful.",
    "long": "Feel free to provide detailed responses with thorough explanations.",
}

_DEFAULT_INTRO = (
    "You are an AI assistant that provides helpful, accurate, and concise responses. "
    "Always maintain a friendly, helpful tone."
)

_CONTEXT_RULES = (
    "Use the provided context to answer the user's question.\n"
    "If the context doesn't contain relevant information, say that you don't have "
    "enough information and suggest what might help.\n"
    "Don't make up information that isn't supported by the context."
)

_NO_CONTEXT_RULES = (
    "No content from the creator matched this question.\n"
    "Say plainly that you don't have enough information to answer it from the "
    "creator's content, and suggest what might help.\n"
    "Do not invent facts, opinions or experiences attributed to the creator."
)

_SUMMARY_SYSTEM = (
    "Summarize the following text concisely in {max_length} characters or less. "
    "Capture the key points while maintaining accuracy."
)


@dataclass
class PersonaConfig:
    """How the avatar speaks (avatar.yaml: persona:).

    Optional ``model``, ``temperature`` and ``max_tokens`` override the
    generation defaults for this persona.
    """

    name: str = ""
    description: str = ""
    tone: str = ""
    writing_style: str = ""
    knowledge_level: str = ""
    expertise: list[str] = field(default_factory=list)
    personality: str = ""
    response_length: str = ""
    moderation_rules: list[str] = field(default_factory=list)
    custom_instructions: str = ""
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        if self.response_length and self.response_length not in _RESPONSE_LENGTHS:
            raise ConfigError(
                f"persona.response_length must be one of "
                f"{', '.join(_RESPONSE_LENGTHS)}, got {self.response_length!r}"
            )
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ConfigError(f"persona.temperature must be in [0, 2], got {self.temperature}")
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ConfigError(f"persona.max_tokens must be >= 1, got {self.max_tokens}")

    @property
    def is_default(self) -> bool:
        """True when no persona attribute that shapes the prompt is set."""
        prompt_fields = {"model", "temperature", "max_tokens"}
        return not any(
            getattr(self, f.name) for f in fields(self) if f.name not in prompt_fields
        )


@dataclass
class GenerationConfig:
    """LLM generation settings (avatar.yaml: generation:)."""

    model: str = "openai/gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    summary_model: str = "openai/gpt-4o-mini"
    num_retries: int = 3

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigError(f"generation.temperature must be in [0, 2], got {self.temperature}")
        if self.max_tokens < 1:
            raise ConfigError(f"generation.max_tokens must be >= 1, got {self.max_tokens}")
        if not 0.0 < self.top_p <= 1.0:
            raise ConfigError(f"generation.top_p must be in (0, 1], got {self.top_p}")


def build_system_prompt(persona: PersonaConfig | None, has_context: bool) -> str:
    """Compose the system prompt from persona attributes and context rules."""
    persona = persona or PersonaConfig()
    parts: list[str] = []

    if persona.is_default:
        parts.append(_DEFAULT_INTRO)
    else:
        intro = f"You are {persona.name or 'an AI assistant'}"
        if persona.description:
            intro += f", {persona.description}"
        parts.append(intro + ".")

        style = []
        if persona.tone:
            style.append(f"Maintain a {persona.tone} tone in your responses.")
        if persona.writing_style:
            style.append(f"Write in a {persona.writing_style} style.")
        if style:
            parts.append(" ".join(style))

        if persona.knowledge_level:
            level = f"Your expertise level is {persona.knowledge_level}."
            if persona.knowledge_level.lower() == "expert":
                level += " Use domain-specific terminology where appropriate."
            elif persona.knowledge_level.lower() == "beginner":
                level += " Explain concepts in simple terms."
            parts.append(level)

        if persona.expertise:
            parts.append(f"You have expertise in {', '.join(persona.expertise)}.")

        if persona.personality:
            parts.append(
                f"Your personality traits include: {persona.personality}. "
                "Reflect these traits in your responses."
            )

        if persona.moderation_rules:
            rules = "\n".join(f"- {rule}" for rule in persona.moderation_rules)
            parts.append(f"Important moderation rules to follow:\n{rules}")

    if persona.response_length:
        parts.append(_RESPONSE_LENGTHS[persona.response_length])

    parts.append(_CONTEXT_RULES if has_context else _NO_CONTEXT_RULES)

    if persona.custom_instructions:
        parts.append(persona.custom_instructions)

    return "\n\n".join(parts)


def format_context(context: str) -> str:
    """Wrap assembled context in the start/end markers ("" for empty context)."""
    if not context or not context.strip():
        return ""
    return f"\n\n{CONTEXT_START}\n{context}\n{CONTEXT_END}\n"


class ResponseGenerator:
    """Generate avatar answers and short summaries through a ChatProvider.

    Args:
        provider: Any object implementing ``create_chat_completion``; None
            leaves the generator unconfigured (every call raises).
        config: Model and sampling defaults.
    """

    def __init__(self, provider: ChatProvider | None, config: GenerationConfig | None = None) -> None:
        self._provider = provider
        self._config = config or GenerationConfig()

    @property
    def config(self) -> GenerationConfig:
        return self._config

    def _require_provider(self) -> ChatProvider:
        if self._provider is None:
            raise NotConfiguredError("No LLM provider configured for response generation.")
        return self._provider

    def build_messages(
        self,
        query: str,
        context: str,
        persona: PersonaConfig | None = None,
        history: list[dict] | None = None,
    ) -> list[dict]:
        """Return the OpenAI-style message list sent to the provider."""
        has_context = bool(context and context.strip())
        system = build_system_prompt(persona, has_context) + format_context(context)
        messages = [{"role": "system", "content": system}]
        for turn in history or []:
            role = turn.get("role")
            if role not in ("user", "assistant"):
                raise ValueError(f"history turns must have role 'user' or 'assistant', got {role!r}")
            messages.append({"role": role, "content": str(turn.get("content", ""))})
        messages.append({"role": "user", "content": query})
        return messages

    async def generate(
        self,
        query: str,
        context: str,
        persona: PersonaConfig | None = None,
        history: list[dict] | None = None,
    ) -> str:
        """Return the avatar's answer to *query*, grounded in *context*.

        Raises:
            NotConfiguredError: No provider (or no API key) is configured.
            LLMProviderError: The completion call failed.
        """
        provider = self._require_provider()
        persona = persona or PersonaConfig()
        messages = self.build_messages(query, context, persona, history)
        model = persona.model or self._config.model
        logger.debug("Generating response with %s (%d messages)", model, len(messages))
        response = await provider.create_chat_completion(
            messages,
            model=model,
            temperature=(
                persona.temperature if persona.temperature is not None else self._config.temperature
            ),
            max_tokens=persona.max_tokens or self._config.max_tokens,
            top_p=self._config.top_p,
        )
        return response.strip()

    async def summarize(self, text: str, max_length: int = 200) -> str:
        """Return a short summary of *text*; truncates *text* if the provider fails."""
        provider = self._require_provider()
        messages = [
            {"role": "system", "content": _SUMMARY_SYSTEM.format(max_length=max_length)},
            {"role": "user", "content": text[:8000]},
        ]
        try:
            summary = await provider.create_chat_completion(
                messages,
                model=self._config.summary_model,
                temperature=0.5,
                max_tokens=100,
                top_p=1.0,
            )
        except (LLMProviderError, NotConfiguredError) as exc:
            logger.warning("Summary generation failed, falling back to truncation: %s", exc)
            return text[:max_length] + "..."
        return summary.strip()
