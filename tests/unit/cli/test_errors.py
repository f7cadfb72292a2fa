"""Tests for avatar-rag rich error messages."""

from __future__ import annotations

import pytest

from avatar_rag.cli.errors import (
    describe_error,
    err_config,
    err_no_api_key,
    err_no_db,
    err_no_input,
    err_no_owner,
    err_source_not_found,
    err_unsupported_type,
)
from avatar_rag.errors import (
    ConfigError,
    ContentTooLargeError,
    EmbeddingProviderError,
    LLMProviderError,
    NotConfiguredError,
    TenancyViolationError,
)


def _has_action(msg: str) -> bool:
    """Every error must contain a cause AND an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "use ", "pass ", "fix ", "check ", "wait", "supported:"])


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("OPENAI_API_KEY"),
        err_no_db(".avatar-rag.db"),
        err_no_owner(),
        err_source_not_found("abc", "alice"),
        err_no_input(),
        err_unsupported_type("podcast", ["custom_text"]),
        err_config(ConfigError("bad value")),
    ],
)
def test_every_message_has_action(msg):
    assert _has_action(msg)


def test_err_no_api_key_contains_env_var():
    assert "export OPENAI_API_KEY=" in err_no_api_key("OPENAI_API_KEY")


def test_err_source_not_found_names_owner():
    msg = err_source_not_found("abc", "alice")
    assert "'abc'" in msg
    assert "--owner alice" in msg


def test_describe_missing_api_key():
    exc = NotConfiguredError("API key not found for provider 'openai'. Set the OPENAI_API_KEY environment variable.")
    assert "export OPENAI_API_KEY=" in describe_error(exc)


def test_describe_not_configured_without_key_hint():
    assert "no database" in describe_error(NotConfiguredError("no database"))


@pytest.mark.parametrize(
    "kind, hint",
    [
        ("auth", "API key is valid"),
        ("rate_limit", "rate limiting"),
        ("network", "network connection"),
        ("malformed", "embedding.dimensions"),
        ("bad_request", "model names"),
    ],
)
def test_describe_provider_errors(kind, hint):
    assert hint in describe_error(EmbeddingProviderError("failed", kind=kind))
    assert hint in describe_error(LLMProviderError("failed", kind=kind))


def test_describe_tenancy_violation():
    assert "--owner" in describe_error(TenancyViolationError("owner_id is required"))


def test_describe_content_too_large():
    assert "--chunk-size" in describe_error(ContentTooLargeError(9000, 8000))


def test_describe_config_error():
    assert "Invalid configuration" in describe_error(ConfigError("x"))


def test_describe_generic_error():
    assert describe_error(ValueError("query text is empty")).endswith("query text is empty")
