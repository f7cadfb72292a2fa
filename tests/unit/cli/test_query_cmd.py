"""Tests for the avatar-rag query and history commands."""

from __future__ import annotations

from avatar_rag.cli.main import app


def test_query_without_store(runner, workdir):
    result = runner.invoke(app, ["query", "Which camera?", "--owner", "alice"])
    assert result.exit_code == 1
    assert "No avatar store found" in result.output


def test_query_answers_from_content(runner, ingested, chat_provider):
    result = runner.invoke(app, ["query", "Which camera do you use?", "--owner", "alice"])

    assert result.exit_code == 0, result.output
    assert "Here is my answer." in result.output
    assert "1 sources" in result.output
    assert "[Source: Gear notes]" in chat_provider.last_system_prompt


def test_query_lists_sources(runner, ingested):
    result = runner.invoke(app, ["query", "Which camera?", "--owner", "alice", "--sources"])
    assert result.exit_code == 0, result.output
    assert "Similarity" in result.output
    assert "Gear notes" in result.output


def test_query_other_owner_has_no_results(runner, ingested):
    result = runner.invoke(app, ["query", "Which camera?", "--owner", "bob"])
    assert result.exit_code == 0, result.output
    assert "no matching content" in result.output


def test_query_type_filter(runner, ingested):
    result = runner.invoke(
        app, ["query", "Which camera?", "--owner", "alice", "--type", "youtube_video"]
    )
    assert "no matching content" in result.output


def test_query_records_history(runner, ingested):
    runner.invoke(app, ["query", "Which camera?", "--owner", "alice"])
    runner.invoke(app, ["query", "Secret question", "--owner", "alice", "--no-history"])

    result = runner.invoke(app, ["history", "--owner", "alice"])

    assert result.exit_code == 0, result.output
    assert "Which camera?" in result.output
    assert "Secret question" not in result.output


def test_history_empty(runner, ingested):
    result = runner.invoke(app, ["history", "--owner", "bob"])
    assert result.exit_code == 0
    assert "No history for owner 'bob'" in result.output


def test_query_provider_error(runner, ingested, chat_provider):
    from avatar_rag.errors import LLMProviderError

    async def _fail(messages, **kwargs):
        raise LLMProviderError("too many requests", kind="rate_limit")

    chat_provider.create_chat_completion = _fail
    result = runner.invoke(app, ["query", "Which camera?", "--owner", "alice"])

    assert result.exit_code == 1
    assert "rate limiting" in result.output
