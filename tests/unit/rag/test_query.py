"""Tests for the query orchestrator."""

from __future__ import annotations

import pytest

from avatar_rag.db.models import ContentChunk
from avatar_rag.db.repository import DateRange
from avatar_rag.errors import LLMProviderError, TenancyViolationError
from avatar_rag.rag.generator import CONTEXT_START, PersonaConfig, ResponseGenerator
from avatar_rag.rag.query import QueryOptions, QueryProcessor, RetrievalConfig

CAMERA = [1.0, 0.0, 0.0]
COOKING = [0.0, 1.0, 0.0]


class FailingChatProvider:
    async def create_chat_completion(self, messages, **kwargs):
        raise LLMProviderError("provider down", kind="network")


def _add(store, owner, content_id, texts_and_vectors, content_type="custom_text", metadata=None):
    source = store.store_source(
        owner, content_type, source_label=f"Label {content_id}", source_id=content_id, metadata=metadata
    )
    chunks = [
        ContentChunk(text=t, start_char=0, end_char=len(t)).with_embedding(v, len(t) // 4)
        for t, v in texts_and_vectors
    ]
    store.store(
        chunks, owner, content_type, content_id,
        source_label=f"Label {content_id}", metadata=metadata, source_ref=source.id,
    )


@pytest.fixture
def processor(embedder, store, generator):
    return QueryProcessor(embedder, store, generator)


async def test_query_uses_matching_context(processor, store, chat_provider):
    _add(store, "alice", "gear", [("I shoot on a small camera.", CAMERA)])
    _add(store, "alice", "food", [("My favourite recipe is pasta.", COOKING)])

    result = await processor.query("  Which camera do you use?  ", "alice")

    assert result.has_results
    assert result.query == "Which camera do you use?"
    assert result.response == "Here is my answer."
    assert [s.content_id for s in result.sources] == ["gear"]
    assert result.sources[0].similarity == pytest.approx(1.0, abs=1e-6)
    assert result.context_tokens > 0
    prompt = chat_provider.last_system_prompt
    assert CONTEXT_START in prompt
    assert "[Source: Label gear]" in prompt
    assert "pasta" not in prompt


async def test_query_without_matches(processor, chat_provider):
    result = await processor.query("Which camera?", "alice")

    assert not result.has_results
    assert result.sources == []
    assert CONTEXT_START not in chat_provider.last_system_prompt
    assert "don't have enough information" in chat_provider.last_system_prompt


async def test_query_never_sees_other_owners(processor, store, chat_provider):
    _add(store, "bob", "bob-gear", [("Bob's camera is huge.", CAMERA)])

    result = await processor.query("Which camera?", "alice")

    assert not result.has_results
    assert "Bob" not in chat_provider.last_system_prompt


async def test_query_records_history(processor, store):
    _add(store, "alice", "gear", [("I shoot on a small camera.", CAMERA)])

    result = await processor.query("Which camera?", "alice")

    [record] = store.get_history("alice")
    assert record.id == result.history_id
    assert record.query_text == "Which camera?"
    assert record.response_text == "Here is my answer."
    assert len(record.retrieved_chunk_ids) == 1


async def test_query_without_history(processor, store):
    result = await processor.query("Which camera?", "alice", QueryOptions(record_history=False))
    assert result.history_id is None
    assert store.get_history("alice") == []


async def test_query_filters(processor, store):
    _add(store, "alice", "note", [("camera note", CAMERA)])
    _add(
        store, "alice", "vid", [("camera video", CAMERA)],
        content_type="youtube_video", metadata={"published_at": "2024-02-01T00:00:00Z"},
    )

    by_type = await processor.query("camera?", "alice", QueryOptions(content_types=["youtube_video"]))
    by_id = await processor.query("camera?", "alice", QueryOptions(content_ids=["note"]))
    by_date = await processor.query(
        "camera?", "alice", QueryOptions(date_range=DateRange(start="2024-01-01", end="2024-03-01"))
    )

    assert [s.content_id for s in by_type.sources] == ["vid"]
    assert [s.content_id for s in by_id.sources] == ["note"]
    assert [s.content_id for s in by_date.sources] == ["vid"]


async def test_query_threshold_and_match_count(embedder, store, generator):
    processor = QueryProcessor(embedder, store, generator, RetrievalConfig(threshold=-1.0, match_count=1))
    _add(store, "alice", "a", [("camera one", CAMERA)])
    _add(store, "alice", "b", [("recipe two", COOKING)])

    result = await processor.query("camera?", "alice")
    assert [s.content_id for s in result.sources] == ["a"]

    result = await processor.query("camera?", "alice", QueryOptions(match_count=5))
    assert {s.content_id for s in result.sources} == {"a", "b"}


async def test_query_passes_persona(processor, chat_provider):
    await processor.query("hi", "alice", QueryOptions(persona=PersonaConfig(name="Mia")))
    assert chat_provider.last_system_prompt.startswith("You are Mia.")


async def test_query_requires_owner(processor):
    with pytest.raises(TenancyViolationError):
        await processor.query("Which camera?", "")


async def test_query_rejects_empty_text(processor):
    with pytest.raises(ValueError):
        await processor.query("   ", "alice")


async def test_generation_errors_propagate(embedder, store):
    processor = QueryProcessor(embedder, store, ResponseGenerator(FailingChatProvider()))
    with pytest.raises(LLMProviderError):
        await processor.query("Which camera?", "alice")
    assert store.get_history("alice") == []


async def test_search_by_keyword_groups_by_content(processor, store):
    _add(store, "alice", "gear", [("camera body", CAMERA), ("lens choice", CAMERA)])
    _add(store, "alice", "food", [("recipe", COOKING)])

    groups = await processor.search_by_keyword("camera", "alice")

    assert [g.content_id for g in groups] == ["gear"]
    assert len(groups[0].matches) == 2
    assert groups[0].max_similarity == pytest.approx(1.0, abs=1e-6)


async def test_search_by_keyword_empty(processor):
    assert await processor.search_by_keyword("   ", "alice") == []


async def test_get_history(processor, store):
    store.record_history("alice", "q", None, "r")
    assert [r.query_text for r in processor.get_history("alice")] == ["q"]
