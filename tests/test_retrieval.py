# =============================================================================
# Unit Tests - Retrieval Orchestrator
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from brainvault.config import settings
from brainvault.errors import GenerationError, ValidationError
from brainvault.pipeline.retrieval import (
    FALLBACK_ANSWER,
    NO_RESULTS_MESSAGE,
    RESULTS_MESSAGE,
    RetrievalOrchestrator,
    ScoredContent,
    build_prompt,
)
from brainvault.services.llm import LLMResponse
from brainvault.services.vectorstore import VectorMatch


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _orchestrator(store, services, **overrides) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(store, services, settings.model_copy(update=overrides))


def _seed(store, vector_index, owner, title, vector, link=None):
    item = _run(store.create(owner, title, link, "Note", f"{title} body", None))
    _run(vector_index.upsert(item.id, vector, {"owner_id": owner, "title": title}))
    return item


class TestValidation:
    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_blank_query_rejected_before_io(self, store, services, vector_index, query):
        with pytest.raises(ValidationError):
            _run(_orchestrator(store, services).search("u1", query))

        assert services.embedder.texts == []
        assert vector_index.query_calls == []


class TestSearch:
    def test_no_matches_skips_llm(self, store, services):
        outcome = _run(_orchestrator(store, services).search("u1", "anything"))

        assert outcome.message == NO_RESULTS_MESSAGE
        assert outcome.results == []
        assert outcome.answer is None
        services.llm.complete.assert_not_awaited()

    def test_query_is_owner_filtered(self, store, services, vector_index):
        _seed(store, vector_index, "u2", "theirs", [1.0, 0.0, 0.0])

        outcome = _run(_orchestrator(store, services).search("u1", "anything"))

        assert vector_index.query_calls == [{"owner_id": "u1"}]
        assert outcome.results == []

    def test_keeps_two_best_sorted_descending(self, store, services, vector_index):
        best = _seed(store, vector_index, "u1", "best", [1.0, 0.0, 0.0])
        second = _seed(store, vector_index, "u1", "second", [0.8, 0.6, 0.0])
        _seed(store, vector_index, "u1", "third", [0.0, 1.0, 0.0])

        outcome = _run(_orchestrator(store, services).search("u1", "q"))

        assert [r.item.id for r in outcome.results] == [best.id, second.id]
        assert outcome.results[0].score >= outcome.results[1].score
        assert outcome.message == RESULTS_MESSAGE
        assert outcome.answer == "Here is what you saved."
        services.llm.complete.assert_awaited_once()

    def test_context_limit_configurable(self, store, services, vector_index):
        for i in range(4):
            _seed(store, vector_index, "u1", f"item {i}", [1.0, 0.1 * i, 0.0])

        outcome = _run(_orchestrator(store, services, search_context_limit=3).search("u1", "q"))

        assert len(outcome.results) == 3

    def test_hydration_rechecks_owner(self, store, services):
        leaked = _run(store.create("u2", "secret", None, "Note", "s", None))
        services.vector_index = AsyncMock()
        services.vector_index.query.return_value = [VectorMatch(id=leaked.id, score=0.99)]

        outcome = _run(_orchestrator(store, services).search("u1", "q"))

        assert outcome.results == []
        assert store.get_many_calls == [([leaked.id], "u1")]
        services.llm.complete.assert_not_awaited()

    def test_missing_score_counts_as_zero(self, store, services):
        item = _run(store.create("u1", "t", None, "Note", "c", None))
        services.vector_index = AsyncMock()
        services.vector_index.query.return_value = [VectorMatch(id=item.id, score=None)]

        outcome = _run(_orchestrator(store, services).search("u1", "q"))

        assert outcome.results[0].score == 0.0

    def test_empty_llm_text_falls_back(self, store, services, vector_index):
        _seed(store, vector_index, "u1", "t", [1.0, 0.0, 0.0])
        services.llm.complete.return_value = LLMResponse(
            content="", model="m", input_tokens=1, output_tokens=0,
        )

        outcome = _run(_orchestrator(store, services).search("u1", "q"))

        assert outcome.answer == FALLBACK_ANSWER

    def test_llm_failure_is_generation_error(self, store, services, vector_index):
        _seed(store, vector_index, "u1", "t", [1.0, 0.0, 0.0])
        services.llm.complete.side_effect = RuntimeError("quota")

        with pytest.raises(GenerationError) as exc_info:
            _run(_orchestrator(store, services).search("u1", "q"))

        assert exc_info.value.message == "Error processing search request"


class TestPrompt:
    def test_prompt_lists_items_and_literal_query(self, store):
        with_link = _run(store.create("u1", "Post", "https://example.com", "Url", "Body", None))
        note = _run(store.create("u1", "Memo", None, "Note", "Text", None))

        prompt = build_prompt("what is it?", [
            ScoredContent(item=with_link, score=0.9),
            ScoredContent(item=note, score=0.5),
        ])

        assert "[Content 1]\nTitle: Post\nType: Url\nLink: https://example.com\nContent: Body" in prompt
        assert "[Content 2]\nTitle: Memo\nType: Note\nContent: Text" in prompt
        assert 'User query: "what is it?"' in prompt
