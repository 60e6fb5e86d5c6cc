# =============================================================================
# Retrieval Orchestrator - Question → Owner-Scoped Context → Answer
# =============================================================================
#
# FLOW (search):
#   1. Reject empty / whitespace queries before any I/O
#   2. Embed the query
#   3. Vector query: top_k nearest, filtered to {"owner_id": owner}
#   4. Hydrate ids from the primary store, owner-scoped again
#   5. Attach scores (0 if no hit for an id), sort desc, keep
#      `search_context_limit` items
#   6. Nothing left → fixed "no relevant content" message, NO LLM call
#   7. One prompt (context block + literal query) → one LLM call
#
# The second truncation keeps the prompt short: the index ranks 5, only the
# best 2 (configurable) reach the model.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from brainvault.config import Settings
from brainvault.container import ServiceContainer
from brainvault.db.models import Content
from brainvault.db.repository import ContentStore
from brainvault.errors import GenerationError, ValidationError

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No relevant content found in your second brain for this query."
RESULTS_MESSAGE = "Search results found"
FALLBACK_ANSWER = "No response generated."

_CONTEXT_HEADER = "Below is the relevant information from the user's second brain:\n\n"
_INSTRUCTIONS = (
    "Based on the information above from the user's second brain, please "
    "provide a helpful and concise response to their query. If the "
    "information doesn't contain a direct answer, try to extract relevant "
    "insights that might be helpful. If any questions are asked, also try "
    "to answer them."
)


@dataclass
class ScoredContent:
    item: Content
    score: float


@dataclass
class SearchOutcome:
    message: str
    results: list[ScoredContent] = field(default_factory=list)
    answer: str | None = None


def build_prompt(query: str, results: list[ScoredContent]) -> str:
    """Context block of the kept items followed by the literal user query."""
    context = _CONTEXT_HEADER
    for index, scored in enumerate(results, start=1):
        item = scored.item
        context += f"[Content {index}]\nTitle: {item.title}\nType: {item.type}\n"
        if item.link:
            context += f"Link: {item.link}\n"
        context += f"Content: {item.content}\n\n"
    return f'{context}\n\nUser query: "{query}"\n\n{_INSTRUCTIONS}'


class RetrievalOrchestrator:
    def __init__(
        self,
        store: ContentStore,
        services: ServiceContainer,
        settings: Settings,
    ) -> None:
        self._store = store
        self._services = services
        self._top_k = settings.retrieval_top_k
        self._context_limit = settings.search_context_limit

    async def search(self, owner_id: str, query: str) -> SearchOutcome:
        """
        Answer `query` from the owner's own content.

        Raises:
            ValidationError: Empty or whitespace-only query.
            EmbeddingError / VectorIndexError / GenerationError: Upstream failure.
        """
        if not query or not query.strip():
            raise ValidationError("Search query is required")

        vector = await self._services.embedder.embed(query)
        matches = await self._services.vector_index.query(
            vector, self._top_k, filter={"owner_id": owner_id},
        )
        scores = {m.id: m.score for m in matches}

        items = await self._store.get_many(list(scores), owner_id)
        ranked = sorted(
            (ScoredContent(item=item, score=scores.get(item.id) or 0.0) for item in items),
            key=lambda scored: scored.score,
            reverse=True,
        )[: self._context_limit]

        logger.info(
            "search owner=%s matches=%d hydrated=%d kept=%d",
            owner_id, len(matches), len(items), len(ranked),
        )

        if not ranked:
            return SearchOutcome(message=NO_RESULTS_MESSAGE)

        try:
            response = await self._services.llm.complete(
                messages=[{"role": "user", "content": build_prompt(query, ranked)}],
            )
        except Exception as e:
            logger.error("Answer generation failed for owner=%s: %s", owner_id, e)
            raise GenerationError("Error processing search request") from e

        return SearchOutcome(
            message=RESULTS_MESSAGE,
            results=ranked,
            answer=response.content or FALLBACK_ANSWER,
        )
