# =============================================================================
# Search API - Semantic Search + Answer Over My Content
# =============================================================================
#
#   POST /search {query}
#     → {message, relevantContent: [... similarityScore], answer}
#     → {message, results: []} when nothing matched (no LLM call)
#     → 400 for a blank query
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from brainvault.api.deps import get_content_repository, get_current_owner_id, get_services
from brainvault.config import settings
from brainvault.container import ServiceContainer
from brainvault.db.repository import ContentRepository
from brainvault.models.requests import SearchRequest
from brainvault.models.responses import (
    ContentItemResponse,
    EmptySearchResponse,
    ScoredContentResponse,
    SearchResponse,
)
from brainvault.pipeline.retrieval import RetrievalOrchestrator

router = APIRouter(tags=["Search"])


@router.post(
    "/search",
    response_model=None,
    summary="Ask a question over my second brain",
    responses={200: {"model": SearchResponse}},
)
async def search(
    request: SearchRequest,
    owner_id: str = Depends(get_current_owner_id),
    store: ContentRepository = Depends(get_content_repository),
    services: ServiceContainer = Depends(get_services),
) -> SearchResponse | EmptySearchResponse:
    outcome = await RetrievalOrchestrator(store, services, settings).search(
        owner_id, request.query,
    )
    if not outcome.results:
        return EmptySearchResponse(message=outcome.message)

    return SearchResponse(
        message=outcome.message,
        relevant_content=[
            ScoredContentResponse(
                **ContentItemResponse.model_validate(scored.item).model_dump(),
                similarity_score=scored.score,
            )
            for scored in outcome.results
        ],
        answer=outcome.answer,
    )
