# =============================================================================
# Content API - Add, List, Delete Knowledge Items
# =============================================================================
#
# Thin handlers: request validation and response mapping only. The
# scrape → store → embed → index sequence lives in IngestionSaga.
#
#   POST   /content       → {message, contentId, imageUrl}
#   GET    /content       → {content: [...]}, one welcome item when empty
#   DELETE /content/{id}  → {message}; 400 for a malformed id
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from brainvault.api.deps import get_content_repository, get_current_owner_id, get_services
from brainvault.config import settings
from brainvault.container import ServiceContainer
from brainvault.db.repository import ContentRepository
from brainvault.models.requests import AddContentRequest
from brainvault.models.responses import (
    AddContentResponse,
    ContentItemResponse,
    ContentListResponse,
    MessageResponse,
)
from brainvault.pipeline.ingestion import ContentDraft, IngestionSaga

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Content"])

WELCOME_ITEM = ContentItemResponse(
    id="default-1",
    type="Note",
    title="Welcome to BrainVault!",
    content=(
        "This is your default content. Start exploring now! "
        "Click on Add Memory to add more content."
    ),
    link=None,
    image_url=None,
)


@router.post("/content", response_model=AddContentResponse, summary="Add a knowledge item")
async def add_content(
    request: AddContentRequest,
    owner_id: str = Depends(get_current_owner_id),
    store: ContentRepository = Depends(get_content_repository),
    services: ServiceContainer = Depends(get_services),
) -> AddContentResponse:
    saga = IngestionSaga(store, services, settings)
    item = await saga.add_content(
        owner_id,
        ContentDraft(
            type=request.type,
            title=request.title or "",
            link=request.link or None,
            content=request.content or "",
        ),
    )
    return AddContentResponse(
        message="Content added successfully",
        content_id=item.id,
        image_url=item.image_url,
    )


@router.get("/content", response_model=ContentListResponse, summary="List my content")
async def list_content(
    owner_id: str = Depends(get_current_owner_id),
    store: ContentRepository = Depends(get_content_repository),
) -> ContentListResponse:
    items = await store.list_for_owner(owner_id)
    if not items:
        return ContentListResponse(content=[WELCOME_ITEM])
    return ContentListResponse(
        content=[ContentItemResponse.model_validate(item) for item in items],
    )


@router.delete(
    "/content/{content_id}",
    response_model=MessageResponse,
    summary="Delete one of my items",
)
async def delete_content(
    content_id: str,
    owner_id: str = Depends(get_current_owner_id),
    store: ContentRepository = Depends(get_content_repository),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    saga = IngestionSaga(store, services, settings)
    message = await saga.remove_content(owner_id, content_id)
    return MessageResponse(message=message)
