# =============================================================================
# Sharing API - Public Read-Only Link to a User's Brain
# =============================================================================
#
#   POST /brain/share {share: true}   → {hash}  (idempotent, one per user)
#   POST /brain/share {share: false}  → {message: "Removed link"}
#   GET  /brain/{hash}                → {username, content}; no auth
#                                       411 for an unknown hash or user
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from brainvault.api.deps import (
    get_content_repository,
    get_current_owner_id,
    get_share_link_repository,
    get_user_repository,
)
from brainvault.db.repository import ContentRepository, ShareLinkRepository, UserRepository
from brainvault.errors import ShareLinkNotFoundError
from brainvault.models.requests import ShareRequest
from brainvault.models.responses import (
    ContentItemResponse,
    MessageResponse,
    ShareHashResponse,
    SharedBrainResponse,
)
from brainvault.services.auth import generate_share_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/brain", tags=["Sharing"])


@router.post("/share", response_model=None, summary="Enable or revoke my share link")
async def share_brain(
    request: ShareRequest,
    owner_id: str = Depends(get_current_owner_id),
    links: ShareLinkRepository = Depends(get_share_link_repository),
) -> ShareHashResponse | MessageResponse:
    if not request.share:
        await links.delete_for_owner(owner_id)
        logger.info("Share link removed for owner=%s", owner_id)
        return MessageResponse(message="Removed link")

    existing = await links.get_by_owner(owner_id)
    if existing is not None:
        return ShareHashResponse(hash=existing.hash)

    link = await links.create(owner_id, generate_share_hash())
    logger.info("Share link created for owner=%s", owner_id)
    return ShareHashResponse(hash=link.hash)


@router.get("/{share_hash}", response_model=SharedBrainResponse, summary="Read a shared brain")
async def read_shared_brain(
    share_hash: str,
    links: ShareLinkRepository = Depends(get_share_link_repository),
    users: UserRepository = Depends(get_user_repository),
    store: ContentRepository = Depends(get_content_repository),
) -> SharedBrainResponse:
    link = await links.get_by_hash(share_hash)
    if link is None:
        raise ShareLinkNotFoundError("Sorry incorrect input")

    user = await users.get(link.owner_id)
    if user is None:
        logger.error("Share link %s points at missing user=%s", share_hash, link.owner_id)
        raise ShareLinkNotFoundError("User not found, error should ideally not happen")

    items = await store.list_for_owner(link.owner_id)
    return SharedBrainResponse(
        username=user.username,
        content=[ContentItemResponse.model_validate(item) for item in items],
    )
