# =============================================================================
# API Dependencies - Auth, Services, Repositories
# =============================================================================
#
# FastAPI dependencies shared by the routers:
#
# 1. get_current_owner_id() - Bearer JWT → owner id (+ rate limit)
# 2. get_services()         - the ServiceContainer built at startup
# 3. get_*_repository()     - repositories bound to the request session
#
# DESIGN DECISION: FastAPI dependency (not middleware) for auth. Each route
# opts in via Depends(get_current_owner_id), and tests replace it through
# app.dependency_overrides.
#
# DESIGN DECISION: HTTPBearer(auto_error=False) so a missing header reaches
# our own check and produces the standard {"message": ...} 401 body.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from brainvault.config import settings
from brainvault.container import ServiceContainer
from brainvault.db.engine import get_async_session
from brainvault.db.repository import (
    ContentRepository,
    ShareLinkRepository,
    UserRepository,
)
from brainvault.errors import AuthError
from brainvault.services.auth import decode_access_token
from brainvault.services.rate_limiter import check_rate_limit

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs (shows "Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_owner_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """
    Resolve the caller to an owner id.

    Raises:
        AuthError 401: Missing, malformed, or expired token.
        RateLimitError 429: Per-user request budget exhausted.
    """
    if credentials is None:
        raise AuthError("Missing token. Provide 'Authorization: Bearer <token>' header.")

    owner_id = decode_access_token(credentials.credentials, settings)
    await check_rate_limit(owner_id)

    # For the request-logging middleware
    request.state.owner_id = owner_id
    return owner_id


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_content_repository(
    session: AsyncSession = Depends(get_async_session),
) -> ContentRepository:
    return ContentRepository(session)


def get_share_link_repository(
    session: AsyncSession = Depends(get_async_session),
) -> ShareLinkRepository:
    return ShareLinkRepository(session)


def get_user_repository(
    session: AsyncSession = Depends(get_async_session),
) -> UserRepository:
    return UserRepository(session)
