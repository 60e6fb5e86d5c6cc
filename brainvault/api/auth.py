# =============================================================================
# Identity API - Signup, Signin, Current User
# =============================================================================
#
#   POST /signup  → 200 {message}           409 username taken, 422 bad shape
#   POST /signin  → 200 {message, token, username}
#                   404 unknown user, 401 wrong password
#   GET  /me      → current user (never the password hash)
#
# Tokens are HS256 JWTs carrying {"id": user_id}; see services/auth.py.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from brainvault.api.deps import get_current_owner_id, get_user_repository
from brainvault.config import settings
from brainvault.db.repository import UserRepository
from brainvault.errors import AuthError, ConflictError, NotFoundError
from brainvault.models.requests import CredentialsRequest, SignupRequest
from brainvault.models.responses import MessageResponse, SigninResponse, UserResponse
from brainvault.services.auth import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Identity"])


@router.post("/signup", response_model=MessageResponse, summary="Create an account")
async def signup(
    request: SignupRequest,
    users: UserRepository = Depends(get_user_repository),
) -> MessageResponse:
    if await users.get_by_username(request.username) is not None:
        raise ConflictError("User already exists")

    user = await users.create(request.username, hash_password(request.password))
    logger.info("Signed up user id=%s", user.id)
    return MessageResponse(message="User signed up successfully")


@router.post("/signin", response_model=SigninResponse, summary="Exchange credentials for a token")
async def signin(
    request: CredentialsRequest,
    users: UserRepository = Depends(get_user_repository),
) -> SigninResponse:
    user = await users.get_by_username(request.username)
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(request.password, user.password_hash):
        raise AuthError("Invalid credentials")

    return SigninResponse(
        message="User logged in successfully",
        token=create_access_token(user.id, settings),
        username=user.username,
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(
    owner_id: str = Depends(get_current_owner_id),
    users: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    user = await users.get(owner_id)
    if user is None:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)
