# =============================================================================
# API Response Models - Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API. Separate from the ORM models so the
# wire contract (camelCase, nullable link/imageUrl) never leaks internal
# columns such as password hashes or raw vectors.
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class SigninResponse(BaseModel):
    message: str
    token: str
    username: str


class UserResponse(_CamelModel):
    """Current user; never includes the password hash."""

    id: str
    username: str
    email: str | None = None
    profile_picture: str | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class ContentItemResponse(_CamelModel):
    id: str
    title: str
    type: str
    content: str
    link: str | None = None
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    owner_id: str | None = None
    created_at: datetime | None = None


class ContentListResponse(BaseModel):
    content: list[ContentItemResponse]


class AddContentResponse(_CamelModel):
    message: str
    content_id: str
    image_url: str | None = None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class ScoredContentResponse(ContentItemResponse):
    similarity_score: float


class SearchResponse(_CamelModel):
    message: str
    relevant_content: list[ScoredContentResponse]
    answer: str


class EmptySearchResponse(BaseModel):
    """Returned when nothing in the caller's brain matched; no answer is generated."""

    message: str
    results: list[ScoredContentResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


class ShareHashResponse(BaseModel):
    hash: str


class SharedBrainResponse(BaseModel):
    username: str
    content: list[ContentItemResponse]
