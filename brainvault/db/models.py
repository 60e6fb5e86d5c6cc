# =============================================================================
# Database Models - SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────┐       ┌──────────────────────────────┐
# │  users           │       │  contents                    │
# ├──────────────────┤       ├──────────────────────────────┤
# │ id (PK)          │──1:N─▶│ id (PK, uuid string)         │
# │ username (uniq)  │       │ owner_id (FK → users.id)     │
# │ password_hash    │       │ title, link, type, content   │
# │ email, google_id │       │ tags (jsonb), image_url      │
# │ created_at       │       │ created_at                   │
# └──────────────────┘       └──────────────────────────────┘
#          │
#          │1:1             ┌──────────────────────────────┐
#          └───────────────▶│  share_links                 │
#                           │ owner_id (uniq), hash (uniq) │
#                           └──────────────────────────────┘
#
#   content_vectors - pgvector twin of `contents` (pgvector backend only):
#     id (== contents.id), embedding vector(dim), metadata_ jsonb
#
# No FK between content_vectors and contents: the two writes are independent
# (best-effort dual write) and either row may exist without the other.
# =============================================================================

import enum
import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from brainvault.config import settings


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class shared by all models."""

    pass


class ContentType(str, enum.Enum):
    """
    Kind of knowledge item a user stores.

    Stored as its string value so new kinds can be added without a
    migration. Only URL-like kinds are scraped during ingestion.
    """

    NOTE = "Note"
    URL = "Url"
    DOCUMENT = "Document"
    TWEET = "Tweet"
    YOUTUBE = "Youtube"

    @property
    def is_url_like(self) -> bool:
        return self is ContentType.URL


class User(Base):
    """
    Authentication identity. The pipeline only relies on `id` (owner key)
    and `username` (shown on shared brains).
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # Null for accounts created through an external identity provider
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    google_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class Content(Base):
    """
    A user's stored unit of knowledge (note, link, scraped page, ...).

    This is the source of truth for ownership: every read and delete is
    scoped by owner_id here, regardless of what the vector index returns.
    """

    __tablename__ = "contents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Always empty at creation; reserved for user tagging
    tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)

    # Absolute http(s) URL of the page's cover image, never a blob: URL
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Content(id={self.id}, type={self.type}, title='{self.title[:30]}')>"


class ShareLink(Base):
    """At most one per user; maps an opaque hash to the owner's brain."""

    __tablename__ = "share_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    hash: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class ContentVector(Base):
    """
    Embedding twin of a Content row, used by the pgvector index backend.

    metadata_ holds owner_id, title, type, timestamp, snippet and image_url.
    The trailing underscore avoids conflict with SQLAlchemy's `.metadata`.
    """

    __tablename__ = "content_vectors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    embedding = mapped_column(Vector(settings.embedding_dimensions), nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
