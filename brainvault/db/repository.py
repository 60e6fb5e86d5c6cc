# =============================================================================
# Repositories - Owner-Scoped Data Access
# =============================================================================
#
# Thin wrappers around an AsyncSession that hold every query the API and the
# pipelines need. Every content read/delete takes an owner_id and filters on
# it, so the primary store stays the source of truth for ownership even if
# the vector index filter were bypassed.
#
# ARCHITECTURE:
#   ContentStore (Protocol)       - what the pipelines depend on
#   └── ContentRepository         - SQLAlchemy implementation
#   ShareLinkRepository           - share hash ↔ owner
#   UserRepository                - identity lookups
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from brainvault.db.models import Content, ShareLink, User
from brainvault.errors import ConflictError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class ContentStore(Protocol):
    """Primary-store operations used by the ingestion and retrieval pipelines."""

    async def create(
        self,
        owner_id: str,
        title: str,
        link: str | None,
        type: str,
        content: str,
        image_url: str | None,
    ) -> Content:
        """Persist and COMMIT a new content row. Returns it with id/created_at set."""
        ...

    async def get_many(self, ids: Sequence[str], owner_id: str) -> list[Content]:
        """Fetch the rows among `ids` that belong to `owner_id`."""
        ...

    async def delete(self, content_id: str, owner_id: str) -> bool:
        """Delete one owned row. Returns True if a row was removed."""
        ...


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class ContentRepository:
    """SQLAlchemy-backed ContentStore plus listing for the content API."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        owner_id: str,
        title: str,
        link: str | None,
        type: str,
        content: str,
        image_url: str | None,
    ) -> Content:
        item = Content(
            owner_id=owner_id,
            title=title,
            link=link,
            type=type,
            content=content,
            tags=[],
            image_url=image_url,
        )
        self._session.add(item)
        # Committed immediately: later pipeline steps may fail, the user's
        # input must survive them.
        await self._session.commit()
        await self._session.refresh(item)
        return item

    async def list_for_owner(self, owner_id: str) -> list[Content]:
        stmt = (
            select(Content)
            .where(Content.owner_id == owner_id)
            .order_by(Content.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_many(self, ids: Sequence[str], owner_id: str) -> list[Content]:
        if not ids:
            return []
        stmt = select(Content).where(
            Content.id.in_(list(ids)),
            Content.owner_id == owner_id,
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, content_id: str, owner_id: str) -> bool:
        stmt = delete(Content).where(
            Content.id == content_id,
            Content.owner_id == owner_id,
        )
        result = await self._session.execute(stmt)
        await self._session.commit()
        return (result.rowcount or 0) > 0


# ---------------------------------------------------------------------------
# Share Links
# ---------------------------------------------------------------------------


class ShareLinkRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_owner(self, owner_id: str) -> ShareLink | None:
        result = await self._session.execute(
            select(ShareLink).where(ShareLink.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def get_by_hash(self, hash: str) -> ShareLink | None:
        result = await self._session.execute(
            select(ShareLink).where(ShareLink.hash == hash)
        )
        return result.scalar_one_or_none()

    async def create(self, owner_id: str, hash: str) -> ShareLink:
        """
        Insert a link for `owner_id`, or return the one a concurrent request
        inserted first (owner_id is unique).
        """
        link = ShareLink(owner_id=owner_id, hash=hash)
        self._session.add(link)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            existing = await self.get_by_owner(owner_id)
            if existing is None:
                raise
            logger.info("Share link for owner=%s already created, reusing it", owner_id)
            return existing
        return link

    async def delete_for_owner(self, owner_id: str) -> None:
        await self._session.execute(
            delete(ShareLink).where(ShareLink.owner_id == owner_id)
        )
        await self._session.commit()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        result = await self._session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def create(self, username: str, password_hash: str) -> User:
        """
        Raises:
            ConflictError: Username already taken.
        """
        user = User(username=username, password_hash=password_hash)
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("User already exists") from e
        return user
