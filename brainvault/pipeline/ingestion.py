# =============================================================================
# Ingestion Saga - Scrape → Store → Embed → Index
# =============================================================================
#
# Adds one knowledge item for a user and keeps the primary store and the
# vector index in step as far as two independent systems allow.
#
# FLOW (add_content):
#   1. Url + link → scrape; merge with the caller's fields
#        - caller title wins; scraped title fills an empty one
#        - caller content wins; scraped content fills an empty one
#        - scraped image kept only if is_valid_image_url()
#   2. Commit the ContentItem (raw content) to the primary store FIRST
#   3. Very long content → chunked summary, used only as embedding input
#        (summarize_threshold_chars > 0)
#   4. Embed "Title: …\nDate: …\nContent: …"
#   5. Upsert the VectorRecord under the ContentItem's id
#
# COMPENSATION (ingest_compensation):
#   "keep"     → the committed row stays (dangling, no vector); logged with
#                operation name and ids, then the error is re-raised
#   "rollback" → the committed row is deleted, then the error is re-raised
#
# No reconciliation job: a kept dangling record stays visible in the user's
# list but is never returned by search.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from brainvault.config import Settings
from brainvault.container import ServiceContainer
from brainvault.db.models import Content, ContentType
from brainvault.db.repository import ContentStore
from brainvault.errors import ValidationError
from brainvault.services.scraper import ScrapeDegraded, ScrapeOk, is_valid_image_url

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 100
DELETED_MESSAGE = "Content deleted successfully"


@dataclass
class ContentDraft:
    """Caller-supplied fields for a new item. Empty strings mean "not given"."""

    type: str
    title: str = ""
    link: str | None = None
    content: str = ""


def format_timestamp(moment: datetime) -> str:
    """Human-readable creation time, e.g. "3/7/2025, 9:05:03 PM"."""
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment.month}/{moment.day}/{moment.year}, "
        f"{hour}:{moment.minute:02d}:{moment.second:02d} {meridiem}"
    )


def embedding_text(title: str, timestamp: str, content: str) -> str:
    return f"Title: {title}\nDate: {timestamp}\nContent: {content}"


def is_scraped_type(value: str) -> bool:
    """True for content types whose link is scraped. Unknown types are not."""
    try:
        return ContentType(value).is_url_like
    except ValueError:
        return False


def validate_content_id(content_id: str) -> str:
    """
    Normalise a content id.

    Raises:
        ValidationError: Not a UUID.
    """
    try:
        return str(uuid.UUID(content_id))
    except (ValueError, AttributeError, TypeError) as e:
        raise ValidationError("Invalid or missing content ID") from e


class IngestionSaga:
    """
    Orchestrates add/remove of one content item across store and index.

    Args:
        store: Primary store, already bound to the request's session.
        services: Long-lived clients (embedder, vector index, scraper).
        settings: Compensation policy and summarisation threshold.
    """

    def __init__(
        self,
        store: ContentStore,
        services: ServiceContainer,
        settings: Settings,
    ) -> None:
        self._store = store
        self._services = services
        self._compensation = settings.ingest_compensation
        self._summarize_threshold = settings.summarize_threshold_chars

    async def add_content(self, owner_id: str, draft: ContentDraft) -> Content:
        title = draft.title or ""
        content = draft.content or ""
        image_url: str | None = None

        # ----- Step 1: scrape (Url only) ------------------------------------
        if is_scraped_type(draft.type) and draft.link:
            result = await self._services.scraper.scrape(draft.link)
            match result:
                case ScrapeOk(page=page):
                    if page.image_url and is_valid_image_url(page.image_url):
                        image_url = page.image_url
                case ScrapeDegraded(reason=reason, page=page):
                    logger.warning(
                        "Storing degraded scrape for owner=%s link=%s reason=%s",
                        owner_id, draft.link, reason.value,
                    )
            if not title and page.title:
                title = page.title
            if not content and page.content:
                content = page.content

        # ----- Step 2: primary record ---------------------------------------
        item = await self._store.create(
            owner_id=owner_id,
            title=title,
            link=draft.link,
            type=draft.type,
            content=content,
            image_url=image_url,
        )
        logger.info("Stored content id=%s owner=%s type=%s", item.id, owner_id, draft.type)

        # ----- Steps 3-5: summarise, embed, index ----------------------------
        timestamp = format_timestamp(item.created_at or datetime.now())
        try:
            embed_content = content
            if self._summarize_threshold and len(content) > self._summarize_threshold:
                embed_content = await self._services.embedder.summarize_chunks(content)
            vector = await self._services.embedder.embed(
                embedding_text(title, timestamp, embed_content)
            )
            await self._services.vector_index.upsert(
                item.id,
                vector,
                {
                    "owner_id": owner_id,
                    "title": title,
                    "type": draft.type,
                    "timestamp": timestamp,
                    "snippet": content[:SNIPPET_LENGTH],
                    "image_url": image_url or "",
                },
            )
        except Exception as e:
            await self._compensate(item, owner_id, e)
            raise

        return item

    async def _compensate(self, item: Content, owner_id: str, error: Exception) -> None:
        if self._compensation == "rollback":
            logger.error(
                "add_content failed after commit (id=%s owner=%s): %s; rolling back",
                item.id, owner_id, error,
            )
            try:
                await self._store.delete(item.id, owner_id)
            except Exception as e:
                logger.error(
                    "add_content rollback failed, dangling record id=%s owner=%s: %s",
                    item.id, owner_id, e,
                )
            return

        logger.error(
            "add_content failed after commit, dangling record id=%s owner=%s: %s",
            item.id, owner_id, error,
        )

    async def remove_content(self, owner_id: str, content_id: str) -> str:
        """
        Delete an owned item and its vector.

        The same message is returned whether the id existed, belonged to
        someone else, or was already gone.
        """
        content_id = validate_content_id(content_id)

        removed = await self._store.delete(content_id, owner_id)
        if not removed:
            logger.info("remove_content: nothing to delete id=%s owner=%s", content_id, owner_id)
            return DELETED_MESSAGE

        try:
            await self._services.vector_index.delete_by_id(content_id)
        except Exception as e:
            logger.error(
                "remove_content: vector delete failed, orphan vector id=%s owner=%s: %s",
                content_id, owner_id, e,
            )

        logger.info("Deleted content id=%s owner=%s", content_id, owner_id)
        return DELETED_MESSAGE
