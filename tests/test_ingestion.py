# =============================================================================
# Unit Tests - Ingestion Saga
# =============================================================================
#
# Test groups:
#   1. Field precedence (caller vs scraped title/content/image)
#   2. Embedding input + vector metadata
#   3. Failure compensation (keep / rollback)
#   4. Delete pair
#   5. Helpers (timestamp format, id validation)
# =============================================================================

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from brainvault.config import settings
from brainvault.errors import (
    EmbeddingError,
    GenerationError,
    ValidationError,
    VectorIndexError,
)
from brainvault.pipeline.ingestion import (
    DELETED_MESSAGE,
    ContentDraft,
    IngestionSaga,
    format_timestamp,
    is_scraped_type,
    validate_content_id,
)
from brainvault.services.scraper import (
    DegradeReason,
    ScrapedPage,
    ScrapeOk,
    degraded,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _saga(store, services, **overrides) -> IngestionSaga:
    return IngestionSaga(store, services, settings.model_copy(update=overrides))


def _scraped(title="Scraped title", content="Scraped body", image_url=None):
    return ScrapeOk(page=ScrapedPage(title=title, content=content, image_url=image_url))


# ---------------------------------------------------------------------------
# 1. Field precedence
# ---------------------------------------------------------------------------


class TestFieldPrecedence:
    def test_note_is_not_scraped(self, store, services):
        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Note", title="T", content="C"),
        ))
        services.scraper.scrape.assert_not_awaited()
        assert (item.title, item.content, item.link, item.image_url) == ("T", "C", None, None)

    def test_url_without_link_is_not_scraped(self, store, services):
        _run(_saga(store, services).add_content("u1", ContentDraft(type="Url", title="T")))
        services.scraper.scrape.assert_not_awaited()

    def test_unknown_type_is_not_scraped(self, store, services):
        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Podcast", title="T", link="https://example.com"),
        ))
        services.scraper.scrape.assert_not_awaited()
        assert item.type == "Podcast"

    def test_empty_caller_fields_filled_from_scrape(self, store, services):
        services.scraper.scrape.return_value = _scraped(image_url="https://example.com/a.png")

        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Url", link="https://example.com"),
        ))

        services.scraper.scrape.assert_awaited_once_with("https://example.com")
        assert item.title == "Scraped title"
        assert item.content == "Scraped body"
        assert item.image_url == "https://example.com/a.png"

    def test_caller_title_preserved(self, store, services):
        services.scraper.scrape.return_value = _scraped()

        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Url", link="https://example.com", title="Mine"),
        ))

        assert item.title == "Mine"
        assert item.content == "Scraped body"

    def test_caller_content_preserved(self, store, services):
        services.scraper.scrape.return_value = _scraped()

        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Url", link="https://example.com", content="My notes"),
        ))

        assert item.content == "My notes"
        assert item.title == "Scraped title"

    def test_blob_image_never_persisted(self, store, services, vector_index):
        services.scraper.scrape.return_value = _scraped(image_url="blob:https://example.com/1")

        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Url", link="https://example.com"),
        ))

        assert item.image_url is None
        assert vector_index.records[item.id][1]["image_url"] == ""

    def test_degraded_scrape_stores_placeholder_without_image(self, store, services):
        services.scraper.scrape.return_value = degraded(DegradeReason.TIMEOUT)

        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Url", link="https://slow.example.com"),
        ))

        assert item.title == "Scraping Failed - Timeout"
        assert item.image_url is None


# ---------------------------------------------------------------------------
# 2. Embedding input + vector metadata
# ---------------------------------------------------------------------------


class TestIndexing:
    def test_embedding_text_combines_title_date_content(self, store, services):
        _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Note", title="T", content="C"),
        ))

        text = services.embedder.texts[0]
        assert text.startswith("Title: T\nDate: ")
        assert text.endswith("\nContent: C")

    def test_vector_keyed_by_content_id_with_metadata(self, store, services, vector_index):
        item = _run(_saga(store, services).add_content(
            "u1", ContentDraft(type="Note", title="T", content="x" * 150),
        ))

        vector, metadata = vector_index.records[item.id]
        assert vector == [1.0, 0.0, 0.0]
        assert metadata["owner_id"] == "u1"
        assert metadata["title"] == "T"
        assert metadata["type"] == "Note"
        assert metadata["snippet"] == "x" * 100
        assert metadata["image_url"] == ""
        assert metadata["timestamp"] in services.embedder.texts[0]

    def test_long_content_summarised_for_embedding_only(self, store, services, vector_index):
        item = _run(_saga(store, services, summarize_threshold_chars=10).add_content(
            "u1", ContentDraft(type="Note", title="T", content="y" * 50),
        ))

        assert services.embedder.summarized == ["y" * 50]
        assert item.content == "y" * 50
        assert store.items[item.id].content == "y" * 50
        assert services.embedder.texts[0].endswith("\nContent: summary")
        assert vector_index.records[item.id][1]["snippet"] == "y" * 50

    def test_summary_failure_keeps_raw_record(self, store, services, vector_index):
        services.embedder.summarize_chunks = AsyncMock(
            side_effect=GenerationError("Failed to summarise content"),
        )

        with pytest.raises(GenerationError):
            _run(_saga(store, services, summarize_threshold_chars=10).add_content(
                "u1", ContentDraft(type="Note", title="T", content="y" * 50),
            ))

        [stored] = store.items.values()
        assert stored.content == "y" * 50
        assert services.embedder.texts == []
        assert vector_index.records == {}

    def test_summary_failure_rolled_back_under_rollback_policy(self, store, services):
        services.embedder.summarize_chunks = AsyncMock(
            side_effect=GenerationError("Failed to summarise content"),
        )

        with pytest.raises(GenerationError):
            _run(_saga(
                store, services, summarize_threshold_chars=10, ingest_compensation="rollback",
            ).add_content("u1", ContentDraft(type="Note", title="T", content="y" * 50)))

        assert store.items == {}

    def test_summarisation_off_by_default(self, store, services):
        _run(_saga(store, services, summarize_threshold_chars=0).add_content(
            "u1", ContentDraft(type="Note", title="T", content="y" * 5000),
        ))
        assert services.embedder.summarized == []


# ---------------------------------------------------------------------------
# 3. Compensation
# ---------------------------------------------------------------------------


class TestCompensation:
    def test_keep_leaves_dangling_record(self, store, services, vector_index):
        services.embedder.embed = AsyncMock(side_effect=EmbeddingError("bad payload"))

        with pytest.raises(EmbeddingError):
            _run(_saga(store, services, ingest_compensation="keep").add_content(
                "u1", ContentDraft(type="Note", title="T", content="C"),
            ))

        assert len(store.items) == 1
        assert vector_index.records == {}

    def test_rollback_removes_primary_record(self, store, services):
        services.embedder.embed = AsyncMock(side_effect=EmbeddingError("bad payload"))

        with pytest.raises(EmbeddingError):
            _run(_saga(store, services, ingest_compensation="rollback").add_content(
                "u1", ContentDraft(type="Note", title="T", content="C"),
            ))

        assert store.items == {}

    def test_index_failure_surfaces(self, store, services):
        services.vector_index.upsert = AsyncMock(side_effect=VectorIndexError("down"))

        with pytest.raises(VectorIndexError):
            _run(_saga(store, services).add_content(
                "u1", ContentDraft(type="Note", title="T", content="C"),
            ))

        assert len(store.items) == 1


# ---------------------------------------------------------------------------
# 4. Delete pair
# ---------------------------------------------------------------------------


class TestRemoveContent:
    def _add(self, store, services, owner="u1"):
        return _run(_saga(store, services).add_content(
            owner, ContentDraft(type="Note", title="T", content="C"),
        ))

    def test_removes_record_and_vector(self, store, services, vector_index):
        item = self._add(store, services)

        message = _run(_saga(store, services).remove_content("u1", item.id))

        assert message == DELETED_MESSAGE
        assert store.items == {}
        assert vector_index.records == {}

    def test_other_owner_cannot_delete(self, store, services, vector_index):
        item = self._add(store, services, owner="u1")

        message = _run(_saga(store, services).remove_content("intruder", item.id))

        assert message == DELETED_MESSAGE
        assert item.id in store.items
        assert item.id in vector_index.records

    def test_unknown_id_same_response(self, store, services):
        message = _run(_saga(store, services).remove_content("u1", str(uuid.uuid4())))
        assert message == DELETED_MESSAGE

    def test_malformed_id_rejected(self, store, services):
        with pytest.raises(ValidationError) as exc_info:
            _run(_saga(store, services).remove_content("u1", "not-an-id"))
        assert exc_info.value.status_code == 400

    def test_vector_delete_failure_is_not_raised(self, store, services):
        item = self._add(store, services)
        services.vector_index.delete_by_id = AsyncMock(side_effect=VectorIndexError("down"))

        message = _run(_saga(store, services).remove_content("u1", item.id))

        assert message == DELETED_MESSAGE
        assert store.items == {}


# ---------------------------------------------------------------------------
# 5. Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize("moment, expected", [
        (datetime(2025, 3, 7, 21, 5, 3), "3/7/2025, 9:05:03 PM"),
        (datetime(2025, 12, 31, 0, 0, 0), "12/31/2025, 12:00:00 AM"),
        (datetime(2024, 1, 2, 12, 30, 9), "1/2/2024, 12:30:09 PM"),
    ])
    def test_format_timestamp(self, moment, expected):
        assert format_timestamp(moment) == expected

    @pytest.mark.parametrize("value, expected", [
        ("Url", True),
        ("Note", False),
        ("Youtube", False),
        ("Podcast", False),
        ("", False),
    ])
    def test_is_scraped_type(self, value, expected):
        assert is_scraped_type(value) is expected

    def test_validate_content_id_normalises(self):
        raw = "A0EEBC99-9C0B-4EF8-BB6D-6BB9BD380A11"
        assert validate_content_id(raw) == raw.lower()

    @pytest.mark.parametrize("raw", ["", "123", "zzzz"])
    def test_validate_content_id_rejects(self, raw):
        with pytest.raises(ValidationError):
            validate_content_id(raw)
