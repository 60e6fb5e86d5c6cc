# =============================================================================
# Shared Test Doubles - In-Memory Store, Index, Embedder, Services
# =============================================================================
#
# Everything here runs without PostgreSQL, Redis, a browser, or API keys.
# The fakes implement the same coroutine interfaces as the real classes so
# the pipelines and routers exercise their real code paths.
# =============================================================================

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from brainvault.container import ServiceContainer
from brainvault.services.llm import LLMResponse
from brainvault.services.vectorstore import VectorMatch


# ---------------------------------------------------------------------------
# Primary store
# ---------------------------------------------------------------------------


@dataclass
class StoredItem:
    owner_id: str
    title: str
    link: str | None
    type: str
    content: str
    image_url: str | None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryContentStore:
    def __init__(self) -> None:
        self.items: dict[str, StoredItem] = {}
        self.get_many_calls: list[tuple[list[str], str]] = []

    async def create(self, owner_id, title, link, type, content, image_url):
        item = StoredItem(
            owner_id=owner_id, title=title, link=link, type=type,
            content=content, image_url=image_url,
        )
        self.items[item.id] = item
        return item

    async def get_many(self, ids, owner_id):
        self.get_many_calls.append((list(ids), owner_id))
        return [
            self.items[i] for i in ids
            if i in self.items and self.items[i].owner_id == owner_id
        ]

    async def delete(self, content_id, owner_id):
        item = self.items.get(content_id)
        if item is None or item.owner_id != owner_id:
            return False
        del self.items[content_id]
        return True

    async def list_for_owner(self, owner_id):
        return [i for i in self.items.values() if i.owner_id == owner_id]


# ---------------------------------------------------------------------------
# Vector index
# ---------------------------------------------------------------------------


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex:
    def __init__(self) -> None:
        self.records: dict[str, tuple[list[float], dict]] = {}
        self.query_calls: list[dict | None] = []

    async def upsert(self, id, vector, metadata):
        self.records[id] = (list(vector), dict(metadata))

    async def query(self, vector, top_k, filter=None):
        self.query_calls.append(filter)
        hits = [
            VectorMatch(id=rid, score=round(_cosine(vector, vec), 4), metadata=meta)
            for rid, (vec, meta) in self.records.items()
            if not filter or all(meta.get(k) == v for k, v in filter.items())
        ]
        hits.sort(key=lambda m: m.score, reverse=True)
        return hits[:top_k]

    async def delete_by_id(self, id):
        self.records.pop(id, None)


# ---------------------------------------------------------------------------
# Embedder / LLM
# ---------------------------------------------------------------------------


class FakeEmbedder:
    """Constant-direction vectors: every text is maximally similar to every other."""

    def __init__(self, vector: list[float] | None = None) -> None:
        self.vector = vector or [1.0, 0.0, 0.0]
        self.texts: list[str] = []
        self.summarized: list[str] = []

    async def embed(self, text):
        self.texts.append(text)
        return list(self.vector)

    async def summarize_chunks(self, text):
        self.summarized.append(text)
        return "summary"


def llm_reply(text: str = "Here is what you saved.") -> AsyncMock:
    llm = AsyncMock()
    llm.complete.return_value = LLMResponse(
        content=text, model="fake", input_tokens=10, output_tokens=5,
    )
    return llm


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def services(vector_index) -> ServiceContainer:
    return ServiceContainer(
        embedder=FakeEmbedder(),
        llm=llm_reply(),
        vector_index=vector_index,
        scraper=AsyncMock(),
    )
