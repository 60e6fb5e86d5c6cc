# =============================================================================
# Vector Index Abstraction - Pluggable Backend Protocol
# =============================================================================
#
# Secondary index for semantic search over a user's content. One vector per
# content item, keyed by the content id, carrying a small metadata dict
# (owner_id, title, type, timestamp, snippet, image_url).
#
# DESIGN DECISION: Protocol (structural typing) over ABC. The pipelines
# depend on three coroutines only, and tests substitute in-memory fakes
# without inheriting from anything.
#
# DESIGN DECISION: Owner scoping happens at query time through a metadata
# equality filter. Every query the retrieval pipeline issues carries
# {"owner_id": ...}; the primary store re-checks ownership afterwards.
#
# ARCHITECTURE:
#   VectorIndex (Protocol)
#   ├── PgVectorIndex     - content_vectors table (pgvector, cosine)
#   │   ├── upsert()      - INSERT ... ON CONFLICT DO UPDATE
#   │   ├── query()       - cosine_distance ordering + JSONB containment
#   │   └── delete_by_id()
#   └── ChromaVectorIndex - ChromaDB (in-process or client/server)
#       └── all calls via asyncio.to_thread() (Chroma client is sync)
#
# Every backend failure is raised as VectorIndexError (HTTP 500).
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import chromadb
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from brainvault.config import Settings
from brainvault.db.models import ContentVector
from brainvault.errors import VectorIndexError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorMatch:
    """
    One similarity hit.

    `score` is cosine similarity (1 - cosine distance), higher = closer.
    None when the backend did not report a distance.
    """

    id: str
    score: float | None
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorIndex(Protocol):
    async def upsert(self, id: str, vector: list[float], metadata: dict) -> None:
        """Insert or replace the vector stored under `id`."""
        ...

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict | None = None,
    ) -> list[VectorMatch]:
        """
        Nearest neighbours of `vector`, closest first.

        Args:
            filter: Metadata equality constraints; every key must match.
        """
        ...

    async def delete_by_id(self, id: str) -> None:
        """Remove the vector stored under `id`. Missing ids are not an error."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorIndex:
    """
    pgvector-backed index over the content_vectors table.

    Uses its own short-lived sessions so index writes never share a
    transaction with the primary content row.
    """

    def __init__(self, session_factory=None) -> None:
        if session_factory is None:
            from brainvault.db.engine import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def upsert(self, id: str, vector: list[float], metadata: dict) -> None:
        table = ContentVector.__table__
        stmt = insert(table).values({"id": id, "embedding": vector, "metadata": metadata})
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "embedding": stmt.excluded["embedding"],
                "metadata": stmt.excluded["metadata"],
            },
        )
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except Exception as e:
            logger.error("pgvector upsert failed for id=%s: %s", id, e)
            raise VectorIndexError("Vector index upsert failed") from e

        logger.debug("Upserted vector id=%s in pgvector", id)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict | None = None,
    ) -> list[VectorMatch]:
        """
        Cosine similarity search.

        pgvector's cosine_distance() is in [0, 2]; similarity = 1 - distance.
        """
        distance = ContentVector.embedding.cosine_distance(vector)
        stmt = (
            select(ContentVector.id, ContentVector.metadata_, distance.label("distance"))
            .order_by(distance)
            .limit(top_k)
        )
        if filter:
            stmt = stmt.where(ContentVector.metadata_.contains(filter))

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except Exception as e:
            logger.error("pgvector query failed: %s", e)
            raise VectorIndexError("Vector index query failed") from e

        logger.debug("pgvector query returned %d rows (top_k=%d)", len(rows), top_k)
        return [
            VectorMatch(
                id=row_id,
                score=None if dist is None else round(1.0 - float(dist), 4),
                metadata=meta or {},
            )
            for row_id, meta, dist in rows
        ]

    async def delete_by_id(self, id: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(delete(ContentVector).where(ContentVector.id == id))
                await session.commit()
        except Exception as e:
            logger.error("pgvector delete failed for id=%s: %s", id, e)
            raise VectorIndexError("Vector index delete failed") from e


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorIndex:
    """
    ChromaDB-backed index, one collection for all users.

    ChromaDB supports both in-process and client/server modes:
    - In-process (default): no extra infra, data held in memory
    - Client/server: set CHROMA_URL for a Docker deployment

    Args:
        client: Pre-built Chroma client (tests pass an in-process one).
        collection_name: Collection holding the content vectors.
        chroma_url: Server host, used only when `client` is None.
    """

    def __init__(
        self,
        client: Any = None,
        collection_name: str = "brainvault_content",
        chroma_url: str | None = None,
    ) -> None:
        if client is None:
            client = chromadb.HttpClient(host=chroma_url) if chroma_url else chromadb.Client()
        self._client = client

        # Cosine distance, matching the pgvector backend.
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    async def upsert(self, id: str, vector: list[float], metadata: dict) -> None:
        def _sync_upsert() -> None:
            self._collection.upsert(
                ids=[id],
                embeddings=[vector],
                metadatas=[_sanitise_chroma_metadata(metadata)],
            )

        try:
            await asyncio.to_thread(_sync_upsert)
        except Exception as e:
            logger.error("Chroma upsert failed for id=%s: %s", id, e)
            raise VectorIndexError("Vector index upsert failed") from e

        logger.debug("Upserted vector id=%s in ChromaDB", id)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict | None = None,
    ) -> list[VectorMatch]:
        def _sync_query() -> list[VectorMatch]:
            results = self._collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                where=_chroma_where(filter),
                include=["metadatas", "distances"],
            )

            matches: list[VectorMatch] = []
            if not results or not results["ids"] or not results["ids"][0]:
                return matches

            distances = results.get("distances")
            metadatas = results.get("metadatas")
            for i, chroma_id in enumerate(results["ids"][0]):
                distance = distances[0][i] if distances else None
                matches.append(VectorMatch(
                    id=chroma_id,
                    score=None if distance is None else round(1.0 - distance, 4),
                    metadata=dict(metadatas[0][i] or {}) if metadatas else {},
                ))
            return matches

        try:
            return await asyncio.to_thread(_sync_query)
        except Exception as e:
            logger.error("Chroma query failed: %s", e)
            raise VectorIndexError("Vector index query failed") from e

    async def delete_by_id(self, id: str) -> None:
        try:
            await asyncio.to_thread(self._collection.delete, ids=[id])
        except Exception as e:
            logger.error("Chroma delete failed for id=%s: %s", id, e)
            raise VectorIndexError("Vector index delete failed") from e


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_vector_index(settings: Settings) -> VectorIndex:
    """
    Return the configured index backend.

    Reads `vectorstore_type`:
    - "pgvector" → PgVectorIndex (default, lives in the primary database)
    - "chroma"   → ChromaVectorIndex (in-process unless CHROMA_URL is set)
    """
    if settings.vectorstore_type == "chroma":
        logger.info("Using ChromaDB vector index (collection=%s)", settings.vector_index_name)
        return ChromaVectorIndex(
            collection_name=settings.vector_index_name,
            chroma_url=settings.chroma_url,
        )
    if settings.vectorstore_type == "pgvector":
        logger.info("Using pgvector vector index")
        return PgVectorIndex()
    raise ValueError(f"Unknown vectorstore_type '{settings.vectorstore_type}'")


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _chroma_where(filter: dict | None) -> dict | None:
    """Chroma needs an explicit $and for more than one equality clause."""
    if not filter:
        return None
    if len(filter) == 1:
        return dict(filter)
    return {"$and": [{key: value} for key, value in filter.items()]}


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Sanitise metadata for ChromaDB compatibility.

    ChromaDB requires all metadata values to be str, int, float, or bool:
    - list → comma-separated string
    - None → empty string
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
