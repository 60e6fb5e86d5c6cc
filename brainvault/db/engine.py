# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine (asyncpg driver); sessions are created per request
# via FastAPI's dependency injection.
#
# SESSION LIFECYCLE:
# 1. FastAPI request arrives
# 2. `get_async_session` dependency creates a new session
# 3. Route handler uses session (through a repository)
# 4. Session auto-commits on exit and is closed when the request completes
# 5. On exception, the uncommitted part of the transaction is rolled back
#
# COMMIT POLICY:
# Repositories commit explicitly where a write must survive a later failure
# in the same request. Content creation is the main case: the primary record
# is committed BEFORE embedding so a failed embed leaves the user's input
# stored (see brainvault.pipeline.ingestion).
# =============================================================================

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from brainvault.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo=settings.debug: logs every SQL statement in debug mode
# - pool_size / max_overflow: persistent and burst connections
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

# ---------------------------------------------------------------------------
# Session Factory
# ---------------------------------------------------------------------------
# expire_on_commit=False: loaded objects stay readable after commit. Without
# it, touching an attribute after commit triggers a lazy load, which fails in
# async context.
# ---------------------------------------------------------------------------
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The session is committed when the handler returns and rolled back if
    it raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_models() -> None:
    """
    Create the pgvector extension and all tables if they do not exist.

    Called once from the application lifespan when db_auto_create is set.
    """
    from brainvault.db.models import Base

    async with async_engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database schema ready (url=%s)", async_engine.url.render_as_string())
