# =============================================================================
# Database Package
# =============================================================================
# Async SQLAlchemy engine, session management, and ORM models.
#
# Key exports:
#   - get_async_session: FastAPI dependency for database sessions
#   - Base: declarative base for the ORM models
#   - User, Content, ShareLink, ContentVector: tables
#   - ContentRepository, ShareLinkRepository, UserRepository
# =============================================================================
