# =============================================================================
# BrainVault - Personal Second-Brain Backend
# =============================================================================
# Stores notes and links per user, scrapes link pages, embeds every item into
# a vector index, and answers questions from the user's own content.
#
# Package structure:
#   brainvault/
#   ├── api/          → FastAPI routers (identity, content, search, sharing)
#   ├── db/           → Async engine, ORM models, owner-scoped repositories
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── pipeline/     → Ingestion saga and retrieval orchestrator
#   ├── services/     → Scraper, embedder, LLM, vector index, auth, rate limit
#   ├── container.py  → Long-lived clients built once at startup
#   └── main.py       → App factory, error handlers, logging
# =============================================================================
