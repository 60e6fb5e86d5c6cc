# =============================================================================
# API Package - FastAPI Route Handlers
# =============================================================================
# Each module defines an APIRouter mounted under settings.api_prefix:
#   - auth.py:    signup, signin, current user
#   - content.py: add / list / delete knowledge items
#   - search.py:  semantic search with a generated answer
#   - share.py:   public read-only share links
#   - deps.py:    bearer auth, service container, repositories
# =============================================================================
