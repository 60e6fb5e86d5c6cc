# =============================================================================
# Models Package - Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the API, separate from the ORM models in
# brainvault/db/models.py so password hashes and vectors never reach clients.
# =============================================================================
