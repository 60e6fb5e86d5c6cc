# =============================================================================
# Error Taxonomy - Domain Exceptions Mapped to HTTP Status Codes
# =============================================================================
#
#   BrainVaultError
#   ├── ValidationError         400  bad input shape (empty query, bad id)
#   ├── AuthError               401  missing / invalid bearer token
#   ├── NotFoundError           404  missing user / content
#   │   └── ShareLinkNotFoundError 411  unknown share hash
#   ├── ConflictError           409  unique constraint (username taken)
#   ├── RateLimitError          429  per-user sliding window exceeded
#   └── UpstreamError           500  external provider failures
#       ├── EmbeddingError           no usable vector in provider response
#       ├── VectorIndexError         upsert / query / delete failed
#       └── GenerationError          answer generation failed
#
# Handlers in brainvault.main turn these into {"message": ...} JSON bodies.
# The scraper never raises; its failures are reported as ScrapeDegraded.
# =============================================================================

from __future__ import annotations


class BrainVaultError(Exception):
    """Base class for errors that carry an HTTP status and a client message."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BrainVaultError):
    status_code = 400


class AuthError(BrainVaultError):
    status_code = 401


class NotFoundError(BrainVaultError):
    status_code = 404


class ShareLinkNotFoundError(NotFoundError):
    status_code = 411


class ConflictError(BrainVaultError):
    status_code = 409


class RateLimitError(BrainVaultError):
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(BrainVaultError):
    status_code = 500


class EmbeddingError(UpstreamError):
    pass


class VectorIndexError(UpstreamError):
    pass


class GenerationError(UpstreamError):
    pass
