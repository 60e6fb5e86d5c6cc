# =============================================================================
# Rate Limiter - Redis-Based Per-User Sliding Window
# =============================================================================
#
# Sliding window counter using Redis sorted sets (ZSET). Each request adds an
# entry scored by its timestamp; entries older than the window are pruned and
# the remaining count is compared against the limit.
#
# DESIGN DECISION: Sliding window over fixed window. Fixed windows allow
# bursts at window boundaries (60 requests at 0:59 + 60 at 1:00).
#
# DESIGN DECISION: Graceful degradation. If Redis is unavailable the request
# is allowed through with a warning, so a Redis outage never blocks the API.
#
# Disabled unless RATE_LIMIT_ENABLED=true. Search and ingestion each cost an
# embedding call, so authenticated routes are limited per user.
# =============================================================================

from __future__ import annotations

import logging
import time

from brainvault.config import settings
from brainvault.errors import RateLimitError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# Lazy Redis connection
_redis_client = None


def _get_rate_limit_redis():
    """Lazily create and cache the async Redis client for rate limiting."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        _redis_client = aioredis.from_url(
            settings.rate_limit_redis_url,
            decode_responses=True,
        )
    return _redis_client


async def check_rate_limit(user_id: str, limit: int | None = None) -> None:
    """
    Count this request against `user_id`'s window.

    Raises:
        RateLimitError: More than `limit` requests in the last minute.

    No-op when rate limiting is disabled or Redis is unreachable.
    """
    if not settings.rate_limit_enabled:
        return

    limit = limit or settings.rate_limit_rpm
    redis_key = f"ratelimit:user:{user_id}"

    try:
        r = _get_rate_limit_redis()
        now = time.time()

        pipe = r.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now - WINDOW_SECONDS)
        pipe.zcard(redis_key)
        pipe.zadd(redis_key, {str(now): now})
        pipe.expire(redis_key, WINDOW_SECONDS + 10)
        results = await pipe.execute()
        current_count = results[1]
    except Exception as e:
        logger.warning(
            "Rate limiter unavailable (Redis error): %s. Allowing request through.",
            e,
        )
        return

    if current_count >= limit:
        logger.info("Rate limit hit for user=%s (%d/%d)", user_id, current_count, limit)
        raise RateLimitError(
            f"Rate limit exceeded. Limit: {limit} requests/minute.",
            retry_after=WINDOW_SECONDS,
        )
