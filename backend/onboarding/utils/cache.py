"""Redis cache for signed blob URLs.

Signing is a round-trip per file and progress reads re-sign every file
in the document, so signed URLs are cached per key for half of their
lifetime. A cached URL therefore always has at least half its TTL left.
Redis failures fall back to signing directly.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from onboarding.config import settings
from onboarding.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def signed_url_cache_key(key: str, ttl_seconds: int) -> str:
    return f"signed-url:{ttl_seconds}:{key}"


async def cached_signed_url(blob_store: BlobStore, key: str, ttl_seconds: int) -> str:
    """Return a signed URL for `key`, served from Redis when possible."""
    if not settings.signed_url_cache_enabled:
        return await blob_store.sign(key, ttl_seconds)

    cache_key = signed_url_cache_key(key, ttl_seconds)
    try:
        redis_client = await get_redis()
        cached_value = await redis_client.get(cache_key)
        if cached_value:
            logger.debug(f"Cache HIT: {cache_key}")
            return cached_value

        logger.debug(f"Cache MISS: {cache_key}")
        url = await blob_store.sign(key, ttl_seconds)
        await redis_client.setex(cache_key, max(ttl_seconds // 2, 1), url)
        return url

    except redis.RedisError as e:
        logger.warning(f"Redis error (falling back to uncached): {e}")
        return await blob_store.sign(key, ttl_seconds)
