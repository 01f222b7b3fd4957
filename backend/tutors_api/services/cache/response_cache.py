"""
Response Cache Service

Key derivation and invalidation for cached HTTP responses stored under
the ``cache:`` namespace.
"""

from typing import Any

import structlog
from starlette.requests import Request

from ...infrastructure.store import KeyValueStore

logger = structlog.get_logger(__name__)

RESPONSE_CACHE_PREFIX = "cache:"
DEFAULT_RESPONSE_TTL = 300


def response_cache_key(request: Request) -> str:
    """Derive the cache key from the request path and raw query string."""
    key = f"{RESPONSE_CACHE_PREFIX}{request.url.path}"
    if request.url.query:
        key = f"{key}?{request.url.query}"
    return key


async def store_response(
    store: KeyValueStore, key: str, body: Any, ttl_seconds: int = DEFAULT_RESPONSE_TTL
) -> bool:
    stored = await store.set(key, body, ttl_seconds)
    if not stored:
        logger.error("Failed to cache response", key=key)
    return stored


async def clear_response_cache(store: KeyValueStore, pattern: str = "*") -> int:
    """Delete cached responses whose path matches ``pattern``; returns the count."""
    deleted_count = await store.delete_pattern(f"{RESPONSE_CACHE_PREFIX}{pattern}")
    logger.info(
        f"Cleared {deleted_count} cache entries matching pattern: {pattern}",
        pattern=pattern,
        deleted_count=deleted_count,
    )
    return deleted_count
