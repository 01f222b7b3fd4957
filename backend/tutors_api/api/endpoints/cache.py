"""
Cache management endpoints.

Statistics, pattern invalidation and a store round-trip diagnostic. The
mutating routes are additionally guarded by the strict limiter scope.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ...core.dependencies import AppServices, get_services
from ...core.exceptions import InternalError, ValidationError
from ...services.cache import DEFAULT_RESPONSE_TTL, clear_response_cache
from ...services.rate_limiting import STRICT_SCOPE, rate_limit

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/cache", tags=["cache"])

TEST_KEY_PREFIX = "test:"


class CacheTestRequest(BaseModel):
    key: Optional[str] = Field(None, description="Cache key", examples=["testKey"])
    value: Optional[Any] = Field(
        None,
        description="Value to cache (any JSON value)",
        examples=[{"data": "test value"}],
    )
    expiry: Optional[int] = Field(
        None, ge=0, description="Expiry time in seconds", examples=[300]
    )


def _test_key(key: str) -> str:
    return f"{TEST_KEY_PREFIX}{key}"


@router.get("/stats")
async def get_cache_stats(services: AppServices = Depends(get_services)):
    """Store statistics and connection information."""
    info = await services.store.info("stats")
    if info is None or not services.store.is_connected:
        logger.error(
            "Get cache stats error",
            backend=services.store.backend_name,
            connected=services.store.is_connected,
        )
        raise InternalError("Failed to get cache statistics")

    return {
        "success": True,
        "data": {"connected": True, "info": info},
    }


@router.delete("/clear", dependencies=[Depends(rate_limit(STRICT_SCOPE))])
async def clear_cache_by_pattern(
    pattern: Optional[str] = Query(
        None, description='Pattern to match cache keys (e.g. "*" for all)'
    ),
    services: AppServices = Depends(get_services),
):
    """
    Delete cached responses matching ``pattern``.

    The store fails open, so an unreachable store reports zero entries
    cleared rather than an error.
    """
    if not pattern:
        raise ValidationError("Pattern is required")

    deleted_count = await clear_response_cache(services.store, pattern)

    return {
        "success": True,
        "message": f"Cleared {deleted_count} cache entries",
        "data": {"deletedCount": deleted_count},
    }


@router.post("/test", dependencies=[Depends(rate_limit(STRICT_SCOPE))])
async def test_cache(
    payload: CacheTestRequest, services: AppServices = Depends(get_services)
):
    """Store a value under ``test:<key>`` and read it back."""
    if not payload.key or payload.value is None or payload.value == "":
        raise ValidationError("Key and value are required")

    key = _test_key(payload.key)
    await services.store.set(key, payload.value, payload.expiry or DEFAULT_RESPONSE_TTL)
    cached_value = await services.store.get(key)

    return {
        "success": True,
        "message": "Cache test successful",
        "data": {
            "original": payload.value,
            "cached": cached_value,
            "match": cached_value == payload.value,
        },
    }


@router.get("/test/{key}")
async def get_test_entry(key: str, services: AppServices = Depends(get_services)):
    """Read back a diagnostic entry; ``cached`` is null once it has expired."""
    cached_value = await services.store.get(_test_key(key))
    return {"success": True, "data": {"key": key, "cached": cached_value}}
