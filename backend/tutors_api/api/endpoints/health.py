"""
Health check endpoints.

Liveness of the process and its backing services, plus the Prometheus
exposition for scraping.
"""

import platform
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ...core.dependencies import AppServices, get_services

router = APIRouter(tags=["health"])


@router.get("/")
async def root(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Welcome message with API version information."""
    return {
        "message": "Welcome to Najah Tutors Backend API!",
        "version": services.settings.APP_VERSION,
        "python": platform.python_version(),
    }


@router.get("/health")
async def health_check(services: AppServices = Depends(get_services)) -> JSONResponse:
    """
    Health status of the server and connected services.

    Returns 200 while the database answers and 503 otherwise. Redis is
    reported but never fails the check, since the cache is optional.
    """
    database_ok = await services.database.ping()
    health = {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(services.uptime, 3),
        "services": {
            "database": "connected" if database_ok else "disconnected",
            "redis": "connected" if services.store.is_connected else "disconnected",
        },
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK
        if database_ok
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=health,
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
