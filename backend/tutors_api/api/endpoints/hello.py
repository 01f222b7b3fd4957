"""
Hello endpoint.

Demonstrates the store-backed visit counter and the response cache.
"""

import platform
from datetime import datetime, timezone

import fastapi
import redis
import sqlalchemy
import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...core.dependencies import AppServices, get_services

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/hello", tags=["hello"])

VISIT_COUNT_KEY = "hello:visit_count"
DEFAULT_NOTE = "Middleware ran successfully!"


async def annotate_request(request: Request) -> None:
    """Attach a note to the request for the handler to echo back."""
    logger.debug("Hello dependency triggered", path=request.url.path)
    request.state.note = "Data added by helloMiddleware!"


@router.get("", dependencies=[Depends(annotate_request)])
async def hello(request: Request, services: AppServices = Depends(get_services)):
    """Hello message with a visit count kept in the key-value store."""
    try:
        visit_count = await services.store.get(VISIT_COUNT_KEY) or 0
        visit_count += 1
        await services.store.set(VISIT_COUNT_KEY, visit_count)

        logger.info("Hello endpoint served", visit_count=visit_count)
        return {
            "message": "Hello from Najah Tutors Backend API!",
            "note": getattr(request.state, "note", DEFAULT_NOTE),
            "visitCount": visit_count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "versions": {
                "python": platform.python_version(),
                "fastapi": fastapi.__version__,
                "sqlalchemy": sqlalchemy.__version__,
                "redis": redis.__version__,
            },
        }
    except Exception as e:
        logger.error("Hello endpoint failed", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "message": "Internal server error",
                "error": str(e) if services.settings.is_development else None,
            },
        )
