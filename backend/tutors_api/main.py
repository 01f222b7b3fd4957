"""
Najah Tutors Backend - FastAPI Application

Thin HTTP backend: PostgreSQL bootstrap, a Redis-backed response cache and
per-scope admission limiting, with in-process fallbacks when Redis is
unavailable.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.endpoints import cache, health, hello
from .api.errors import register_exception_handlers
from .core.config import Settings, get_settings
from .core.dependencies import AppServices
from .core.logging import configure_logging
from .middleware import CorrelationIdMiddleware, ResponseCacheMiddleware
from .services.rate_limiting import RateLimitingMiddleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect backing services on startup and release them on shutdown."""
    services: AppServices = app.state.services
    settings = services.settings
    configure_logging(settings)

    logger.info(
        "Starting Najah Tutors API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        redis=settings.redis_display_url,
    )

    try:
        await services.startup()
    except Exception:
        logger.exception("Failed to start server")
        raise

    logger.info(
        "Server ready",
        host=settings.API_HOST,
        port=settings.PORT,
        cache_backend=services.store.backend_name,
        cache_connected=services.store.is_connected,
    )

    yield

    logger.info("Shutting down Najah Tutors API")
    try:
        await services.shutdown()
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e), exc_info=True)
        raise
    logger.info("All connections closed")


def create_app(
    settings: Optional[Settings] = None, services: Optional[AppServices] = None
) -> FastAPI:
    """Build the application around one set of long-lived services."""
    settings = settings or (services.settings if services else get_settings())
    services = services or AppServices.create(settings)

    app = FastAPI(
        title="Najah Tutors API",
        description="Najah Tutors backend with Redis response caching and rate limiting",
        version=settings.APP_VERSION,
        docs_url="/api-docs",
        redoc_url=None,
        openapi_url="/api-docs.json",
        lifespan=lifespan,
    )
    app.state.services = services

    # Starlette runs the last added middleware first
    app.add_middleware(
        ResponseCacheMiddleware,
        paths=settings.response_cache_paths,
        ttl_seconds=settings.RESPONSE_CACHE_TTL,
    )
    app.add_middleware(RateLimitingMiddleware, enabled=settings.RATE_LIMIT_ENABLED)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(hello.router)
    app.include_router(cache.router)

    return app


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "tutors_api.main:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_config=None,
    )
