"""
Application Services

Long-lived handles shared by every request: settings, database, key-value
store, limiter registry and the background writer. Built once per process,
attached to ``app.state.services`` and handed to routes through FastAPI
dependencies.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import structlog
from fastapi import Request

from ..infrastructure.repositories import OtpRepository, SessionRepository
from ..infrastructure.store import KeyValueStore, build_cache_store
from ..services.cache import BackgroundWriter
from ..services.rate_limiting import LimiterRegistry, default_scope_configs
from .config import Settings, get_settings
from .database import DatabaseManager
from .exceptions import StoreConnectionError

logger = structlog.get_logger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 5.0


@dataclass
class AppServices:
    settings: Settings
    database: DatabaseManager
    store: KeyValueStore
    background: BackgroundWriter = field(default_factory=BackgroundWriter)
    limiters: Optional[LimiterRegistry] = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "AppServices":
        settings = settings or get_settings()
        return cls(
            settings=settings,
            database=DatabaseManager(settings),
            store=build_cache_store(settings),
        )

    @property
    def otp(self) -> OtpRepository:
        return OtpRepository(self.store)

    @property
    def sessions(self) -> SessionRepository:
        return SessionRepository(self.store)

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    async def startup(self) -> None:
        """
        Connect backing services.

        The database is required and its failure propagates. The key-value
        store is optional: when unreachable the process runs degraded, with
        caching as a no-op and rate limiting counted in process memory.
        """
        await self.database.connect()

        try:
            await self.store.connect()
        except StoreConnectionError as e:
            logger.warning(
                "Redis connection failed, continuing without cache",
                backend=self.store.backend_name,
                error=e.message,
            )

        self.limiters = LimiterRegistry.build(
            self.store, default_scope_configs(self.settings)
        )
        self.started_at = time.monotonic()

    async def shutdown(self) -> None:
        await self.background.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
        await self.store.disconnect()
        await self.database.close()
        logger.info("Application services stopped")


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the process-wide services."""
    return request.app.state.services
