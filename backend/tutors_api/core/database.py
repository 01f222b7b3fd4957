"""
Database Connection Management

Owns the SQLAlchemy async engine. The first connection is probed with
``SELECT 1`` under an exponential backoff; a database that stays
unreachable is fatal at startup.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from prometheus_client import Counter, Histogram
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings, get_settings
from .exceptions import StoreConnectionError

logger = structlog.get_logger(__name__)

DB_CONNECTION_DURATION = Histogram(
    "tutors_db_connection_duration_seconds",
    "Time spent establishing the first database connection",
)
DB_FAILED_CONNECTIONS = Counter(
    "tutors_db_failed_connections_total",
    "Database connection attempts that failed",
)


class DatabaseManager:
    """Async engine lifecycle plus a liveness probe for the health check."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self.engine is not None and self._connected

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(
            self.settings.async_database_url,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            pool_pre_ping=True,
            pool_recycle=3600,
            echo=self.settings.DEBUG,
            connect_args={"server_settings": {"application_name": "tutors_api"}},
        )

    async def _probe(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect(self) -> None:
        """
        Create the engine and verify the database answers.

        Raises:
            StoreConnectionError: If the database is unreachable after
                ``DATABASE_CONNECT_RETRIES`` attempts.
        """
        if self.is_connected:
            return

        attempts = self.settings.DATABASE_CONNECT_RETRIES
        engine = self._create_engine()
        start_time = time.time()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type((OperationalError, DBAPIError, OSError)),
                before_sleep=lambda retry_state: logger.warning(
                    "Database connection retry",
                    attempt=retry_state.attempt_number,
                    wait_time=retry_state.next_action.sleep,
                ),
            ):
                with attempt:
                    try:
                        await self._probe(engine)
                    except Exception:
                        DB_FAILED_CONNECTIONS.inc()
                        raise
        except RetryError as e:
            original = e.last_attempt.exception()
            logger.error(
                "Database connection error",
                attempts=attempts,
                error=str(original),
            )
            await engine.dispose()
            raise StoreConnectionError(
                message=f"Database unreachable after {attempts} attempts",
                store="database",
                attempts=attempts,
                original_error=original,
            )

        duration = time.time() - start_time
        DB_CONNECTION_DURATION.observe(duration)

        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine, class_=AsyncSession, expire_on_commit=False
        )
        self._connected = True
        logger.info("PostgreSQL connected successfully", duration_seconds=duration)

    async def ping(self) -> bool:
        """Return True when the database answers ``SELECT 1``."""
        if self.engine is None:
            return False
        try:
            await self._probe(self.engine)
        except (OperationalError, DBAPIError, OSError) as e:
            logger.warning("Database ping failed", error=str(e))
            self._connected = False
            return False
        if not self._connected:
            logger.info("Database connection restored")
        self._connected = True
        return True

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self.session_factory:
            raise RuntimeError("Database not initialized. Call connect() first.")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None
        self._connected = False
