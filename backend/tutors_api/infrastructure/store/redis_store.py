"""
Redis Cache Store

Redis-backed implementation of the key-value store. Values are stored as
JSON text. Connection setup retries with a capped linear backoff and is the
only operation allowed to raise; everything else fails open.
"""

import json
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ...core.config import Settings, get_settings
from ...core.exceptions import StoreConnectionError
from ...core.metrics import STORE_ERRORS
from .base import WindowCount

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

# Fixed window counter: the first hit in a window sets the expiry, later
# hits only increment. Returns {hits, ms until the window resets}.
FIXED_WINDOW_SCRIPT = """
local hits = redis.call('INCR', KEYS[1])
local ttl = redis.call('PTTL', KEYS[1])
if ttl <= 0 then
    redis.call('PEXPIRE', KEYS[1], tonumber(ARGV[1]))
    ttl = tonumber(ARGV[1])
end
return {hits, ttl}
"""

PATTERN_DELETE_BATCH = 500


class RedisCacheStore:
    """
    Key-value store over ``redis.asyncio``.

    The store is advisory: callers must never treat it as a source of truth.
    A lost connection degrades every operation to a miss until Redis answers
    again.
    """

    backend_name = "redis"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[], Redis]] = None,
    ):
        self.settings = settings or get_settings()
        self._client_factory = client_factory or self._create_client
        self._client: Optional[Redis] = None
        self._connected = False
        self._window_script = None

    def _create_client(self) -> Redis:
        return Redis(
            host=self.settings.REDIS_HOST,
            port=self.settings.REDIS_PORT,
            username=self.settings.REDIS_USERNAME,
            password=self.settings.REDIS_PASSWORD,
            db=self.settings.REDIS_DB,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=self.settings.REDIS_SOCKET_TIMEOUT,
            socket_timeout=self.settings.REDIS_SOCKET_TIMEOUT,
            health_check_interval=30,
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    async def connect(self) -> None:
        """
        Connect and verify the server answers PING.

        Raises:
            StoreConnectionError: If Redis is still unreachable after
                ``REDIS_MAX_RETRIES`` reconnect attempts.
        """
        if self.is_connected:
            return

        step = self.settings.REDIS_RETRY_STEP_MS / 1000
        attempts = self.settings.REDIS_MAX_RETRIES + 1
        client = self._client_factory()

        logger.info("Redis client connecting", url=self.settings.redis_display_url)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_incrementing(
                    start=step,
                    increment=step,
                    max=self.settings.REDIS_RETRY_MAX_DELAY_MS / 1000,
                ),
                retry=retry_if_exception_type((RedisError, OSError)),
                before_sleep=lambda retry_state: logger.warning(
                    "Redis client reconnecting",
                    attempt=retry_state.attempt_number,
                    wait_time=retry_state.next_action.sleep,
                ),
            ):
                with attempt:
                    await client.ping()
        except RetryError as e:
            original = e.last_attempt.exception()
            logger.error(
                "Redis reconnection failed",
                attempts=attempts,
                error=str(original),
            )
            await self._close_quietly(client)
            raise StoreConnectionError(
                message=f"Redis reconnection limit exceeded after {attempts} attempts",
                store=self.backend_name,
                attempts=attempts,
                original_error=original,
            )

        self._client = client
        self._connected = True
        self._window_script = client.register_script(FIXED_WINDOW_SCRIPT)
        logger.info("Redis client connected and ready")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        self._connected = False
        self._window_script = None
        await self._close_quietly(client)
        logger.info("Redis client disconnected")

    async def _close_quietly(self, client: Redis) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning("Error closing Redis client", error=str(e))

    async def _execute(
        self,
        operation: str,
        target: str,
        command: Callable[[Redis], Awaitable[T]],
        default: T,
    ) -> T:
        """Run a command against Redis, converting any failure into ``default``."""
        if self._client is None:
            STORE_ERRORS.labels(operation=operation).inc()
            logger.warning(
                "Redis store not connected", operation=operation, target=target
            )
            return default

        with tracer.start_as_current_span(f"redis_store.{operation}") as span:
            span.set_attribute("store.target", target)
            try:
                result = await command(self._client)
            except (RedisError, OSError) as e:
                if isinstance(e, (RedisConnectionError, RedisTimeoutError, OSError)):
                    self._connected = False
                STORE_ERRORS.labels(operation=operation).inc()
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    f"Redis {operation.upper()} error",
                    operation=operation,
                    target=target,
                    error=str(e),
                )
                return default

        if not self._connected:
            logger.info("Redis connection restored")
        self._connected = True
        return result

    async def ping(self) -> bool:
        return await self._execute(
            "ping", "-", lambda client: client.ping(), default=False
        )

    async def get(self, key: str) -> Any:
        """Return the deserialized value, or ``None`` if absent, expired or on error."""
        data = await self._execute(
            "get", key, lambda client: client.get(key), default=None
        )
        if not data:
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            STORE_ERRORS.labels(operation="get").inc()
            logger.error("Redis GET returned non-JSON payload", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Serialize ``value`` and store it, expiring after ``ttl_seconds`` if given."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            STORE_ERRORS.labels(operation="set").inc()
            logger.error("Redis SET serialization error", key=key, error=str(e))
            return False

        async def command(client: Redis) -> bool:
            if ttl_seconds:
                await client.set(key, payload, ex=ttl_seconds)
            else:
                await client.set(key, payload)
            return True

        return await self._execute("set", key, command, default=False)

    async def delete(self, key: str) -> int:
        return await self._execute(
            "delete", key, lambda client: client.delete(key), default=0
        )

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern``; returns the number removed."""

        async def command(client: Redis) -> int:
            removed = 0
            batch = []
            async for key in client.scan_iter(match=pattern, count=PATTERN_DELETE_BATCH):
                batch.append(key)
                if len(batch) >= PATTERN_DELETE_BATCH:
                    removed += await client.delete(*batch)
                    batch = []
            if batch:
                removed += await client.delete(*batch)
            return removed

        return await self._execute("delete_pattern", pattern, command, default=0)

    async def exists(self, key: str) -> bool:
        count = await self._execute(
            "exists", key, lambda client: client.exists(key), default=0
        )
        return count == 1

    async def flush_all(self) -> bool:
        async def command(client: Redis) -> bool:
            await client.flushdb()
            return True

        flushed = await self._execute("flush_all", "*", command, default=False)
        if flushed:
            logger.warning("Redis cache flushed - all data cleared")
        return flushed

    async def info(self, section: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return await self._execute(
            "info", section or "default", lambda client: client.info(section), default=None
        )

    async def incr_window(self, key: str, window_ms: int) -> Optional[WindowCount]:
        """Count a hit in the fixed window stored at ``key``."""
        if self._window_script is None:
            STORE_ERRORS.labels(operation="incr_window").inc()
            logger.warning("Redis store not connected", operation="incr_window", target=key)
            return None

        async def command(client: Redis) -> WindowCount:
            hits, ttl = await self._window_script(keys=[key], args=[window_ms], client=client)
            return WindowCount(count=int(hits), reset_ms=int(ttl))

        return await self._execute("incr_window", key, command, default=None)
