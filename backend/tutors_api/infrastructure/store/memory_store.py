"""
In-process key-value store.

Same contract as the Redis store, scoped to a single process. Used as the
admission limiter fallback when Redis is unreachable at startup, and as the
whole cache backend when ``CACHE_BACKEND=memory``.
"""

import json
import time
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from ...core.metrics import STORE_ERRORS
from .base import WindowCount

logger = structlog.get_logger(__name__)

# Expired keys are also evicted lazily on read
DEFAULT_SWEEP_INTERVAL = 60.0


class MemoryStore:
    """Dictionary-backed store with per-key expiry on a monotonic clock."""

    backend_name = "memory"

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        # key -> (JSON payload, absolute expiry or None)
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def is_connected(self) -> bool:
        return True

    async def connect(self) -> None:
        logger.debug("Memory store ready")

    async def disconnect(self) -> None:
        pass

    async def ping(self) -> bool:
        return True

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _purge_expired(self) -> None:
        for key in list(self._entries):
            self._live_entry(key)

    def _maybe_sweep(self) -> None:
        """Drop expired entries at most once per sweep interval, on write."""
        now = self._clock()
        if now < self._next_sweep:
            return
        before = len(self._entries)
        self._purge_expired()
        self._next_sweep = now + self._sweep_interval
        if len(self._entries) < before:
            logger.debug("Memory store swept", evicted=before - len(self._entries))

    async def get(self, key: str) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(entry[0])

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            STORE_ERRORS.labels(operation="set").inc()
            logger.error("Memory store SET serialization error", key=key, error=str(e))
            return False

        self._maybe_sweep()
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (payload, expires_at)
        return True

    async def delete(self, key: str) -> int:
        if self._live_entry(key) is None:
            return 0
        del self._entries[key]
        return 1

    async def delete_pattern(self, pattern: str) -> int:
        self._purge_expired()
        matched = [key for key in self._entries if fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def flush_all(self) -> bool:
        self._entries.clear()
        logger.warning("Memory store flushed - all data cleared")
        return True

    async def info(self, section: Optional[str] = None) -> Optional[Dict[str, Any]]:
        self._purge_expired()
        return {
            "backend": self.backend_name,
            "keys": len(self._entries),
            "keyspace_hits": self._hits,
            "keyspace_misses": self._misses,
        }

    async def incr_window(self, key: str, window_ms: int) -> Optional[WindowCount]:
        self._maybe_sweep()
        now = self._clock()
        entry = self._live_entry(key)
        if entry is None:
            count, expires_at = 1, now + window_ms / 1000
        else:
            count = json.loads(entry[0]) + 1
            expires_at = entry[1] if entry[1] is not None else now + window_ms / 1000
        self._entries[key] = (json.dumps(count), expires_at)
        reset_ms = max(0, int(round((expires_at - now) * 1000)))
        return WindowCount(count=count, reset_ms=reset_ms)
