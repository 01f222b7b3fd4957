"""
Key-Value Store Infrastructure

This module provides:
- KeyValueStore: capability interface used by the rest of the application
- RedisCacheStore: Redis-backed implementation with bounded reconnect
- MemoryStore: in-process implementation used as fallback
- build_cache_store: backend selection from settings
"""

from ...core.config import Settings
from .base import KeyValueStore, WindowCount
from .memory_store import MemoryStore
from .redis_store import RedisCacheStore


def build_cache_store(settings: Settings) -> KeyValueStore:
    """Create the store selected by ``CACHE_BACKEND``."""
    if settings.CACHE_BACKEND == "memory":
        return MemoryStore()
    return RedisCacheStore(settings)


__all__ = [
    "KeyValueStore",
    "WindowCount",
    "MemoryStore",
    "RedisCacheStore",
    "build_cache_store",
]
