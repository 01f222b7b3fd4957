"""
Key-Value Store Interface

Capability interface shared by the Redis-backed store and the in-process
fallback. Callers depend on this protocol only, so they cannot tell which
implementation is active.
"""

from typing import Any, Dict, NamedTuple, Optional, Protocol, runtime_checkable


class WindowCount(NamedTuple):
    """Hit count inside a fixed window and the time left until it resets."""

    count: int
    reset_ms: int


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Advisory key-value store.

    Every data operation fails open: errors are logged and reported as a
    miss (``None``), ``False`` or ``0``. Only ``connect()`` raises.
    """

    backend_name: str

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def ping(self) -> bool: ...

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool: ...

    async def delete(self, key: str) -> int: ...

    async def delete_pattern(self, pattern: str) -> int: ...

    async def exists(self, key: str) -> bool: ...

    async def flush_all(self) -> bool: ...

    async def info(self, section: Optional[str] = None) -> Optional[Dict[str, Any]]: ...

    async def incr_window(self, key: str, window_ms: int) -> Optional[WindowCount]: ...
