"""
Keyspace Repositories

Thin repositories over the key-value store for the ``otp:`` and ``session:``
namespaces. Like the store itself they fail open.
"""

import time
from typing import Any, Dict, Optional

from ..store.base import KeyValueStore

OTP_PREFIX = "otp:"
SESSION_PREFIX = "session:"

DEFAULT_OTP_EXPIRY_MINUTES = 10
DEFAULT_SESSION_TTL_SECONDS = 86400


class OtpRepository:
    """One-time codes keyed by the identifier they were issued to."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def key(identifier: str) -> str:
        return f"{OTP_PREFIX}{identifier}"

    async def save(
        self,
        identifier: str,
        otp: str,
        expiry_minutes: int = DEFAULT_OTP_EXPIRY_MINUTES,
    ) -> bool:
        """Store ``otp`` with its creation time in epoch milliseconds."""
        record = {"otp": otp, "createdAt": int(time.time() * 1000)}
        return await self.store.set(self.key(identifier), record, expiry_minutes * 60)

    async def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(self.key(identifier))

    async def delete(self, identifier: str) -> int:
        return await self.store.delete(self.key(identifier))


class SessionRepository:
    """Session payloads keyed by session id."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def key(session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    async def save(
        self,
        session_id: str,
        session_data: Dict[str, Any],
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
    ) -> bool:
        return await self.store.set(self.key(session_id), session_data, ttl_seconds)

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(self.key(session_id))

    async def delete(self, session_id: str) -> int:
        return await self.store.delete(self.key(session_id))
