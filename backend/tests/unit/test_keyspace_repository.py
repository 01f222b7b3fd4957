"""
Keyspace Repository Tests

OTP and session helpers over the key-value store.
"""

import time

import pytest

from tutors_api.infrastructure.repositories import OtpRepository, SessionRepository


class TestOtpRepository:
    @pytest.mark.asyncio
    async def test_save_stores_code_with_creation_time(self, memory_store):
        repository = OtpRepository(memory_store)
        before = int(time.time() * 1000)

        assert await repository.save("user@example.com", "482913") is True

        record = await memory_store.get("otp:user@example.com")
        assert record["otp"] == "482913"
        assert record["createdAt"] >= before
        assert await repository.get("user@example.com") == record

    @pytest.mark.asyncio
    async def test_otp_expires_after_ten_minutes(self, memory_store, clock):
        repository = OtpRepository(memory_store)
        await repository.save("0599000000", "111222")

        clock.advance(9 * 60)
        assert await repository.get("0599000000") is not None

        clock.advance(61)
        assert await repository.get("0599000000") is None

    @pytest.mark.asyncio
    async def test_delete(self, memory_store):
        repository = OtpRepository(memory_store)
        await repository.save("user@example.com", "482913", expiry_minutes=1)

        assert await repository.delete("user@example.com") == 1
        assert await repository.get("user@example.com") is None


class TestSessionRepository:
    @pytest.mark.asyncio
    async def test_session_round_trip_and_expiry(self, memory_store, clock):
        repository = SessionRepository(memory_store)
        session = {"userId": 42, "role": "tutor"}

        await repository.save("abc", session)
        assert await memory_store.get("session:abc") == session

        clock.advance(86399)
        assert await repository.get("abc") == session

        clock.advance(2)
        assert await repository.get("abc") is None

    @pytest.mark.asyncio
    async def test_delete(self, memory_store):
        repository = SessionRepository(memory_store)
        await repository.save("abc", {"userId": 1}, ttl_seconds=60)

        assert await repository.delete("abc") == 1
        assert await repository.delete("abc") == 0

    @pytest.mark.asyncio
    async def test_services_expose_repositories(self, services):
        await services.otp.save("u", "123")

        assert (await services.otp.get("u"))["otp"] == "123"
        assert isinstance(services.sessions, SessionRepository)
