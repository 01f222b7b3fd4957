"""
Redis Cache Store Tests

Exercises RedisCacheStore against a fake async Redis client: connection
retry, JSON round trips and fail-open behaviour.
"""

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError

from tests.fixtures.fakes import FakeRedis, make_settings
from tutors_api.core.exceptions import StoreConnectionError
from tutors_api.infrastructure.store import KeyValueStore, RedisCacheStore, build_cache_store


def make_store(client: FakeRedis, **overrides) -> RedisCacheStore:
    return RedisCacheStore(make_settings(**overrides), client_factory=lambda: client)


@pytest.fixture
def redis_store(fake_redis):
    return make_store(fake_redis)


class TestRedisConnection:
    """Connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_marks_store_connected(self, redis_store, fake_redis):
        assert isinstance(redis_store, KeyValueStore)
        assert redis_store.is_connected is False

        await redis_store.connect()

        assert redis_store.is_connected is True
        assert fake_redis.ping_calls == 1

    @pytest.mark.asyncio
    async def test_connect_retries_until_ping_succeeds(self):
        client = FakeRedis(ping_failures=2)
        store = make_store(client, REDIS_MAX_RETRIES=2)

        await store.connect()

        assert store.is_connected is True
        assert client.ping_calls == 3

    @pytest.mark.asyncio
    async def test_connect_gives_up_after_retry_ceiling(self):
        client = FakeRedis(ping_failures=100)
        store = make_store(client, REDIS_MAX_RETRIES=2)

        with pytest.raises(StoreConnectionError) as exc_info:
            await store.connect()

        assert isinstance(exc_info.value, ConnectionError)
        assert exc_info.value.details["attempts"] == 3
        assert exc_info.value.details["store"] == "redis"
        assert client.ping_calls == 3
        assert client.closed is True
        assert store.is_connected is False

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self, redis_store, fake_redis):
        await redis_store.connect()

        await redis_store.disconnect()

        assert fake_redis.closed is True
        assert redis_store.is_connected is False

    def test_build_cache_store_selects_backend(self):
        assert build_cache_store(make_settings(CACHE_BACKEND="memory")).backend_name == "memory"
        assert build_cache_store(make_settings(CACHE_BACKEND="redis")).backend_name == "redis"


class TestRedisOperations:
    """Operations against a connected store."""

    @pytest.mark.asyncio
    async def test_values_are_stored_as_json(self, redis_store, fake_redis):
        await redis_store.connect()
        value = {"otp": "123456", "createdAt": 1700000000000}

        assert await redis_store.set("otp:user@example.com", value, ttl_seconds=600) is True

        assert json.loads(fake_redis.data["otp:user@example.com"]) == value
        assert fake_redis.ttls["otp:user@example.com"] == 600_000
        assert await redis_store.get("otp:user@example.com") == value

    @pytest.mark.asyncio
    async def test_set_without_ttl_persists(self, redis_store, fake_redis):
        await redis_store.connect()

        await redis_store.set("hello:visit_count", 3)

        assert "hello:visit_count" not in fake_redis.ttls
        assert await redis_store.get("hello:visit_count") == 3

    @pytest.mark.asyncio
    async def test_non_json_payload_reads_as_miss(self, redis_store, fake_redis):
        await redis_store.connect()
        fake_redis.data["legacy"] = "not json"

        assert await redis_store.get("legacy") is None

    @pytest.mark.asyncio
    async def test_delete_returns_count(self, redis_store):
        await redis_store.connect()
        await redis_store.set("k", "v")

        assert await redis_store.delete("k") == 1
        assert await redis_store.get("k") is None
        assert await redis_store.delete("k") == 0

    @pytest.mark.asyncio
    async def test_delete_pattern_returns_count(self, redis_store, fake_redis):
        await redis_store.connect()
        for path in ("/api/hello", "/api/hello?page=2", "/api/tutors"):
            await redis_store.set(f"cache:{path}", {"path": path})
        await redis_store.set("session:abc", {"user": 1})

        removed = await redis_store.delete_pattern("cache:*")

        assert removed == 3
        assert list(fake_redis.data) == ["session:abc"]

    @pytest.mark.asyncio
    async def test_exists_and_flush_all(self, redis_store):
        await redis_store.connect()
        await redis_store.set("k", "v")

        assert await redis_store.exists("k") is True
        assert await redis_store.flush_all() is True
        assert await redis_store.exists("k") is False

    @pytest.mark.asyncio
    async def test_info_returns_server_section(self, redis_store):
        await redis_store.connect()

        info = await redis_store.info("stats")

        assert info["keyspace_hits"] == 0

    @pytest.mark.asyncio
    async def test_incr_window_counts_hits(self, redis_store):
        await redis_store.connect()

        first = await redis_store.incr_window("rl:general:1.1.1.1", 900_000)
        second = await redis_store.incr_window("rl:general:1.1.1.1", 900_000)

        assert first.count == 1
        assert second.count == 2
        assert second.reset_ms == 900_000


class TestRedisFailOpen:
    """Every operation degrades to a miss instead of raising."""

    @pytest.mark.asyncio
    async def test_operations_before_connect_fail_open(self, redis_store):
        assert await redis_store.get("k") is None
        assert await redis_store.set("k", "v") is False
        assert await redis_store.delete("k") == 0
        assert await redis_store.delete_pattern("*") == 0
        assert await redis_store.exists("k") is False
        assert await redis_store.flush_all() is False
        assert await redis_store.info() is None
        assert await redis_store.incr_window("w", 1000) is None

    @pytest.mark.asyncio
    async def test_connection_loss_fails_open_and_recovers(self, redis_store, fake_redis):
        await redis_store.connect()
        await redis_store.set("k", "v")
        fake_redis.fail_with = RedisConnectionError("Connection reset by peer")

        assert await redis_store.get("k") is None
        assert await redis_store.set("k", "w") is False
        assert await redis_store.delete("k") == 0
        assert await redis_store.delete_pattern("*") == 0
        assert await redis_store.incr_window("w", 1000) is None
        assert redis_store.is_connected is False

        fake_redis.fail_with = None

        assert await redis_store.get("k") == "v"
        assert redis_store.is_connected is True

    @pytest.mark.asyncio
    async def test_command_error_keeps_connection(self, redis_store, fake_redis):
        await redis_store.connect()
        fake_redis.fail_with = ResponseError("WRONGTYPE Operation against a key")

        assert await redis_store.get("k") is None
        assert redis_store.is_connected is True
