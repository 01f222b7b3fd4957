"""
Response Cache Tests

Cache-aside behaviour of ResponseCacheMiddleware on the hello route.
"""

import pytest
from fastapi.responses import JSONResponse
from starlette.requests import Request

from tutors_api.middleware import CACHE_HEADER
from tutors_api.services.cache import clear_response_cache, response_cache_key


class TestResponseCacheKey:
    def test_key_includes_query_string(self):
        request = Request(
            {
                "type": "http",
                "method": "GET",
                "path": "/api/hello",
                "query_string": b"lang=ar&page=2",
                "headers": [],
            }
        )

        assert response_cache_key(request) == "cache:/api/hello?lang=ar&page=2"

    def test_key_without_query_string(self):
        request = Request(
            {"type": "http", "method": "GET", "path": "/api/hello", "query_string": b"", "headers": []}
        )

        assert response_cache_key(request) == "cache:/api/hello"


class TestResponseCacheMiddleware:
    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, api_client, services):
        first = await api_client.get("/api/hello")
        await services.background.drain()
        second = await api_client.get("/api/hello")

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.headers[CACHE_HEADER] == "MISS"
        assert second.headers[CACHE_HEADER] == "HIT"
        assert second.content == first.content
        assert first.json()["visitCount"] == 1
        # downstream handler ran only once
        assert await services.store.get("hello:visit_count") == 1

    @pytest.mark.asyncio
    async def test_cached_entry_uses_response_key(self, api_client, services):
        response = await api_client.get("/api/hello", params={"lang": "ar"})
        await services.background.drain()

        assert await services.store.get("cache:/api/hello?lang=ar") == response.json()
        assert await services.store.get("cache:/api/hello") is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, api_client, services, clock):
        await api_client.get("/api/hello")
        await services.background.drain()

        clock.advance(services.settings.RESPONSE_CACHE_TTL + 1)
        response = await api_client.get("/api/hello")

        assert response.headers[CACHE_HEADER] == "MISS"
        assert response.json()["visitCount"] == 2

    @pytest.mark.asyncio
    async def test_clear_forces_recompute(self, api_client, services):
        await api_client.get("/api/hello")
        await services.background.drain()

        assert await clear_response_cache(services.store, "/api/hello*") == 1

        response = await api_client.get("/api/hello")
        assert response.headers[CACHE_HEADER] == "MISS"
        assert response.json()["visitCount"] == 2

    @pytest.mark.asyncio
    async def test_uncached_paths_pass_through(self, api_client, services):
        response = await api_client.get("/health")
        await services.background.drain()

        assert CACHE_HEADER not in response.headers
        assert await services.store.delete_pattern("cache:*") == 0

    @pytest.mark.asyncio
    async def test_non_get_requests_bypass_cache(self, api_client, services):
        response = await api_client.post("/api/hello")
        await services.background.drain()

        assert response.status_code == 405
        assert CACHE_HEADER not in response.headers
        assert await services.store.delete_pattern("cache:*") == 0

    @pytest.mark.asyncio
    async def test_error_responses_are_not_cached(self, app, api_client, services):
        @app.get("/api/hello/broken")
        async def broken():
            return JSONResponse(status_code=500, content={"message": "Internal server error"})

        first = await api_client.get("/api/hello/broken")
        await services.background.drain()
        second = await api_client.get("/api/hello/broken")

        assert first.status_code == 500
        assert second.status_code == 500
        assert CACHE_HEADER not in second.headers
        assert await services.store.get("cache:/api/hello/broken") is None

    @pytest.mark.asyncio
    async def test_prefix_matches_whole_segments(self, app, api_client, services):
        @app.get("/api/helloworld")
        async def helloworld():
            return {"message": "not under /api/hello"}

        response = await api_client.get("/api/helloworld")
        await services.background.drain()

        assert response.status_code == 200
        assert CACHE_HEADER not in response.headers
        assert await services.store.get("cache:/api/helloworld") is None

    @pytest.mark.asyncio
    async def test_nested_paths_are_cached(self, app, api_client, services):
        @app.get("/api/hello/tutors")
        async def tutors():
            return {"tutors": []}

        response = await api_client.get("/api/hello/tutors")
        await services.background.drain()

        assert response.headers[CACHE_HEADER] == "MISS"
        assert await services.store.get("cache:/api/hello/tutors") == {"tutors": []}

    @pytest.mark.asyncio
    async def test_miss_keeps_repeated_headers(self, app, api_client, services):
        @app.get("/api/hello/session")
        async def session():
            response = JSONResponse(content={"ok": True})
            response.set_cookie("sid", "abc")
            response.set_cookie("theme", "dark")
            return response

        response = await api_client.get("/api/hello/session")
        await services.background.drain()

        assert response.headers[CACHE_HEADER] == "MISS"
        cookies = response.headers.get_list("set-cookie")
        assert len(cookies) == 2
        assert any(c.startswith("sid=abc") for c in cookies)
        assert any(c.startswith("theme=dark") for c in cookies)
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_store_outage_serves_uncached(self, app, api_client, services):
        services.store.set = _failing_set

        first = await api_client.get("/api/hello")
        await services.background.drain()
        second = await api_client.get("/api/hello")

        assert first.status_code == 200
        assert second.headers[CACHE_HEADER] == "MISS"


async def _failing_set(key, value, ttl_seconds=None):
    return False
