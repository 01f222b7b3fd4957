"""
Response Cache Middleware

Cache-aside for idempotent reads. A GET on a configured path prefix is
answered from the store when an entry exists; otherwise the downstream
JSON body is captured, returned unchanged, and written to the store by a
detached task.
"""

import json
from typing import Callable, Sequence

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.metrics import RESPONSE_CACHE_LOOKUPS
from ..services.cache import DEFAULT_RESPONSE_TTL, response_cache_key, store_response

logger = structlog.get_logger(__name__)

CACHE_HEADER = "X-Cache"


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Serve repeated GET requests from the key-value store.

    Only 2xx ``application/json`` responses are stored. Other methods and
    paths outside ``paths`` pass through untouched.
    """

    def __init__(
        self,
        app,
        paths: Sequence[str],
        ttl_seconds: int = DEFAULT_RESPONSE_TTL,
    ):
        super().__init__(app)
        self.paths = tuple(paths)
        self.ttl_seconds = ttl_seconds

    def _applies(self, request: Request) -> bool:
        if request.method != "GET":
            return False
        path = request.url.path
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.paths
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        services = getattr(request.app.state, "services", None)
        if services is None or not self._applies(request):
            return await call_next(request)

        key = response_cache_key(request)
        cached = await services.store.get(key)
        if cached is not None:
            RESPONSE_CACHE_LOOKUPS.labels(outcome="hit").inc()
            logger.info(f"Cache hit for: {key}", key=key)
            return JSONResponse(content=cached, headers={CACHE_HEADER: "HIT"})

        RESPONSE_CACHE_LOOKUPS.labels(outcome="miss").inc()
        response = await call_next(request)

        if not 200 <= response.status_code < 300:
            return response
        if not response.headers.get("content-type", "").startswith("application/json"):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        replayed = Response(content=body, status_code=response.status_code)
        # raw list keeps repeated headers such as set-cookie
        replayed.raw_headers = list(response.headers.raw)
        replayed.headers[CACHE_HEADER] = "MISS"

        try:
            payload = json.loads(body)
        except ValueError:
            logger.warning("Response body is not valid JSON, skipping cache", key=key)
            return replayed

        services.background.spawn(
            store_response(services.store, key, payload, self.ttl_seconds),
            description=f"cache response {key}",
        )
        return replayed
