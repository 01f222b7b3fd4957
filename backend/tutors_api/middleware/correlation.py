"""
Correlation ID Middleware

Binds a per-request correlation ID into the structlog context so every log
line emitted while serving the request carries it, and echoes the ID back
in the response headers.
"""

import re
import uuid
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.get_logger(__name__)

_ALLOWED_ID = re.compile(r"^[a-zA-Z0-9\-_\.]{8,255}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Extract or generate a correlation ID for each request."""

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id"):
        super().__init__(app)
        self.header_name = header_name.lower()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = self._extract_from_headers(request) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Unexpected error during request processing: {str(e)}",
                exc_info=True,
            )
            raise

        response.headers[self.header_name] = correlation_id
        logger.debug("Request completed", status_code=response.status_code)
        return response

    def _extract_from_headers(self, request: Request) -> Optional[str]:
        for header_name in (self.header_name, "x-request-id"):
            value = request.headers.get(header_name, "").strip()
            if value and _ALLOWED_ID.match(value):
                return value
        return None
