"""
Rate Limiting Middleware

FastAPI middleware and route dependency for admission limiting.
Provides HTTP 429 responses with Retry-After and RateLimit-* headers.
"""

from typing import Callable, Dict, Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from opentelemetry import trace

from ...core.exceptions import RateLimitExceeded
from .rate_limiter import GENERAL_SCOPE, LimiterRegistry, RateLimitResult

tracer = trace.get_tracer(__name__)


def get_client_ip(request: Request) -> str:
    """Get client IP address from request."""
    # Check for forwarded IP first
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to client IP
    return request.client.host if request.client else "unknown"


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Standard rate limiting headers for a limiter decision."""
    headers = {
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining_requests),
        "RateLimit-Reset": str(result.reset_seconds),
    }
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def add_rate_limit_headers(response: Response, result: RateLimitResult) -> None:
    """Add standard rate limiting headers to response."""
    response.headers.update(rate_limit_headers(result))


def rate_limit_response(result: RateLimitResult) -> JSONResponse:
    """Create HTTP 429 Too Many Requests response."""
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "message": result.message},
    )
    add_rate_limit_headers(response, result)
    return response


def _registry(request: Request) -> Optional[LimiterRegistry]:
    services = getattr(request.app.state, "services", None)
    if services is None or not services.settings.RATE_LIMIT_ENABLED:
        return None
    return services.limiters


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """
    Applies the general limiter scope to every request.

    The limiter registry is looked up on ``app.state.services`` at dispatch
    time, so the middleware can be installed before the registry exists.
    """

    def __init__(
        self,
        app,
        scope: str = GENERAL_SCOPE,
        exclude_paths: Optional[list[str]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.scope = scope
        self.exclude_paths = set(
            exclude_paths or ["/api-docs", "/api-docs.json", "/docs/oauth2-redirect"]
        )
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in self.exclude_paths:
            return await call_next(request)

        registry = _registry(request)
        if registry is None:
            return await call_next(request)

        with tracer.start_as_current_span("rate_limiting_middleware.dispatch") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.path", request.url.path)

            result = await registry.get(self.scope).hit(get_client_ip(request))
            if not result.allowed:
                span.set_attribute("rate_limit.blocked_by", self.scope)
                return rate_limit_response(result)

            response = await call_next(request)
            # a route scope that rejected the request has set its own headers
            if "RateLimit-Limit" not in response.headers:
                add_rate_limit_headers(response, result)
            return response


def rate_limit(scope: str) -> Callable:
    """
    Route dependency applying an additional limiter scope.

    Usage:
        @router.post("/otp", dependencies=[Depends(rate_limit(OTP_SCOPE))])
    """

    async def dependency(request: Request) -> None:
        registry = _registry(request)
        if registry is None:
            return

        result = await registry.get(scope).hit(get_client_ip(request))
        if not result.allowed:
            raise RateLimitExceeded(
                message=result.message,
                scope=scope,
                client_id=result.client_id,
                retry_after=result.retry_after,
                headers=rate_limit_headers(result),
            )

    return dependency
