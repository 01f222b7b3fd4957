"""
Rate Limiter Service

Fixed window admission limiter. Each scope (general, strict, auth, otp) has
its own ceiling and message, and counts hits per client in the key-value
store under ``rl:<scope>:<client>``.
"""

from typing import Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, Field

from ...core.config import Settings
from ...core.metrics import RATE_LIMIT_REJECTIONS
from ...infrastructure.store import KeyValueStore, MemoryStore

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

RATE_LIMIT_PREFIX = "rl:"

GENERAL_SCOPE = "general"
STRICT_SCOPE = "strict"
AUTH_SCOPE = "auth"
OTP_SCOPE = "otp"

FIFTEEN_MINUTES_MS = 15 * 60 * 1000
ONE_HOUR_MS = 60 * 60 * 1000


class RateLimitConfig(BaseModel):
    """Rate limit configuration for one scope."""

    window_ms: int = Field(..., ge=1, description="Window length in milliseconds")
    max_requests: int = Field(..., ge=1, description="Requests allowed per window")
    message: str = Field(
        "Too many requests from this IP, please try again later.",
        description="Message returned to rejected clients",
    )


class RateLimitResult(BaseModel):
    """Result of rate limit check."""

    allowed: bool = Field(..., description="Whether request is allowed")
    current_count: int = Field(..., description="Hits counted in the current window")
    remaining_requests: int = Field(..., description="Remaining requests")
    reset_ms: int = Field(..., description="Milliseconds until the window resets")
    limit: int = Field(..., description="Rate limit threshold")
    scope: str = Field(..., description="Limiter scope")
    client_id: str = Field(..., description="Client identifier")
    message: str = Field(..., description="Rejection message for the scope")

    @property
    def reset_seconds(self) -> int:
        return (self.reset_ms + 999) // 1000

    @property
    def retry_after(self) -> Optional[int]:
        return None if self.allowed else self.reset_seconds


def default_scope_configs(settings: Settings) -> Dict[str, RateLimitConfig]:
    """Scope configurations; the general scope honours the environment overrides."""
    return {
        GENERAL_SCOPE: RateLimitConfig(
            window_ms=settings.RATE_LIMIT_WINDOW_MS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        ),
        STRICT_SCOPE: RateLimitConfig(
            window_ms=FIFTEEN_MINUTES_MS,
            max_requests=20,
            message="Too many requests, please slow down.",
        ),
        AUTH_SCOPE: RateLimitConfig(
            window_ms=FIFTEEN_MINUTES_MS,
            max_requests=5,
            message="Too many authentication attempts, please try again later.",
        ),
        OTP_SCOPE: RateLimitConfig(
            window_ms=ONE_HOUR_MS,
            max_requests=3,
            message="Too many OTP requests, please try again later.",
        ),
    }


class AdmissionLimiter:
    """
    Fixed window limiter for a single scope.

    The (max+1)-th hit inside a window is rejected; once the window expires
    the counter starts again from one. Counter failures fail open.
    """

    def __init__(self, scope: str, config: RateLimitConfig, counter: KeyValueStore):
        self.scope = scope
        self.config = config
        self.counter = counter

    @property
    def backend_name(self) -> str:
        return self.counter.backend_name

    def key(self, client_id: str) -> str:
        return f"{RATE_LIMIT_PREFIX}{self.scope}:{client_id}"

    async def hit(self, client_id: str) -> RateLimitResult:
        """Count a request from ``client_id`` and decide whether to admit it."""
        with tracer.start_as_current_span("rate_limiter.hit") as span:
            span.set_attribute("rate_limit.scope", self.scope)
            span.set_attribute("rate_limit.limit", self.config.max_requests)

            window = await self.counter.incr_window(
                self.key(client_id), self.config.window_ms
            )

            if window is None:
                # Fail open - allow request if the counter is unavailable
                span.set_status(Status(StatusCode.ERROR, "Rate limit counter failed"))
                logger.warning(
                    "Rate limit counter unavailable, admitting request",
                    scope=self.scope,
                    client_id=client_id,
                )
                return self._result(client_id, allowed=True, count=0, reset_ms=self.config.window_ms)

            allowed = window.count <= self.config.max_requests
            span.set_attribute("rate_limit.allowed", allowed)
            span.set_attribute("rate_limit.current_count", window.count)

            if not allowed:
                RATE_LIMIT_REJECTIONS.labels(scope=self.scope).inc()
                logger.warning(
                    f"Rate limit exceeded for IP: {client_id}",
                    scope=self.scope,
                    client_id=client_id,
                    current=window.count,
                    limit=self.config.max_requests,
                    reset_ms=window.reset_ms,
                )

            return self._result(
                client_id, allowed=allowed, count=window.count, reset_ms=window.reset_ms
            )

    async def reset(self, client_id: str) -> bool:
        """Forget the current window for ``client_id``."""
        removed = await self.counter.delete(self.key(client_id))
        logger.info("Reset rate limit", scope=self.scope, client_id=client_id)
        return removed > 0

    def _result(
        self, client_id: str, allowed: bool, count: int, reset_ms: int
    ) -> RateLimitResult:
        return RateLimitResult(
            allowed=allowed,
            current_count=count,
            remaining_requests=max(0, self.config.max_requests - count),
            reset_ms=reset_ms,
            limit=self.config.max_requests,
            scope=self.scope,
            client_id=client_id,
            message=self.config.message,
        )


class LimiterRegistry:
    """
    Long-lived limiter per scope.

    Built once at process start. The counter backend is chosen at that
    moment: the shared store when it is connected, otherwise a process-local
    ``MemoryStore`` with identical window semantics.
    """

    def __init__(self, limiters: Dict[str, AdmissionLimiter]):
        self._limiters = limiters

    @classmethod
    def build(
        cls, store: KeyValueStore, configs: Dict[str, RateLimitConfig]
    ) -> "LimiterRegistry":
        if store.is_connected:
            counter = store
        else:
            logger.error(
                "Failed to create rate limiter with shared store",
                backend=store.backend_name,
            )
            logger.warning("Using memory-based rate limiting as fallback")
            counter = MemoryStore()

        limiters = {
            scope: AdmissionLimiter(scope, config, counter)
            for scope, config in configs.items()
        }
        logger.info(
            "Rate limiters initialized",
            scopes=sorted(limiters),
            backend=counter.backend_name,
        )
        return cls(limiters)

    def get(self, scope: str) -> AdmissionLimiter:
        try:
            return self._limiters[scope]
        except KeyError:
            raise KeyError(f"Unknown rate limit scope: {scope}") from None

    def scopes(self):
        return list(self._limiters)
