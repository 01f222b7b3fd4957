"""
Rate Limiting Services

Fixed window admission limiting per client, with one limiter per scope.
"""

from .rate_limiter import (
    AUTH_SCOPE,
    GENERAL_SCOPE,
    OTP_SCOPE,
    STRICT_SCOPE,
    AdmissionLimiter,
    LimiterRegistry,
    RateLimitConfig,
    RateLimitResult,
    default_scope_configs,
)
from .middleware import RateLimitingMiddleware, get_client_ip, rate_limit

__all__ = [
    "AdmissionLimiter",
    "LimiterRegistry",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitingMiddleware",
    "default_scope_configs",
    "get_client_ip",
    "rate_limit",
    "GENERAL_SCOPE",
    "STRICT_SCOPE",
    "AUTH_SCOPE",
    "OTP_SCOPE",
]
