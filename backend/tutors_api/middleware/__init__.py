from .correlation import CorrelationIdMiddleware
from .response_cache import CACHE_HEADER, ResponseCacheMiddleware

__all__ = ["CACHE_HEADER", "CorrelationIdMiddleware", "ResponseCacheMiddleware"]
