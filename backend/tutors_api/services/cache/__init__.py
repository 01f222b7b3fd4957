from .background import BackgroundWriter
from .response_cache import (
    DEFAULT_RESPONSE_TTL,
    RESPONSE_CACHE_PREFIX,
    clear_response_cache,
    response_cache_key,
    store_response,
)

__all__ = [
    "BackgroundWriter",
    "DEFAULT_RESPONSE_TTL",
    "RESPONSE_CACHE_PREFIX",
    "clear_response_cache",
    "response_cache_key",
    "store_response",
]
