"""Prometheus metrics for the cache and admission layers."""

from prometheus_client import Counter

STORE_ERRORS = Counter(
    "tutors_store_errors_total",
    "Key-value store operations that failed and were treated as a miss",
    ["operation"],
)

RESPONSE_CACHE_LOOKUPS = Counter(
    "tutors_response_cache_lookups_total",
    "Response cache lookups by outcome",
    ["outcome"],
)

RATE_LIMIT_REJECTIONS = Counter(
    "tutors_rate_limit_rejections_total",
    "Requests rejected by the admission limiter",
    ["scope"],
)

BACKGROUND_WRITE_FAILURES = Counter(
    "tutors_background_write_failures_total",
    "Detached cache writes that raised",
)
