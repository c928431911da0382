"""Shared constants for leadflow."""

UNKNOWN_INTENT = "UNKNOWN"
END_STATE = "end"
ERROR_STATE = "error"

DEFAULT_MAX_ITERATIONS = 50
DEFAULT_DEDUPLICATION_TTL_HOURS = 24
DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAYS_MS = (1000, 5000, 15000)

ALL_PRODUCTS = "all_products"
