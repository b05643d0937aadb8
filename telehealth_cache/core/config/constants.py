"""
System Constants and Enumerations

Stage identifiers for structured logs, key namespaces, HTTP header names and
the retry defaults shared across the caching and rate-limiting layer.
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages used as the ``stage`` log field.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    KV_STORE = "1.0_KV_STORE"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    CACHE_WRITE = "2.3_CACHE_WRITE"
    CACHE_INVALIDATION = "2.4_CACHE_INVALIDATION"
    CACHE_ASIDE = "2.5_CACHE_ASIDE"
    RATE_LIMITING = "3.0_RATE_LIMITING"
    BACKEND_FETCH = "4.0_BACKEND_FETCH"
    AI_CACHE = "5.0_AI_CACHE"
    CLEANUP = "6.0_CLEANUP"

    RETRY = "R_RETRY_LOGIC"
    METRICS = "M_METRICS_COLLECTION"


class RateLimitDecision(str, Enum):
    """Outcome label recorded for every quota check."""

    ADMITTED = "admitted"
    REJECTED = "rejected"
    FAIL_OPEN = "fail_open"


# ============================================================================
# Retry settings
# ============================================================================

MAX_RETRIES = 2  # Retries after the first attempt
RETRY_BASE_DELAY = 1.0  # First backoff delay (seconds)
RETRY_BACKOFF_FACTOR = 2.0  # Multiplier applied per retry

# ============================================================================
# Key namespaces
# ============================================================================

KEY_NAMESPACE_USER = "user"
KEY_NAMESPACE_DOCTOR = "doctor"
KEY_NAMESPACE_DOCTORS = "doctors"
KEY_NAMESPACE_ANALYSIS = "analysis"
KEY_NAMESPACE_AI = "ai"
KEY_NAMESPACE_RATE_LIMIT = "ratelimit"
KEY_NAMESPACE_TAG = "tag"

# Truncated digest length for secondary inputs of multi-input AI keys
SECONDARY_DIGEST_LENGTH = 16

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_FORWARDED_FOR = "X-Forwarded-For"
HEADER_REAL_IP = "X-Real-IP"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
