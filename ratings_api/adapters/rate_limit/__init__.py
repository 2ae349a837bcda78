"""Rate limiting adapters.

A small abstraction layer: window state lives in process memory today and
can move to a shared store later without changing rate admission.
"""

from ratings_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from ratings_api.adapters.rate_limit.in_memory import InMemoryRollingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryRollingWindowRateLimiter",
    "RateLimitResult",
]
