"""Rate limiting adapters.

This package keeps the per-identity counter behind a small abstraction so
the decision engine does not depend on how or where counts are kept.
"""

from relayguard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from relayguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
]
