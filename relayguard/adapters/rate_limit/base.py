"""Rate limiter interfaces.

The decision engine depends on this abstraction (not the concrete
implementation) so the counting strategy can be swapped without touching
the filter pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the event is allowed to proceed.
        limit: Max events per window.
        remaining: Remaining events in the current window (0 when blocked).
        reset_at: Clock reading after which the current window expires.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one event for the given key.

        Args:
            key: Identity the event is attributed to.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
