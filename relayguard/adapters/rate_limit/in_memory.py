"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: several relay plugin processes each enforce their own limit.
- Thread-safe: one lock guards the whole map, and the read-check-increment
  for a key happens inside it.
- Windows are anchored at the first event of each key, not at the epoch.
  A burst straddling a window boundary can therefore admit up to
  2 * limit - 1 events in quick succession; this is the accepted cost of
  fixed windows.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from relayguard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Entries are never needed once their window has expired (an expired entry
    behaves exactly like a missing one), so an optional periodic sweep drops
    them to keep the map from growing with every identity ever seen.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 0,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed events per window.
            window_seconds: Size of the window in seconds.
            clock: Time source function returning seconds.
            sweep_interval_seconds: Minimum time between automatic sweeps of
                expired entries (0 disables automatic sweeping).

        Raises:
            ValueError: If any argument is out of range.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if sweep_interval_seconds < 0:
            raise ValueError("sweep_interval_seconds must be >= 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _is_expired(self, state: _WindowState, now: float) -> bool:
        return now - state.window_start > self._window_seconds

    def _build_allowed_result(self, state: _WindowState) -> RateLimitResult:
        """Build a RateLimitResult for an allowed event."""
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - state.count),
            reset_at=state.window_start + self._window_seconds,
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, state: _WindowState, now: float) -> RateLimitResult:
        """Build a RateLimitResult for a blocked event."""
        reset_at = state.window_start + self._window_seconds
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
        )

    def consume(self, key: str) -> RateLimitResult:
        """Count one event for key and decide whether it is allowed.

        - first event for key: open a window with count 1, allowed
        - window expired: reopen it at now with count 1, allowed
        - count below limit: increment, allowed
        - otherwise: blocked, count unchanged

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            if self._sweep_interval and now - self._last_sweep >= self._sweep_interval:
                self._sweep_locked(now)

            state = self._state_by_key.get(key)
            if state is None or self._is_expired(state, now):
                state = _WindowState(window_start=now, count=1)
                self._state_by_key[key] = state
                return self._build_allowed_result(state)

            if state.count < self._limit:
                state.count += 1
                return self._build_allowed_result(state)

            return self._build_blocked_result(state, now)

    def sweep(self, now: float | None = None) -> int:
        """Drop every entry whose window has expired.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def _sweep_locked(self, now: float) -> int:
        expired_keys = [
            key for key, state in self._state_by_key.items() if self._is_expired(state, now)
        ]
        for key in expired_keys:
            del self._state_by_key[key]
        self._last_sweep = now

        if expired_keys:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(expired_keys), "tracked": len(self._state_by_key)},
            )
        return len(expired_keys)

    def clear(self) -> None:
        """Forget every tracked window."""
        with self._lock:
            self._state_by_key.clear()
