"""In-memory rolling-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and a restart clears every counter.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratings_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

# Expired windows are swept once this many keys are tracked
_PRUNE_THRESHOLD = 10_000


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryRollingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter whose window is anchored at each key's first request.

    A key's window opens with the first request seen for it and lasts
    ``window_seconds``; the first request after it closes opens a new one.
    Windows are not aligned to clock boundaries.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Length of the rolling window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def tracked_keys(self) -> int:
        """Number of keys currently holding window state."""
        with self._lock:
            return len(self._state_by_key)

    def _is_expired(self, state: _WindowState, now: float) -> bool:
        return now >= state.window_start + self._window_seconds

    def _get_or_open_window(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or self._is_expired(state, now):
            if state is None and len(self._state_by_key) >= _PRUNE_THRESHOLD:
                self._prune_expired_locked(now)
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _prune_expired_locked(self, now: float) -> None:
        expired = [k for k, s in self._state_by_key.items() if self._is_expired(s, now)]
        for key in expired:
            del self._state_by_key[key]

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Checks the key's current window and records the request only when
        it is allowed, so denied requests do not extend the budget used.

        Args:
            key: Unique identifier for rate limiting (e.g., client address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            state = self._get_or_open_window(key, now)
            reset_at = state.window_start + self._window_seconds

            if state.count + cost <= self._limit:
                state.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=max(0, self._limit - state.count),
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )
