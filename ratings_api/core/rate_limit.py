"""Per-action rate admission.

Every request belongs to an action class. Each class owns an independent
rolling-window limiter, partitioned by client key, so exhausting the budget
of one mutation never blocks another. Handlers call ``RateAdmission.enforce``
before doing anything else.

Client identity is reduced to the connection peer address. Window state is
kept in process memory: a restart clears every counter and horizontally
scaled deployments enforce each limit once per process.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Mapping

from fastapi import Request

from ratings_api.adapters.rate_limit import (
    AbstractRateLimiter,
    InMemoryRollingWindowRateLimiter,
    RateLimitResult,
)
from ratings_api.core.config import AppSettings
from ratings_api.core.errors import RateLimitAppError
from ratings_api.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class ActionClass(str, Enum):
    """Rate limit namespaces. Paired actions share one class."""

    READ = "read"
    WORTH_IT = "worth_it"
    KEEP_WORKING = "keep_working"
    WORK_SETTING = "work_setting"
    GENERAL_RATING = "general_rating"
    WEEKLY_HOURS = "weekly_hours"


MUTATION_CLASSES: tuple[ActionClass, ...] = tuple(
    action for action in ActionClass if action is not ActionClass.READ
)


def client_key_for(request: Request) -> str:
    """Return the connection-level key used to partition rate limits."""
    return request.client.host if request.client else "unknown"


def _format_window(window_seconds: int) -> str:
    if window_seconds % 3600 == 0:
        hours = window_seconds // 3600
        return "hour" if hours == 1 else f"{hours} hours"
    return f"{window_seconds} seconds"


class RateAdmission:
    """Gate deciding whether a client may perform an action right now.

    Attributes:
        enabled: When False every request is admitted without counting.
    """

    def __init__(
        self,
        limiters: Mapping[ActionClass, AbstractRateLimiter],
        *,
        enabled: bool = True,
        include_headers: bool = True,
    ) -> None:
        missing = set(ActionClass) - set(limiters)
        if missing:
            names = ", ".join(sorted(action.value for action in missing))
            raise ValueError(f"no limiter configured for: {names}")

        self._limiters = dict(limiters)
        self.enabled = enabled
        self._include_headers = include_headers

    @classmethod
    def from_settings(
        cls,
        app_settings: AppSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "RateAdmission":
        """Build one in-memory limiter per action class from settings."""

        window = app_settings.rate_limit_window_seconds
        limiters: dict[ActionClass, AbstractRateLimiter] = {
            ActionClass.READ: InMemoryRollingWindowRateLimiter(
                limit=app_settings.rate_limit_read_requests,
                window_seconds=window,
                clock=clock,
            )
        }
        for action in MUTATION_CLASSES:
            limiters[action] = InMemoryRollingWindowRateLimiter(
                limit=app_settings.rate_limit_mutation_requests,
                window_seconds=window,
                clock=clock,
            )

        return cls(
            limiters,
            enabled=app_settings.rate_limit_enabled,
            include_headers=app_settings.rate_limit_include_headers,
        )

    def limiter_for(self, action: ActionClass) -> AbstractRateLimiter:
        return self._limiters[action]

    def check(self, client_key: str, action: ActionClass) -> RateLimitResult:
        """Consume one unit of ``action``'s budget for ``client_key``.

        Args:
            client_key: Connection-level client identifier.
            action: Action class being attempted.

        Returns:
            RateLimitResult; ``allowed`` is False when the ceiling is reached.
        """

        limiter = self._limiters[action]
        if not self.enabled:
            return RateLimitResult(
                allowed=True,
                limit=limiter.limit,
                remaining=limiter.limit,
                reset_at=0,
                retry_after_seconds=None,
            )

        result = limiter.consume(client_key)
        log_extra = {
            "action_class": action.value,
            "client_hash": hash_identifier(client_key),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": limiter.window_seconds,
        }
        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning(
                "rate_limit.exceeded",
                extra={**log_extra, "retry_after_s": result.retry_after_seconds},
            )
        return result

    def enforce(self, client_key: str, action: ActionClass) -> None:
        """Admit the request or raise.

        Raises:
            RateLimitAppError: When the client exhausted the action's budget.
        """

        result = self.check(client_key, action)
        if result.allowed:
            return

        window_seconds = self._limiters[action].window_seconds
        retry_after = result.retry_after_seconds or 0

        headers: dict[str, str] = {}
        if self._include_headers:
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Limit"] = str(result.limit)
            headers["X-RateLimit-Remaining"] = str(result.remaining)
            headers["X-RateLimit-Reset"] = str(result.reset_at)

        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message=(
                f"You can only make this request {result.limit} times "
                f"every {_format_window(window_seconds)}."
            ),
            details={
                "limit": result.limit,
                "window_s": window_seconds,
                "retry_after": retry_after,
            },
            headers=headers,
        )
