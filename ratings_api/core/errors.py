"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error kind only carries what it needs.
    """

    field: str
    expected: str
    allowed: list[str]
    company: str
    attempts: int
    limit: int
    window_s: int
    retry_after: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class CompanyNotFoundAppError(AppError):
    """Raised when a mutation targets a company with no stored record."""


class TransactionAbortedAppError(AppError):
    """Raised when an optimistic write was never committed."""


class StoreAppError(AppError):
    """Raised when the aggregate store is unreachable or fails."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client exceeds the ceiling of an action class.

    Attributes:
        headers: Response headers describing the limit (may be empty).
    """

    headers: dict[str, str] | None = None
