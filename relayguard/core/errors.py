"""Application-level exception types.

This module defines the error taxonomy shared by the data sources, the
decision engine and the relay host adapter:

- ConfigError: configuration or snapshot file unreadable/invalid (startup, fatal)
- DataSourceConnectionError: backing store unreachable at startup (fatal)
- QueryError: a single lookup failed while evaluating one event
- ParseError: a malformed input line (skipped, never fatal)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for logs.

    Fields are optional so each error only carries what it knows.
    """

    code: str
    message: str
    hint: str
    path: str
    event_id: str
    line_number: int
    datasource: str
    errors: list[dict[str, Any]]
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
    """Raised when components are wired with inconsistent arguments."""


class ConfigError(AppError):
    """Raised when the configuration or snapshot file cannot be used."""


class DataSourceConnectionError(AppError):
    """Raised when the backing store cannot be reached at startup."""


class QueryError(AppError):
    """Raised when a data source lookup fails for a single check."""


class ParseError(AppError):
    """Raised when an input line is not a valid relay request."""
