"""Application-level exception types.

This module defines the structured errors raised across routes, middleware
and collaborators, enabling a single error normalization path, consistent
logging and a uniform JSON envelope for clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class AppError(Exception):
    """Base structured error: an explicit HTTP status plus a client message.

    Attributes:
        message: Human-readable message returned to the client as ``error``.
        status_code: HTTP status used for the response.
        code: Stable, machine-readable error code for logs.
        gate: True for admission-gate rejections (auth, rate limit) which keep
            the minimal ``{"error": ...}`` body unless configured otherwise.
        headers: Extra response headers (e.g. Retry-After).
        details: Optional structured context, logged but never returned.
    """

    message: str
    status_code: int = 500
    code: str = "app_error"
    gate: bool = False
    headers: dict[str, str] = field(default_factory=dict)
    details: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


@dataclass(eq=False)
class ValidationAppError(AppError):
    """Raised when request input fails validation."""

    status_code: int = 400
    code: str = "validation_error"


@dataclass(eq=False)
class AuthenticationAppError(AppError):
    """Raised by the auth gate when a request carries no usable credentials."""

    message: str = "Unauthorized"
    status_code: int = 401
    code: str = "unauthorized"
    gate: bool = True


@dataclass(eq=False)
class RateLimitAppError(AppError):
    """Raised by the rate limit gate when a client exhausted its window."""

    message: str = "Too many requests"
    status_code: int = 429
    code: str = "rate_limited"
    gate: bool = True


@dataclass(eq=False)
class UpstreamAppError(AppError):
    """Raised when a collaborator (e.g. catalog generation) yields nothing."""

    code: str = "upstream_error"


@dataclass(eq=False)
class RequestTimeoutAppError(AppError):
    """Raised when request handling exceeds the configured deadline."""

    message: str = "Gateway Timeout"
    status_code: int = 504
    code: str = "request_timeout"


class StartupAppError(RuntimeError):
    """Raised when a required startup step (storage, route loading) fails."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message
