"""Error normalization for every failure the gateway can surface.

All failures end up as JSON with one of two shapes:
- the error envelope ``{"error", "status", "timestamp"}`` for structured
  errors (``AppError``, ``HTTPException``, request validation) and for
  unexpected exceptions (always 500, generic message);
- the minimal ``{"error"}`` body for admission-gate rejections (auth and rate
  limit), unless ``APP_UNIFIED_ERROR_ENVELOPE`` is enabled.

The same rendering is installed at three depths so nothing escapes it:
- FastAPI exception handlers around the router;
- ``error_boundary_middleware`` just inside the side-effect stages (CORS,
  logging, security headers, pretty JSON), so timeout and rate limit failures
  still receive those headers;
- the ``Exception`` handler, which Starlette runs at the outermost layer.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_app_settings
from app.core.errors import AppError
from app.core.logging import get_request_id
from app.utils.clock import utc_now_iso

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"

NotFoundHandler = Callable[[Request, Exception], Awaitable[Response]]


def build_error_payload(message: str, status_code: int) -> dict[str, Any]:
    """Build the standard error envelope, timestamped at construction."""

    return {
        "error": message,
        "status": status_code,
        "timestamp": utc_now_iso(),
    }


def render_app_error(exc: AppError, *, unified_envelope: bool = False) -> JSONResponse:
    """Turn a structured error into its JSON response."""

    if exc.gate and not unified_envelope:
        content: dict[str, Any] = {"error": exc.message}
    else:
        content = build_error_payload(exc.message, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle structured application errors.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's own status code and message.
    """
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )
    return render_app_error(
        exc,
        unified_envelope=get_app_settings(request).unified_error_envelope,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle framework/third-party ``HTTPException`` as a structured error."""

    logger.warning(
        "http_exception_handled",
        extra={
            "status_code": exc.status_code,
            "error_message": exc.detail,
            "request_path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_payload(str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map request validation failures to the envelope (422)."""

    logger.warning(
        "request_validation_failed",
        extra={
            "error_count": len(exc.errors()),
            "request_path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=422,
        content=build_error_payload("Invalid request", 422),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    Prevents information leakage (no exception text or stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content=build_error_payload(GENERIC_ERROR_MESSAGE, 500),
    )


async def error_boundary_middleware(request: Request, call_next) -> Response:
    """Convert failures raised by inner stages into error responses."""

    try:
        return await call_next(request)
    except AppError as exc:
        return await app_error_handler(request, exc)
    except StarletteHTTPException as exc:
        return await http_exception_handler(request, exc)
    except Exception as exc:  # noqa: BLE001 - normalized into a 500 envelope
        return await general_exception_handler(request, exc)


def setup_exception_handlers(app, not_found_handler: NotFoundHandler | None = None) -> None:
    """Register all exception handlers with the FastAPI app.

    Must be called during app construction, before the middleware stack is
    built. Unmatched method+path (404/405 raised by routing) is delegated to
    ``not_found_handler`` when given.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    if not_found_handler is not None:
        app.exception_handler(404)(not_found_handler)
        app.exception_handler(405)(not_found_handler)
    app.exception_handler(Exception)(general_exception_handler)
