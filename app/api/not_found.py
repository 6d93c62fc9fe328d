"""Fallback for requests that match no registered method+path.

Game clients expect the platform's error shape for unknown endpoints rather
than the gateway envelope, so this response mirrors it.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

NOT_FOUND_ERROR_CODE = "errors.com.epicgames.common.not_found"
NOT_FOUND_NUMERIC_CODE = 1004


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer unmatched requests with a 404 in the platform error format."""

    logger.info(
        "route.not_found",
        extra={"request_method": request.method, "request_path": request.url.path},
    )
    return JSONResponse(
        status_code=404,
        content={
            "errorCode": NOT_FOUND_ERROR_CODE,
            "errorMessage": "Sorry the resource you were trying to find could not be found",
            "messageVars": [request.url.path],
            "numericErrorCode": NOT_FOUND_NUMERIC_CODE,
            "originatingService": "any",
            "intent": "prod",
        },
        headers={"X-Epic-Error-Name": NOT_FOUND_ERROR_CODE, "X-Epic-Error-Code": str(NOT_FOUND_NUMERIC_CODE)},
    )
