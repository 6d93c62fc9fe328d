"""HTTP middleware stages of the gateway chain.

Registered by ``app.core.app_factory.create_app`` in this order (outermost
first), after CORS:

1. ``request_logging_middleware``: request id correlation and access logs
2. ``security_headers_middleware``: hardening response headers
3. ``pretty_json_middleware``: indented JSON when ``?pretty`` is present
4. ``timeout_middleware``: abandons handling after the configured deadline

The rate limit gate (``app.core.rate_limit``) follows the timeout stage.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import get_app_settings, settings
from app.core.errors import RequestTimeoutAppError
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

PRETTY_QUERY_PARAM = "pretty"


async def request_logging_middleware(request: Request, call_next) -> Response:
    """Correlate and log every request/response pair.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The id is stored in contextvars for log correlation and echoed
    back in the response headers together with the handling duration.

    Side Effects:
        - Logs ``request.started`` and ``request.completed`` records
        - Adds the request id and X-Request-Duration-ms headers to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    request.state.request_id = request_id

    logger.info(
        "request.started",
        extra={"request_method": request.method, "request_path": request.url.path},
    )
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "request_method": request.method,
                "request_path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Apply hardening headers; values already set by a handler are kept."""

    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if "x-powered-by" in response.headers:
        del response.headers["x-powered-by"]
    return response


async def pretty_json_middleware(request: Request, call_next) -> Response:
    """Re-serialize JSON bodies with indentation when ``?pretty`` is requested."""

    response = await call_next(request)
    if PRETTY_QUERY_PARAM not in request.query_params:
        return response
    if not response.headers.get("content-type", "").startswith("application/json"):
        return response

    body = b"".join([chunk async for chunk in response.body_iterator])
    try:
        pretty = json.dumps(json.loads(body), indent=2, ensure_ascii=False).encode("utf-8")
    except ValueError:
        pretty = body

    # raw list keeps repeated headers (Set-Cookie) intact
    pretty_response = Response(content=pretty, status_code=response.status_code)
    pretty_response.raw_headers = [
        *((name, value) for name, value in response.raw_headers if name.lower() != b"content-length"),
        (b"content-length", str(len(pretty)).encode("latin-1")),
    ]
    return pretty_response


async def timeout_middleware(request: Request, call_next) -> Response:
    """Abort handling that exceeds ``APP_REQUEST_TIMEOUT_SECONDS``.

    Cancellation is advisory: side effects the handler already started are
    not rolled back.

    Raises:
        RequestTimeoutAppError: 504 when the deadline passes.
    """

    timeout_seconds = get_app_settings(request).request_timeout_seconds
    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        logger.warning(
            "request.timeout",
            extra={
                "request_method": request.method,
                "request_path": request.url.path,
                "timeout_seconds": timeout_seconds,
            },
        )
        raise RequestTimeoutAppError() from exc
