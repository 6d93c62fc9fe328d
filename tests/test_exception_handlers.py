"""Tests for global exception handlers.

Validates that all exception types are rendered with the error envelope,
that admission-gate rejections keep their minimal body, and that unexpected
failures never leak details to the client.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, HTTPException, Query
from fastapi.testclient import TestClient

from app.core.config import AppSettings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitAppError,
    RequestTimeoutAppError,
    UpstreamAppError,
    ValidationAppError,
)
from app.core.exception_handlers import (
    build_error_payload,
    error_boundary_middleware,
    general_exception_handler,
    setup_exception_handlers,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled (server errors rendered)."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def _body(response) -> dict:
    body = response.body if isinstance(response.body, bytes) else bytes(response.body)
    return json.loads(body.decode())


class TestErrorPayload:
    def test_envelope_fields(self):
        payload = build_error_payload("Invalid player ID", 400)

        assert payload["error"] == "Invalid player ID"
        assert payload["status"] == 400
        assert payload["timestamp"].endswith("Z")


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400_envelope(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(message="Invalid player ID")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert set(data) == {"error", "status", "timestamp"}
        assert data["error"] == "Invalid player ID"
        assert data["status"] == 400

    def test_upstream_error_returns_500_with_its_message(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream")
        async def test_endpoint():
            raise UpstreamAppError(message="Failed to generate shop catalog")

        response = client.get("/test-upstream")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to generate shop catalog"

    def test_timeout_error_returns_504(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-timeout")
        async def test_endpoint():
            raise RequestTimeoutAppError()

        response = client.get("/test-timeout")

        assert response.status_code == 504
        assert response.json()["error"] == "Gateway Timeout"

    def test_details_are_not_rendered(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-details")
        async def test_endpoint():
            raise AppError(message="Broken", status_code=502, details={"upstream": "10.0.0.3"})

        response = client.get("/test-details")

        assert response.status_code == 502
        assert "10.0.0.3" not in response.text

    def test_gate_rejection_is_minimal(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def test_endpoint():
            raise AuthenticationAppError()

        response = client.get("/test-auth")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_error_headers_are_forwarded(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-headers")
        async def test_endpoint():
            raise RateLimitAppError(headers={"Retry-After": "12"})

        response = client.get("/test-headers")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"

    def test_unified_envelope_applies_to_gates(self, client: TestClient, app_with_handlers: FastAPI):
        app_with_handlers.state.settings = AppSettings(unified_error_envelope=True)

        @app_with_handlers.get("/test-auth-unified")
        async def test_endpoint():
            raise AuthenticationAppError()

        data = client.get("/test-auth-unified").json()

        assert data["error"] == "Unauthorized"
        assert data["status"] == 401


class TestFrameworkErrors:
    def test_http_exception_uses_envelope(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-http")
        async def test_endpoint():
            raise HTTPException(status_code=409, detail="Conflict")

        response = client.get("/test-http")

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"
        assert response.json()["status"] == 409

    def test_request_validation_returns_422(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-query")
        async def test_endpoint(count: int = Query(...)):
            return {"count": count}

        response = client.get("/test-query", params={"count": "many"})

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "Invalid request"
        assert data["status"] == 422


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("connection to 10.0.0.5:27017 refused")

        response = client.get("/test-crash")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Internal server error"
        assert data["status"] == 500
        assert "27017" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        text = json.dumps(_body(response))
        assert response.status_code == 500
        assert "Traceback" not in text
        assert "ValueError" not in text
        assert "details" not in text

    def test_failure_is_logged_with_traceback(self, caplog):
        request = AsyncMock()
        request.url.path = "/boom"
        request.method = "POST"

        with caplog.at_level("ERROR", logger="app.core.exception_handlers"):
            asyncio.run(general_exception_handler(request, KeyError("missing")))

        record = next(r for r in caplog.records if r.getMessage() == "unhandled_exception")
        assert record.exc_info is not None
        assert record.request_path == "/boom"


class TestErrorBoundaryMiddleware:
    @pytest.mark.asyncio
    async def test_passes_responses_through(self):
        sentinel = object()
        call_next = AsyncMock(return_value=sentinel)

        assert await error_boundary_middleware(AsyncMock(), call_next) is sentinel

    @pytest.mark.asyncio
    async def test_renders_app_errors(self):
        call_next = AsyncMock(side_effect=RequestTimeoutAppError())

        response = await error_boundary_middleware(AsyncMock(), call_next)

        assert response.status_code == 504
        assert _body(response)["error"] == "Gateway Timeout"

    @pytest.mark.asyncio
    async def test_renders_unexpected_errors_as_500(self):
        call_next = AsyncMock(side_effect=ZeroDivisionError("division by zero"))

        response = await error_boundary_middleware(AsyncMock(), call_next)

        assert response.status_code == 500
        assert _body(response)["error"] == "Internal server error"


class TestErrorHandlerIntegration:
    def test_setup_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
        assert 404 not in app_with_handlers.exception_handlers

    def test_not_found_handler_covers_404_and_405(self):
        app = FastAPI()
        handler = AsyncMock()

        setup_exception_handlers(app, not_found_handler=handler)

        assert app.exception_handlers[404] is handler
        assert app.exception_handlers[405] is handler

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
