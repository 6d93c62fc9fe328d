"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable so no .env file is loaded, and
provides an application factory wired with in-process fakes.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_OPTIONAL_SUBSYSTEMS", "")
os.environ.setdefault("LOG_LEVEL", "INFO")

from typing import Any, Callable, Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.core.app_factory import create_app
from app.core.subsystems import SubsystemRegistry


@pytest.fixture
def fake_storage() -> AsyncMock:
    """Storage connector that connects instantly."""
    storage = AsyncMock()
    storage.connect.return_value = None
    storage.close.return_value = None
    return storage


@pytest.fixture
def make_app(fake_storage: AsyncMock) -> Callable[..., FastAPI]:
    """Build an isolated gateway app; keyword arguments override collaborators."""

    def _make_app(**overrides: Any) -> FastAPI:
        options: dict[str, Any] = {
            "storage": fake_storage,
            "subsystems": SubsystemRegistry(),
            "rate_limiter": FixedWindowRateLimiter(limit=100, window_seconds=900),
        }
        options.update(overrides)
        return create_app(**options)

    return _make_app


@pytest.fixture
def client(make_app: Callable[..., FastAPI]) -> Iterator[TestClient]:
    """Test client with the lifespan (startup/shutdown) running."""
    with TestClient(make_app()) as test_client:
        yield test_client


@pytest.fixture
def bearer_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-token"}
