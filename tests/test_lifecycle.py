"""Tests for startup sequencing, shutdown and process fault hooks."""

from __future__ import annotations

import asyncio
import logging
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from app.core.errors import StartupAppError
from app.core.lifecycle import (
    Lifecycle,
    LifecycleState,
    install_fault_handlers,
    log_uncaught_exception,
    log_unhandled_async_failure,
)
from app.core.subsystems import SubsystemRegistry


def _lifecycle(storage, *, route_loader=None, subsystems=None, builtin_routers=()) -> Lifecycle:
    return Lifecycle(
        storage=storage,
        route_loader=route_loader or MagicMock(return_value=[]),
        routes_package="gateway_routes",
        builtin_routers=builtin_routers,
        subsystems=subsystems or SubsystemRegistry(),
    )


def _transitions(caplog) -> list[str]:
    return [r.to_state for r in caplog.records if r.getMessage() == "lifecycle.state_changed"]


class TestStartup:
    @pytest.mark.asyncio
    async def test_states_follow_required_order(self, fake_storage, caplog) -> None:
        lifecycle = _lifecycle(fake_storage)

        with caplog.at_level(logging.INFO, logger="app.core.lifecycle"):
            await lifecycle.startup(FastAPI())

        assert lifecycle.state is LifecycleState.ACCEPTING_TRAFFIC
        assert _transitions(caplog) == [
            "connecting_storage",
            "loading_routes",
            "registering_builtins",
            "accepting_traffic",
        ]

    @pytest.mark.asyncio
    async def test_routes_load_after_storage_and_before_builtins(self, fake_storage) -> None:
        calls: list[str] = []
        fake_storage.connect.side_effect = lambda: calls.append("storage")
        loaded, builtin = APIRouter(), APIRouter()

        @loaded.get("/shared")
        def loaded_route():
            return {"source": "loaded"}

        @builtin.get("/shared")
        def builtin_shared_route():
            return {"source": "builtin"}

        @builtin.get("/builtin")
        def builtin_route():
            return {"source": "builtin"}

        def route_loader(target: FastAPI, package: str) -> None:
            calls.append(f"routes:{package}")
            target.include_router(loaded)

        app = FastAPI()
        lifecycle = _lifecycle(fake_storage, route_loader=route_loader, builtin_routers=(builtin,))

        await lifecycle.startup(app)

        assert calls == ["storage", "routes:gateway_routes"]
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://gateway") as http:
            assert (await http.get("/shared")).json() == {"source": "loaded"}
            assert (await http.get("/builtin")).status_code == 200

    @pytest.mark.asyncio
    async def test_storage_failure_is_fatal(self, fake_storage) -> None:
        fake_storage.connect.side_effect = ConnectionError("connection refused")
        route_loader = MagicMock()
        lifecycle = _lifecycle(fake_storage, route_loader=route_loader)

        with pytest.raises(StartupAppError) as exc_info:
            await lifecycle.startup(FastAPI())

        assert exc_info.value.step == "connecting_storage"
        assert lifecycle.state is LifecycleState.FAILED
        route_loader.assert_not_called()

    @pytest.mark.asyncio
    async def test_route_loading_failure_is_fatal(self, fake_storage) -> None:
        lifecycle = _lifecycle(fake_storage, route_loader=MagicMock(side_effect=ImportError("no module")))

        with pytest.raises(StartupAppError) as exc_info:
            await lifecycle.startup(FastAPI())

        assert exc_info.value.step == "loading_routes"
        assert lifecycle.state is LifecycleState.FAILED

    def test_server_never_serves_when_storage_fails(self, make_app, fake_storage) -> None:
        fake_storage.connect.side_effect = ConnectionError("connection refused")
        app = make_app()

        with pytest.raises(StartupAppError):
            with TestClient(app):
                pass

        assert app.state.lifecycle.state is LifecycleState.FAILED

    def test_restarting_the_same_app_registers_routes_once(self, make_app, fake_storage) -> None:
        route_loader = MagicMock(return_value=[])
        app = make_app(route_loader=route_loader)

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
        route_count = len(app.router.routes)

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

        route_loader.assert_called_once()
        assert len(app.router.routes) == route_count
        assert fake_storage.connect.await_count == 2
        assert app.state.lifecycle.state is LifecycleState.STOPPED


class TestOptionalSubsystems:
    @pytest.mark.asyncio
    async def test_failing_subsystem_leaves_gateway_serving(self, fake_storage) -> None:
        def importer(name: str):
            raise RuntimeError(f"{name} crashed on import")

        registry = SubsystemRegistry(importer=importer)
        registry.register("bot", "services.bot")
        lifecycle = _lifecycle(fake_storage, subsystems=registry)

        async with lifecycle.lifespan(FastAPI()):
            await lifecycle.activation_task
            assert lifecycle.state is LifecycleState.ACCEPTING_TRAFFIC
            assert registry.status() == {"bot": "unavailable"}

    def test_health_is_served_while_subsystem_fails(self, make_app) -> None:
        registry = SubsystemRegistry(importer=MagicMock(side_effect=ModuleNotFoundError("app.bot")))
        registry.register("bot", "app.bot")

        with TestClient(make_app(subsystems=registry)) as client:
            assert client.get("/health").status_code == 200

    @pytest.mark.asyncio
    async def test_activation_is_scheduled_once(self, fake_storage) -> None:
        lifecycle = _lifecycle(fake_storage)

        first = lifecycle.schedule_optional_activation()
        second = lifecycle.schedule_optional_activation()

        assert first is second
        await first


class TestShutdown:
    @pytest.mark.asyncio
    async def test_releases_storage_and_rate_limit_store(self, fake_storage) -> None:
        app = FastAPI()
        app.state.rate_limiter = SimpleNamespace(store=SimpleNamespace(close=AsyncMock()))
        lifecycle = _lifecycle(fake_storage)

        async with lifecycle.lifespan(app):
            pass

        fake_storage.close.assert_awaited_once()
        app.state.rate_limiter.store.close.assert_awaited_once()
        assert lifecycle.state is LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_pending_activation_is_cancelled(self, fake_storage) -> None:
        module = SimpleNamespace(start=lambda: asyncio.sleep(3600))
        registry = SubsystemRegistry(importer=lambda _name: module)
        registry.register("matchmaker", "services.matchmaker", "start")
        lifecycle = _lifecycle(fake_storage, subsystems=registry)

        async with lifecycle.lifespan(FastAPI()):
            await asyncio.sleep(0)

        with pytest.raises(asyncio.CancelledError):
            await lifecycle.activation_task


class TestFaultHooks:
    def test_async_failure_is_logged_not_raised(self, caplog) -> None:
        context = {"message": "Task exception was never retrieved", "exception": ValueError("boom")}

        with caplog.at_level(logging.ERROR, logger="app.core.lifecycle"):
            log_unhandled_async_failure(MagicMock(), context)

        record = caplog.records[-1]
        assert record.getMessage() == "process.unhandled_async_failure"
        assert record.exc_info[0] is ValueError
        assert record.loop_message == "Task exception was never retrieved"

    def test_async_failure_without_exception(self, caplog) -> None:
        with caplog.at_level(logging.ERROR, logger="app.core.lifecycle"):
            log_unhandled_async_failure(MagicMock(), {"message": "Unclosed client session"})

        assert caplog.records[-1].exc_info is None

    def test_uncaught_exception_is_logged_critical(self, caplog) -> None:
        exc = RuntimeError("fatal")

        with caplog.at_level(logging.CRITICAL, logger="app.core.lifecycle"):
            log_uncaught_exception(RuntimeError, exc, None)

        assert caplog.records[-1].getMessage() == "process.uncaught_exception"

    def test_keyboard_interrupt_uses_default_hook(self) -> None:
        with patch.object(sys, "__excepthook__") as default_hook:
            log_uncaught_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

        default_hook.assert_called_once()

    def test_install_replaces_excepthook(self, monkeypatch) -> None:
        monkeypatch.setattr(sys, "excepthook", sys.__excepthook__)

        install_fault_handlers()

        assert sys.excepthook is log_uncaught_exception
