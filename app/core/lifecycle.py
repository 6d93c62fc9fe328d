"""Startup and shutdown orchestration.

Startup is linear and has no retries:

    STARTING -> CONNECTING_STORAGE -> LOADING_ROUTES -> REGISTERING_BUILTINS
             -> ACCEPTING_TRAFFIC

Storage and route loading are required: a failure moves to FAILED and is
raised out of the FastAPI lifespan, so uvicorn never starts listening.
Optional subsystems are activated once, in a background task scheduled when
startup completes; their failures never reach the gateway.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable

from fastapi import APIRouter, FastAPI

from app.core.errors import StartupAppError
from app.core.subsystems import SubsystemRegistry
from app.services.storage import StorageConnector

logger = logging.getLogger(__name__)

RouteLoader = Callable[[FastAPI, str], Any]


class LifecycleState(str, enum.Enum):
    STARTING = "starting"
    CONNECTING_STORAGE = "connecting_storage"
    LOADING_ROUTES = "loading_routes"
    REGISTERING_BUILTINS = "registering_builtins"
    ACCEPTING_TRAFFIC = "accepting_traffic"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


def log_unhandled_async_failure(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Event loop exception handler: log the failure and keep the process alive."""

    exc = context.get("exception")
    logger.error(
        "process.unhandled_async_failure",
        exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
        extra={"loop_message": context.get("message")},
    )


def log_uncaught_exception(exc_type, exc, tb) -> None:
    """``sys.excepthook`` replacement; the interpreter then exits with status 1."""

    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("process.uncaught_exception", exc_info=(exc_type, exc, tb))


def install_fault_handlers() -> None:
    sys.excepthook = log_uncaught_exception


class Lifecycle:
    """Sequence required dependencies, then optional subsystems."""

    def __init__(
        self,
        *,
        storage: StorageConnector,
        route_loader: RouteLoader,
        routes_package: str,
        builtin_routers: Iterable[APIRouter],
        subsystems: SubsystemRegistry,
    ) -> None:
        self.storage = storage
        self.route_loader = route_loader
        self.routes_package = routes_package
        self.builtin_routers = tuple(builtin_routers)
        self.subsystems = subsystems
        self.activation_task: asyncio.Task | None = None
        self._state = LifecycleState.STARTING
        self._routes_registered = False

    @property
    def state(self) -> LifecycleState:
        return self._state

    def _transition(self, state: LifecycleState) -> None:
        logger.info(
            "lifecycle.state_changed",
            extra={"from_state": self._state.value, "to_state": state.value},
        )
        self._state = state

    async def _required_step(self, state: LifecycleState, step: Callable[[], Any]) -> None:
        self._transition(state)
        try:
            result = step()
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            self._transition(LifecycleState.FAILED)
            logger.critical(
                "lifecycle.startup_failed",
                exc_info=True,
                extra={"step": state.value, "error_type": type(exc).__name__},
            )
            raise StartupAppError(state.value, str(exc)) from exc

    def _register_builtins(self, app: FastAPI) -> None:
        for router in self.builtin_routers:
            app.include_router(router)

    async def startup(self, app: FastAPI) -> None:
        """Run the required startup steps in order.

        Raises:
            StartupAppError: If storage or route loading fails.
        """
        await self._required_step(LifecycleState.CONNECTING_STORAGE, self.storage.connect)
        # routes survive a restart of the same app object; register them once
        if not self._routes_registered:
            await self._required_step(
                LifecycleState.LOADING_ROUTES,
                lambda: self.route_loader(app, self.routes_package),
            )
            await self._required_step(
                LifecycleState.REGISTERING_BUILTINS,
                lambda: self._register_builtins(app),
            )
            self._routes_registered = True
        self._transition(LifecycleState.ACCEPTING_TRAFFIC)

    def schedule_optional_activation(self) -> asyncio.Task:
        """Start the one-time optional subsystem activation in the background."""

        if self.activation_task is None:
            self.activation_task = asyncio.get_running_loop().create_task(
                self.subsystems.activate_all(), name="optional-subsystems"
            )
        return self.activation_task

    async def shutdown(self, app: FastAPI) -> None:
        self._transition(LifecycleState.STOPPING)
        if self.activation_task is not None and not self.activation_task.done():
            self.activation_task.cancel()

        await self.storage.close()

        store = getattr(getattr(app.state, "rate_limiter", None), "store", None)
        if store is not None:
            await store.close()

        self._transition(LifecycleState.STOPPED)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        """FastAPI lifespan: required startup, then traffic, then shutdown."""

        asyncio.get_running_loop().set_exception_handler(log_unhandled_async_failure)
        await self.startup(app)
        self.schedule_optional_activation()
        try:
            yield
        finally:
            await self.shutdown(app)
