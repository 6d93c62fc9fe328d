"""Process entry point: logging, fault hooks, signals and the uvicorn server."""

from __future__ import annotations

import logging
import math
import os
import signal

import uvicorn

from app.core.app_factory import create_app
from app.core.config import settings
from app.core.lifecycle import install_fault_handlers
from app.core.logging import configure_logging

configure_logging(settings.log)

logger = logging.getLogger(__name__)

app = create_app()


class GatewayServer(uvicorn.Server):
    """uvicorn server whose SIGINT/SIGTERM handling follows the drain setting.

    With ``APP_SHUTDOWN_DRAIN_SECONDS=0`` the process exits with status 0 as
    soon as the signal arrives; in-flight requests are dropped. Otherwise
    uvicorn's graceful shutdown runs, bounded by that many seconds.
    """

    def __init__(self, config: uvicorn.Config, *, drain_seconds: float = 0) -> None:
        super().__init__(config)
        self.drain_seconds = drain_seconds

    def handle_exit(self, sig: int, frame) -> None:
        if self.drain_seconds <= 0 and sig in (signal.SIGINT, signal.SIGTERM):
            logger.info("process.signal_exit", extra={"signal": signal.Signals(sig).name})
            logging.shutdown()
            os._exit(0)
        logger.info(
            "process.signal_drain",
            extra={"signal": signal.Signals(sig).name, "drain_seconds": self.drain_seconds},
        )
        super().handle_exit(sig, frame)


def build_server(drain_seconds: float | None = None) -> GatewayServer:
    drain = settings.app.shutdown_drain_seconds if drain_seconds is None else drain_seconds
    config = uvicorn.Config(
        app,
        host=settings.app.host,
        port=settings.app.port,
        lifespan="on",
        log_config=None,
        access_log=False,
        timeout_graceful_shutdown=math.ceil(drain) if drain > 0 else None,
    )
    return GatewayServer(config, drain_seconds=drain)


def run() -> None:
    install_fault_handlers()
    server = build_server()
    logger.info(
        "process.starting",
        extra={"port": settings.app.port, "app_env": settings.app_env},
    )
    server.run()
    if not server.started:
        # Lifespan startup failed (storage or route loading); uvicorn returned without serving
        raise SystemExit(1)


if __name__ == "__main__":
    run()
