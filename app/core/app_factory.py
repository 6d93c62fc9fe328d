"""Application factory for the gateway.

Centralizes app construction (metadata, middleware chain, error handlers,
lifecycle) so tests can build an isolated app with their own collaborators.
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.api.loader import load_routes
from app.api.not_found import not_found_handler
from app.api.routes import BUILTIN_ROUTERS
from app.core.config import AppSettings, settings
from app.core.exception_handlers import error_boundary_middleware, setup_exception_handlers
from app.core.lifecycle import Lifecycle, RouteLoader
from app.core.middleware import (
    pretty_json_middleware,
    request_logging_middleware,
    security_headers_middleware,
    timeout_middleware,
)
from app.core.rate_limit import build_rate_limiter, rate_limit_middleware
from app.core.subsystems import SubsystemRegistry
from app.services.catalog import CatalogGenerator, generate_empty_catalog
from app.services.storage import SqlAlchemyStorageConnector, StorageConnector

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization", "X-Requested-With"]


def _install_middleware_chain(app: FastAPI, app_settings: AppSettings) -> None:
    """Install the request pipeline.

    Starlette runs the most recently added middleware first, so the stages are
    added innermost first. Resulting order per request:

        CORS -> logging -> security headers -> pretty JSON
             -> error boundary -> timeout -> rate limit -> router
    """
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(timeout_middleware)
    app.middleware("http")(error_boundary_middleware)
    app.middleware("http")(pretty_json_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_logging_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origin_list,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        allow_credentials=True,
    )


def create_app(
    *,
    storage: StorageConnector | None = None,
    catalog_generator: CatalogGenerator | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    subsystems: SubsystemRegistry | None = None,
    route_loader: RouteLoader = load_routes,
    app_settings: AppSettings | None = None,
) -> FastAPI:
    """Create and configure the gateway application.

    Collaborators default to the configured implementations; tests pass their
    own. Routes are registered by the lifecycle at startup, not here.

    Returns:
        Configured FastAPI app with middleware chain, handlers and lifespan.
    """
    cfg = app_settings or settings.app

    lifecycle = Lifecycle(
        storage=storage or SqlAlchemyStorageConnector(cfg.database_url),
        route_loader=route_loader,
        routes_package=cfg.routes_package,
        builtin_routers=BUILTIN_ROUTERS,
        subsystems=subsystems or SubsystemRegistry.from_config(cfg.optional_subsystems),
    )

    app = FastAPI(
        title="Universal Backend",
        description="Edge gateway for the game backend services.",
        version="2.0.0",
        lifespan=lifecycle.lifespan,
    )
    app.state.settings = cfg
    app.state.lifecycle = lifecycle
    app.state.catalog_generator = catalog_generator or generate_empty_catalog
    app.state.rate_limiter = rate_limiter or build_rate_limiter(cfg)

    setup_exception_handlers(app, not_found_handler=not_found_handler)
    _install_middleware_chain(app, cfg)

    return app
