from __future__ import annotations

from app.api.routes.catalog import router as catalog_router
from app.api.routes.health import router as health_router
from app.api.routes.player import router as player_router

# Built-in routers, registered after the dynamically loaded ones
BUILTIN_ROUTERS = (catalog_router, player_router, health_router)

__all__ = ["BUILTIN_ROUTERS", "catalog_router", "health_router", "player_router"]
