"""Discovery of additional route modules at startup."""

from __future__ import annotations

import importlib
import logging
import pkgutil

from fastapi import APIRouter, FastAPI

logger = logging.getLogger(__name__)


def load_routes(app: FastAPI, package_name: str) -> list[str]:
    """Include the ``router`` of every module in ``package_name`` into ``app``.

    Modules are imported in name order. A module without a ``router``
    attribute is skipped with a warning.

    Args:
        app: Application receiving the routes.
        package_name: Dotted name of the package to scan.

    Returns:
        Names of the modules whose routers were included.

    Raises:
        ImportError: If the package or one of its modules cannot be imported.
        TypeError: If a module's ``router`` is not an ``APIRouter``.
    """
    package = importlib.import_module(package_name)
    search_path = getattr(package, "__path__", None)
    if search_path is None:
        raise ImportError(f"{package_name} is a module, not a package")

    loaded: list[str] = []
    for module_info in sorted(pkgutil.iter_modules(search_path), key=lambda m: m.name):
        if module_info.name.startswith("_"):
            continue
        module_name = f"{package_name}.{module_info.name}"
        module = importlib.import_module(module_name)

        router = getattr(module, "router", None)
        if router is None:
            logger.warning("routes.module_without_router", extra={"route_module": module_name})
            continue
        if not isinstance(router, APIRouter):
            raise TypeError(f"{module_name}.router is not an APIRouter")

        app.include_router(router)
        loaded.append(module_name)
        logger.info(
            "routes.module_loaded",
            extra={"route_module": module_name, "route_count": len(router.routes)},
        )

    return loaded
