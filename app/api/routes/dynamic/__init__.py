"""Route modules discovered at startup by ``app.api.loader.load_routes``.

Every module in this package that defines a module-level ``router``
(``fastapi.APIRouter``) is included into the application before the built-in
routes, so a route defined here takes precedence over a built-in one with the
same method and path.
"""
