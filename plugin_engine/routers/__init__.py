"""API routers grouping application endpoints."""

from plugin_engine.routers import plugins_router  # noqa: F401 – re-export for `from plugin_engine.routers import X`
