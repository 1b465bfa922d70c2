"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plugin_engine.core.config import EngineSettings
from plugin_engine.core.database import create_db_and_tables
from plugin_engine.core.log_config import configure_logging
from plugin_engine.integrations import create_default_registry
from plugin_engine.integrations.errors import (
    ConfigPersistenceError,
    InvalidInstanceError,
    InvalidQueryError,
    NotFoundError,
    PluginError,
)
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.routers import plugins_router

load_dotenv()
LOGGER = logging.getLogger(__name__)


def _error_body(exc: PluginError) -> Dict[str, Any]:
    return {"success": False, "message": str(exc), "error": exc.code}


def register_exception_handlers(application: FastAPI) -> None:
    """Map the plugin error hierarchy onto HTTP status codes."""

    @application.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(exc))

    @application.exception_handler(InvalidQueryError)
    async def handle_invalid_query(request: Request, exc: InvalidQueryError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(exc))

    @application.exception_handler(InvalidInstanceError)
    async def handle_invalid_instance(request: Request, exc: InvalidInstanceError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(exc))

    @application.exception_handler(ConfigPersistenceError)
    async def handle_persistence(request: Request, exc: ConfigPersistenceError) -> JSONResponse:
        LOGGER.error("Plugin configuration could not be saved: %s", exc)
        return JSONResponse(status_code=500, content=_error_body(exc))

    @application.exception_handler(PluginError)
    async def handle_plugin_error(request: Request, exc: PluginError) -> JSONResponse:
        LOGGER.error("Unhandled plugin error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content=_error_body(exc))


def create_application(
    registry: Optional[PluginRegistry] = None,
    settings: Optional[EngineSettings] = None,
) -> FastAPI:
    """Build and configure the FastAPI application instance.

    ``registry`` defaults to one built from the environment with every
    built-in connector registered.
    """
    configure_logging()
    settings = settings or EngineSettings.from_env()

    application = FastAPI(
        title="Plugin Integration Engine",
        description="Queries, health checks and instance administration for external system connectors.",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.settings = settings
    application.state.registry = registry if registry is not None else create_default_registry(settings)

    register_exception_handlers(application)
    application.include_router(plugins_router.router)

    @application.on_event("startup")
    async def on_startup() -> None:  # noqa: D401 - simple startup hook
        create_db_and_tables()
        registered = application.state.registry
        LOGGER.info(
            "Plugin engine started with %d plugins and %d instances",
            len(registered),
            len(registered.all_instances()),
        )
        for name, error in registered.config_load_errors.items():
            LOGGER.warning("Config for plugin %s ignored: %s", name, error)

    @application.get("/health", tags=["health"])
    async def healthcheck() -> Dict[str, Any]:
        """Return a simple health indicator for readiness probes."""
        return {"status": "ok"}

    return application


app: FastAPI = create_application()
