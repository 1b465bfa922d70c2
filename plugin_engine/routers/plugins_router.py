"""
Router for external system plugins.

Endpoints (prefix ``/api/plugins``):
- GET    /                                            Plugins with config and catalog
- GET    /available                                   Plugins with at least one active instance
- GET    /instances                                   Every instance of every plugin
- GET    /types                                       Registered plugin types
- GET    /health                                      Health sweep over all instances
- GET    /diagnostics                                 Config files ignored at startup
- GET    /saved-queries                               Saved queries of the current user
- POST   /saved-queries/{id}/execute                  Replay a saved query
- GET    /{plugin}/instances                          Instances of one plugin
- GET    /{plugin}/queries                            Catalog of one plugin
- POST   /{plugin}/instances/{id}/test-connection     Health probe
- POST   /{plugin}/instances/{id}/validate-query      Advisory lint
- POST   /{plugin}/instances/{id}/query               Ad-hoc query, optional ``saveAs``
- POST   /{plugin}/instances/{id}/default-query/{qid} Catalog query
- POST   /instances/{plugin}                          Create instance
- PUT    /instances/{plugin}/{id}                     Update instance
- POST   /instances/{plugin}/{id}/toggle              Flip or set ``isActive``
- DELETE /instances/{plugin}/{id}                     Remove instance

The current user is identified by the ``X-User-Id`` header.
"""

from typing import Any, Optional

import httpx
import structlog
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import Field
from sqlmodel import Session

from plugin_engine.core.database import get_session
from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.errors import UpstreamError
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.integrations.schema import CamelModel
from plugin_engine.services.instance_service import InstanceService
from plugin_engine.services.query_service import QueryService
from plugin_engine.services.saved_query_service import (
    create_saved_query,
    get_saved_query,
    list_saved_queries,
)

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/plugins", tags=["plugins"])


class QueryRequest(CamelModel):
    query: str = ""
    method: str = "GET"
    opts: dict[str, Any] = Field(default_factory=dict)
    save_as: Optional[str] = None


class OptsRequest(CamelModel):
    opts: dict[str, Any] = Field(default_factory=dict)


class ToggleRequest(CamelModel):
    is_active: Optional[bool] = None


# ── Dependencies ──


def get_registry(request: Request) -> PluginRegistry:
    return request.app.state.registry


def get_query_service(request: Request, registry: PluginRegistry = Depends(get_registry)) -> QueryService:
    settings = request.app.state.settings
    return QueryService(registry, sweep_concurrency=settings.health_sweep_concurrency)


def get_instance_service(registry: PluginRegistry = Depends(get_registry)) -> InstanceService:
    return InstanceService(registry)


def get_current_user_id(x_user_id: Optional[int] = Header(default=None)) -> Optional[int]:
    return x_user_id


def require_user_id(user_id: Optional[int] = Depends(get_current_user_id)) -> int:
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


# ── Helpers ──


def _display_name(plugin: QueryPlugin) -> str:
    return plugin.system_name[:1].upper() + plugin.system_name[1:]


def _catalog(plugin: QueryPlugin) -> list[dict[str, Any]]:
    return [query.to_json_dict() for query in plugin.default_queries]


def _execution_failed(exc: Exception, fallback: str) -> JSONResponse:
    LOGGER.warning("plugin_query_failed", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) or fallback,
            "error": type(exc).__name__,
        },
    )


# ── Catalog ──


@router.get("/")
def list_plugins(registry: PluginRegistry = Depends(get_registry)):
    """Every registered plugin with its instances and query catalog."""
    plugins = [
        {
            "systemName": plugin.system_name,
            "displayName": _display_name(plugin),
            "instanceCount": len(plugin.config.instances),
            "config": plugin.config.to_json_dict(),
            "defaultQueries": _catalog(plugin),
        }
        for plugin in registry.list()
    ]
    return {"success": True, "plugins": plugins}


@router.get("/available")
def list_available_plugins(registry: PluginRegistry = Depends(get_registry)):
    available = []
    for plugin in registry.list():
        active = [instance for instance in plugin.config.instances if instance.is_active]
        if not active:
            continue
        available.append(
            {
                "systemName": plugin.system_name,
                "displayName": _display_name(plugin),
                "instanceCount": len(active),
                "defaultQueries": _catalog(plugin),
            }
        )
    return available


@router.get("/instances")
def list_all_instances(registry: PluginRegistry = Depends(get_registry)):
    return {
        "instances": [
            {"pluginName": entry.plugin_name, "instance": entry.instance.to_json_dict()}
            for entry in registry.all_instances()
        ]
    }


@router.get("/types")
def list_plugin_types(registry: PluginRegistry = Depends(get_registry)):
    return {
        "types": [
            {
                "systemName": plugin.system_name,
                "displayName": plugin.label or _display_name(plugin),
                "queryCount": len(plugin.default_queries),
            }
            for plugin in registry.list()
        ]
    }


@router.get("/health")
async def plugins_health(service: QueryService = Depends(get_query_service)):
    """Probe every instance; failures are reported per instance, never raised."""
    return await service.health_sweep()


@router.get("/diagnostics")
def plugin_diagnostics(registry: PluginRegistry = Depends(get_registry)):
    return {
        "configDir": str(registry.config_store.config_dir),
        "configLoadErrors": dict(registry.config_load_errors),
    }


# ── Saved queries ──


@router.get("/saved-queries")
def read_saved_queries(
    plugin_name: Optional[str] = Query(default=None, alias="pluginName"),
    instance_id: Optional[str] = Query(default=None, alias="instanceId"),
    user_id: int = Depends(require_user_id),
    session: Session = Depends(get_session),
):
    queries = list_saved_queries(session, user_id, plugin_name, instance_id)
    return {"queries": [saved.to_dict() for saved in queries]}


@router.post("/saved-queries/{query_id}/execute")
async def execute_saved(
    query_id: int,
    payload: Optional[OptsRequest] = Body(default=None),
    user_id: int = Depends(require_user_id),
    session: Session = Depends(get_session),
    service: QueryService = Depends(get_query_service),
):
    saved = get_saved_query(session, query_id, user_id)
    try:
        return await service.execute_saved_query(saved, payload.opts if payload else None)
    except (UpstreamError, httpx.HTTPError) as exc:
        return _execution_failed(exc, "Saved query execution failed")


# ── Per-plugin ──


@router.get("/{plugin_name}/instances")
def read_plugin_instances(plugin_name: str, registry: PluginRegistry = Depends(get_registry)):
    plugin = registry.require(plugin_name)
    return {"instances": [instance.to_json_dict() for instance in plugin.get_instances()]}


@router.get("/{plugin_name}/queries")
def read_plugin_queries(plugin_name: str, registry: PluginRegistry = Depends(get_registry)):
    plugin = registry.require(plugin_name)
    return {"queries": _catalog(plugin), "systemName": plugin.system_name}


@router.post("/{plugin_name}/instances/{instance_id}/test-connection")
async def test_connection(
    plugin_name: str,
    instance_id: str,
    service: QueryService = Depends(get_query_service),
):
    return await service.test_connection(plugin_name, instance_id)


@router.post("/{plugin_name}/instances/{instance_id}/validate-query")
def validate_query(
    plugin_name: str,
    instance_id: str,
    payload: QueryRequest,
    service: QueryService = Depends(get_query_service),
):
    return service.validate_query(plugin_name, instance_id, payload.query, payload.method)


@router.post("/{plugin_name}/instances/{instance_id}/query")
async def execute_query(
    plugin_name: str,
    instance_id: str,
    payload: QueryRequest,
    user_id: Optional[int] = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: QueryService = Depends(get_query_service),
):
    try:
        result = await service.execute_query(
            plugin_name, instance_id, payload.query, payload.method, payload.opts
        )
    except (UpstreamError, httpx.HTTPError) as exc:
        return _execution_failed(exc, "Query execution failed")

    saved = False
    if result.get("success") and payload.save_as and user_id is not None:
        try:
            create_saved_query(
                session,
                user_id=user_id,
                plugin_name=plugin_name,
                instance_id=instance_id,
                name=payload.save_as,
                query=payload.query,
                method=payload.method,
            )
            saved = True
        except Exception as exc:  # noqa: BLE001 - query already ran; report it unsaved
            session.rollback()
            LOGGER.warning("saved_query_not_stored", plugin=plugin_name, instance_id=instance_id, error=str(exc))
    return {**result, "saved": saved}


@router.post("/{plugin_name}/instances/{instance_id}/default-query/{query_id}")
async def execute_default_query(
    plugin_name: str,
    instance_id: str,
    query_id: str,
    payload: Optional[OptsRequest] = Body(default=None),
    service: QueryService = Depends(get_query_service),
):
    try:
        return await service.execute_default_query(
            plugin_name, instance_id, query_id, payload.opts if payload else None
        )
    except (UpstreamError, httpx.HTTPError) as exc:
        return _execution_failed(exc, "Query execution failed")


# ── Instance administration ──


@router.post("/instances/{plugin_name}", status_code=201)
def create_instance(
    plugin_name: str,
    payload: dict[str, Any] = Body(...),
    service: InstanceService = Depends(get_instance_service),
):
    instance = service.create_instance(plugin_name, payload)
    return {"success": True, "instance": instance.to_json_dict()}


@router.put("/instances/{plugin_name}/{instance_id}")
def update_instance(
    plugin_name: str,
    instance_id: str,
    changes: dict[str, Any] = Body(...),
    service: InstanceService = Depends(get_instance_service),
):
    instance = service.update_instance(plugin_name, instance_id, changes)
    return {"success": True, "instance": instance.to_json_dict()}


@router.post("/instances/{plugin_name}/{instance_id}/toggle")
def toggle_instance(
    plugin_name: str,
    instance_id: str,
    payload: Optional[ToggleRequest] = Body(default=None),
    service: InstanceService = Depends(get_instance_service),
):
    """Set ``isActive`` from the body, or flip it when the body omits it."""
    is_active = payload.is_active if payload else None
    instance = service.toggle_instance(plugin_name, instance_id, is_active)
    return {"success": True, "instance": instance.to_json_dict()}


@router.delete("/instances/{plugin_name}/{instance_id}")
def delete_instance(
    plugin_name: str,
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
):
    removed = service.delete_instance(plugin_name, instance_id)
    return {"success": True, "deleted": removed.id}
