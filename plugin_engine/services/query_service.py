"""
Query execution facade.

Orchestrates health checks, advisory query validation, ad-hoc / catalog /
saved query execution and the bulk health sweep. Routers call into this
layer; connectors are reached only through the registry.

Inactive instances are reported as a structured ``status: "inactive"``
payload, not raised. Test-connection and the health sweep never raise for
upstream failures; execution entry points let them propagate.
"""

from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.errors import (
    InstanceInactiveError,
    InstanceNotFoundError,
    InvalidQueryError,
    QueryNotFoundError,
)
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.integrations.schema import PluginInstance, QueryDefinition, RegisteredInstance
from plugin_engine.models.models import SavedQuery

LOGGER = structlog.get_logger(__name__)

PREVIEW_LIMIT = 200

# (needles, message template) checked in order against the lower-cased error text.
_ERROR_PATTERNS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("econnrefused", "connection refused"), "Cannot connect to {base_url} - service may be down"),
    (
        (
            "enotfound",
            "name or service not known",
            "nodename nor servname",
            "getaddrinfo failed",
            "name resolution",
        ),
        "Cannot resolve hostname: {base_url}",
    ),
    (("401",), "Authentication failed - check credentials"),
    (("403",), "Access denied - insufficient permissions"),
    (("timeout", "timed out"), "Connection timeout - service may be slow or unreachable"),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


def classify_error(error: BaseException, base_url: str) -> str:
    """Turn a raw transport/upstream error into a user-facing message.

    Heuristic substring match on the error text; unknown errors keep their
    original message.
    """
    raw = str(error) or type(error).__name__
    haystack = f"{type(error).__name__} {raw}".lower()
    for needles, template in _ERROR_PATTERNS:
        if any(needle in haystack for needle in needles):
            return template.format(base_url=base_url)
    return raw


def data_preview(data: Any) -> str:
    if isinstance(data, (dict, list)):
        text = json.dumps(data, default=str)
        if len(text) > PREVIEW_LIMIT:
            return text[:PREVIEW_LIMIT] + "..."
        return text
    return str(data)[:PREVIEW_LIMIT]


def record_count(data: Any) -> Optional[int]:
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict) and isinstance(data.get("total"), int):
        return data["total"]
    return None


def is_placeholder(data: Any) -> bool:
    """True for results of connectors that never reach the upstream system."""
    return isinstance(data, dict) and data.get("implemented") is False


def _inactive_payload(instance: PluginInstance) -> dict[str, Any]:
    return {
        "success": False,
        "status": "inactive",
        "message": f"Instance '{instance.name}' is currently disabled",
        "instance": {"id": instance.id, "name": instance.name, "isActive": False},
    }


class QueryService:
    """Facade over the plugin registry used by the HTTP routes."""

    def __init__(self, registry: PluginRegistry, *, sweep_concurrency: int = 1):
        self.registry = registry
        self.sweep_concurrency = max(1, sweep_concurrency)

    # ── Resolution ──

    def resolve(self, plugin_name: str, instance_id: str) -> tuple[QueryPlugin, PluginInstance]:
        plugin = self.registry.require(plugin_name)
        instance = plugin.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFoundError(plugin_name, instance_id)
        return plugin, instance

    # ── Health ──

    async def test_connection(self, plugin_name: str, instance_id: str) -> dict[str, Any]:
        plugin, instance = self.resolve(plugin_name, instance_id)
        plugin_info = {"name": plugin.system_name, "hasQueries": bool(plugin.default_queries)}

        if not instance.is_active:
            LOGGER.info("test_connection_skipped_inactive", plugin=plugin.system_name, instance_id=instance_id)
            return {**_inactive_payload(instance), "plugin": plugin_info, "timestamp": _now_iso()}

        if not plugin.default_queries:
            result: dict[str, Any] = {
                "success": True,
                "status": "configured",
                "message": "Instance is configured but no test queries available",
                "responseTime": 0,
            }
        else:
            probe = plugin.default_queries[0]
            started = time.perf_counter()
            try:
                data = await plugin.execute_query(probe.path, probe.method, instance.id)
            except InstanceInactiveError:
                return {**_inactive_payload(instance), "plugin": plugin_info, "timestamp": _now_iso()}
            except Exception as exc:  # noqa: BLE001 - classified into the response
                raw_message = str(exc) or type(exc).__name__
                message = classify_error(exc, instance.base_url)
                LOGGER.warning(
                    "test_connection_failed",
                    plugin=plugin.system_name,
                    instance_id=instance_id,
                    error=raw_message,
                )
                result = {
                    "success": False,
                    "status": "error",
                    "message": message,
                    "error": type(exc).__name__,
                }
                if message != raw_message:
                    result["details"] = raw_message
            else:
                response_time = _elapsed_ms(started)
                if is_placeholder(data):
                    result = {
                        "success": True,
                        "status": "configured",
                        "message": "Instance is configured but the connector does not reach the upstream system yet",
                        "responseTime": response_time,
                    }
                else:
                    LOGGER.info(
                        "test_connection_ok",
                        plugin=plugin.system_name,
                        instance_id=instance_id,
                        response_time_ms=response_time,
                    )
                    result = {
                        "success": True,
                        "status": "healthy",
                        "message": f"Connection successful - {probe.description}",
                        "responseTime": response_time,
                        "testQuery": probe.description,
                        "dataPreview": data_preview(data),
                        "recordCount": record_count(data),
                    }

        return {**result, "instance": instance.summary(), "plugin": plugin_info, "timestamp": _now_iso()}

    async def _probe(self, entry: RegisteredInstance) -> dict[str, Any]:
        plugin_name, instance = entry
        base = {"pluginName": plugin_name, "instanceId": instance.id, "instanceName": instance.name}

        if not instance.is_active:
            return {**base, "status": "inactive", "message": "Instance is disabled"}

        plugin = self.registry.get(plugin_name)
        if plugin is None or not plugin.default_queries:
            return {**base, "status": "unknown", "message": "No health check queries available"}

        probe = plugin.default_queries[0]
        started = time.perf_counter()
        try:
            data = await plugin.execute_query(probe.path, probe.method, instance.id)
        except InstanceInactiveError:
            return {**base, "status": "inactive", "message": "Instance is disabled"}
        except Exception as exc:  # noqa: BLE001 - recorded as an error result
            return {
                **base,
                "status": "error",
                "message": str(exc) or type(exc).__name__,
                "baseUrl": instance.base_url,
            }

        if is_placeholder(data):
            return {**base, "status": "unknown", "message": "Connector not implemented", "baseUrl": instance.base_url}

        return {
            **base,
            "status": "healthy",
            "message": "Connection successful",
            "responseTime": _elapsed_ms(started),
            "baseUrl": instance.base_url,
        }

    async def health_sweep(self) -> dict[str, Any]:
        """Probe every registered instance.

        Sequential by default. With ``sweep_concurrency > 1`` probes fan out
        under a semaphore; results stay in enumeration order either way.
        """
        entries = self.registry.all_instances()

        if self.sweep_concurrency == 1:
            results = [await self._probe(entry) for entry in entries]
        else:
            semaphore = asyncio.Semaphore(self.sweep_concurrency)

            async def bounded(entry: RegisteredInstance) -> dict[str, Any]:
                async with semaphore:
                    return await self._probe(entry)

            results = list(await asyncio.gather(*(bounded(entry) for entry in entries)))

        summary = {
            "total": len(results),
            "healthy": sum(1 for r in results if r["status"] == "healthy"),
            "errors": sum(1 for r in results if r["status"] == "error"),
            "inactive": sum(1 for r in results if r["status"] == "inactive"),
            "unknown": sum(1 for r in results if r["status"] == "unknown"),
        }
        LOGGER.info("health_sweep_completed", **summary)
        return {"results": results, "summary": summary, "timestamp": _now_iso()}

    # ── Validation ──

    def validate_query(self, plugin_name: str, instance_id: str, query: str, method: str = "GET") -> dict[str, Any]:
        plugin, _ = self.resolve(plugin_name, instance_id)
        if not query:
            raise InvalidQueryError("Query is required")
        validation = plugin.validate_query(query, method)
        return {
            "query": query,
            "method": method,
            "validation": validation.to_dict(),
            "pluginName": plugin_name,
            "instanceId": instance_id,
        }

    # ── Execution ──

    async def _run(
        self,
        plugin: QueryPlugin,
        instance: PluginInstance,
        query: str,
        method: str,
        opts: Optional[dict[str, Any]],
    ) -> tuple[Any, int] | dict[str, Any]:
        started = time.perf_counter()
        try:
            data = await plugin.execute_query(query, method, instance.id, opts or {})
        except InstanceInactiveError:
            LOGGER.info("query_skipped_inactive", plugin=plugin.system_name, instance_id=instance.id)
            return {**_inactive_payload(instance), "timestamp": _now_iso()}
        response_time = _elapsed_ms(started)
        LOGGER.info(
            "query_executed",
            plugin=plugin.system_name,
            instance_id=instance.id,
            method=method,
            response_time_ms=response_time,
        )
        return data, response_time

    @staticmethod
    def _metadata(data: Any, response_time: int, **extra: Any) -> dict[str, Any]:
        return {
            **extra,
            "responseTime": response_time,
            "dataType": type(data).__name__,
            "recordCount": record_count(data),
        }

    async def execute_query(
        self,
        plugin_name: str,
        instance_id: str,
        query: str,
        method: str = "GET",
        opts: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Run an ad-hoc query. Upstream errors propagate."""
        plugin, instance = self.resolve(plugin_name, instance_id)
        outcome = await self._run(plugin, instance, query, method, opts)
        if isinstance(outcome, dict):
            return outcome

        data, response_time = outcome
        return {
            "success": True,
            "data": data,
            "metadata": self._metadata(
                data,
                response_time,
                query=query,
                method=method,
                instance={"id": instance.id, "name": instance.name},
            ),
            "timestamp": _now_iso(),
        }

    async def execute_default_query(
        self,
        plugin_name: str,
        instance_id: str,
        query_id: str,
        opts: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        plugin, instance = self.resolve(plugin_name, instance_id)
        query_def: Optional[QueryDefinition] = plugin.get_default_query(query_id)
        if query_def is None:
            raise QueryNotFoundError(plugin_name, query_id)

        outcome = await self._run(plugin, instance, query_def.path, query_def.method, opts)
        if isinstance(outcome, dict):
            return outcome

        data, response_time = outcome
        return {
            "success": True,
            "data": data,
            "query": query_def.to_json_dict(),
            "metadata": self._metadata(data, response_time),
            "timestamp": _now_iso(),
        }

    async def execute_saved_query(self, saved: SavedQuery, opts: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        plugin, instance = self.resolve(saved.plugin_name, saved.instance_id)
        outcome = await self._run(plugin, instance, saved.query, saved.method, opts)
        if isinstance(outcome, dict):
            return outcome

        data, response_time = outcome
        return {
            "success": True,
            "data": data,
            "savedQuery": {
                "id": saved.id,
                "name": saved.name,
                "description": saved.description,
                "query": saved.query,
                "method": saved.method,
            },
            "metadata": self._metadata(data, response_time),
            "timestamp": _now_iso(),
        }
