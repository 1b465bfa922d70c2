"""Grafana connector (monitoring dashboards)."""

from __future__ import annotations

import os
from typing import Any

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.errors import InvalidQueryError
from plugin_engine.integrations.schema import PluginConfig, PluginInstance, QueryDefinition

HEALTH_PATH = "/api/health"


class GrafanaPlugin(QueryPlugin):
    system_name = "grafana"
    label = "Grafana"
    default_queries = [
        QueryDefinition(id="health", method="GET", path=HEALTH_PATH, description="Grafana health"),
        QueryDefinition(id="upTargets", method="POST", path="up", description="Scrape targets that are up"),
        QueryDefinition(id="cpuUsage", method="POST", path="rate(node_cpu_seconds_total[5m])", description="CPU usage rate"),
    ]

    @classmethod
    def default_config(cls) -> PluginConfig:
        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": "grafana-main",
                        "name": "Main Grafana",
                        "baseUrl": os.getenv("GRAFANA_URL", "https://grafana.example.com"),
                        "authType": "bearer",
                        "authConfig": {
                            "token": os.getenv("GRAFANA_TOKEN"),
                            "datasourceUid": os.getenv("GRAFANA_DATASOURCE_UID"),
                        },
                        "isActive": os.getenv("GRAFANA_ENABLED") == "true",
                        "tags": ["monitoring", "dashboards"],
                    }
                ],
                "defaultRefreshInterval": 30,
            }
        )

    def _datasource_uid(self, instance: PluginInstance, opts: dict[str, Any]) -> str | None:
        extra = instance.auth_config.model_extra or {}
        return opts.get("datasourceUid") or extra.get("datasourceUid")

    async def execute_query(
        self,
        query: str,
        method: str | None,
        instance_id: str,
        opts: dict[str, Any] | None = None,
    ) -> Any:
        instance = self.resolve_active_instance(instance_id)
        opts = opts or {}
        base = instance.base_url.rstrip("/")

        if query == HEALTH_PATH:
            response = await self.send(instance, "GET", f"{base}{HEALTH_PATH}")
        else:
            datasource_uid = self._datasource_uid(instance, opts)
            if not datasource_uid:
                raise InvalidQueryError("Missing datasourceUid for Grafana query")

            target: dict[str, Any] = {"refId": "A", "datasource": {"uid": datasource_uid}, "expr": query}
            # ``method`` selects the query type (instant/range); HTTP verbs are ignored.
            if method and method.upper() not in ("GET", "POST"):
                target["queryType"] = method
            body = {"queries": [target], "from": opts.get("from", "now-1h"), "to": opts.get("to", "now")}
            response = await self.send(
                instance,
                "POST",
                f"{base}/api/ds/query",
                headers={"Content-Type": "application/json"},
                json_body=body,
            )

        data = self.parse_body(response)
        self.raise_for_status(response, data)
        return data
