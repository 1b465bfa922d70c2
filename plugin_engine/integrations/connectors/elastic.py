"""Elasticsearch connector (search)."""

from __future__ import annotations

import json
import os
from typing import Any

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.schema import PluginConfig, QueryDefinition


def build_search_body(query: str) -> dict[str, Any]:
    """Use ``query`` as the search body when it is JSON, else wrap it in ``query_string``."""
    try:
        body = json.loads(query)
    except (TypeError, json.JSONDecodeError):
        body = None
    if isinstance(body, dict):
        return body
    return {"query": {"query_string": {"query": query}}}


class ElasticPlugin(QueryPlugin):
    system_name = "elastic"
    label = "Elastic"
    default_queries = [
        QueryDefinition(id="clusterHealth", method="GET", path="/_cluster/health", description="Cluster health"),
        QueryDefinition(id="recentErrors", method="POST", path="level:error", description="Documents with level:error"),
        QueryDefinition(id="matchAll", method="POST", path='{"query": {"match_all": {}}, "size": 10}', description="First 10 documents"),
    ]

    @classmethod
    def default_config(cls) -> PluginConfig:
        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": "elastic-main",
                        "name": "Main Elasticsearch",
                        "baseUrl": os.getenv("ELASTIC_URL", "https://elastic.example.com:9200"),
                        "authType": "basic",
                        "authConfig": {
                            "username": os.getenv("ELASTIC_USERNAME"),
                            "password": os.getenv("ELASTIC_PASSWORD"),
                        },
                        "isActive": os.getenv("ELASTIC_ENABLED") == "true",
                        "tags": ["search", "logs"],
                    }
                ],
                "defaultRefreshInterval": 60,
            }
        )

    async def execute_query(
        self,
        query: str,
        method: str | None,
        instance_id: str,
        opts: dict[str, Any] | None = None,
    ) -> Any:
        instance = self.resolve_active_instance(instance_id)
        base = instance.base_url.rstrip("/")

        # Cluster APIs (``/_cluster/health``) are plain GETs; anything else is a search.
        if query.startswith("/_"):
            response = await self.send(instance, "GET", f"{base}{query}")
        else:
            index = (opts or {}).get("index")
            path = f"/{index}/_search" if index else "/_search"
            response = await self.send(
                instance,
                "POST",
                f"{base}{path}",
                headers={"Content-Type": "application/json"},
                json_body=build_search_body(query),
            )

        data = self.parse_body(response)
        self.raise_for_status(response, data)
        return data
