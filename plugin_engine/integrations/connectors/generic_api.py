"""
Generic REST API connector.

The query is a JSON object describing one request::

    {"method": "POST", "endpoint": "/tenant-visibility/basic-data",
     "queryParams": {"page": 1}, "headers": {...}, "body": {...}, "timeout": 15000}

The response is wrapped as ``{status, statusText, headers, data, timestamp}``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.errors import InvalidQueryError
from plugin_engine.integrations.schema import PluginConfig, QueryDefinition

BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass(slots=True)
class ApiRequestSpec:
    """One request described by a generic API query."""

    endpoint: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    query_params: dict[str, Any] = field(default_factory=dict)
    timeout: Optional[int] = None

    @classmethod
    def parse(cls, query: str | Mapping[str, Any]) -> "ApiRequestSpec":
        if isinstance(query, str):
            try:
                payload = json.loads(query)
            except json.JSONDecodeError as exc:
                raise InvalidQueryError(
                    "Query must be a valid JSON object with method, endpoint, and optional headers/body"
                ) from exc
        else:
            payload = dict(query)

        if not isinstance(payload, dict) or not payload.get("endpoint"):
            raise InvalidQueryError("Query must be a JSON object with an 'endpoint'")

        return cls(
            endpoint=str(payload["endpoint"]),
            method=str(payload.get("method", "GET")).upper(),
            headers={k: str(v) for k, v in (payload.get("headers") or {}).items()},
            body=payload.get("body"),
            query_params=payload.get("queryParams") or {},
            timeout=payload.get("timeout"),
        )


def build_api_url(base_url: str, endpoint: str, query_params: Optional[Mapping[str, Any]] = None) -> str:
    base = base_url.rstrip("/")
    path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    url = f"{base}{path}"

    params = {k: str(v) for k, v in (query_params or {}).items() if v is not None}
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


class GenericApiPlugin(QueryPlugin):
    system_name = "generic-api"
    label = "Generic API"
    default_queries = [
        QueryDefinition(
            id="health-check",
            method="GET",
            path=json.dumps({"method": "GET", "endpoint": "/health"}),
            description="API Health Check",
        ),
        QueryDefinition(
            id="mdr-tenant-basic-data",
            method="POST",
            path=json.dumps(
                {
                    "method": "POST",
                    "endpoint": "/tenant-visibility/basic-data",
                    "body": {
                        "paginationAndSorting": {
                            "currentPage": 1,
                            "pageSize": 10,
                            "sortProperty": "id",
                            "sortDirection": "ASC",
                        },
                        "command": {"tenantId": []},
                    },
                }
            ),
            description="MDR Tenant Basic Data",
        ),
    ]

    @classmethod
    def default_config(cls) -> PluginConfig:
        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": "mdr-main",
                        "name": "MDR Portal API",
                        "baseUrl": os.getenv("MDR_API_URL", "https://mdr.example.com/api"),
                        "authType": "api_key",
                        "authConfig": {"key": os.getenv("MDR_API_KEY"), "header": "mdr-api-key"},
                        "isActive": os.getenv("MDR_API_ENABLED") == "true",
                        "tags": ["mdr", "security", "tenant-visibility"],
                        "sslConfig": {"rejectUnauthorized": False, "allowSelfSigned": True, "timeout": 30000},
                    }
                ],
                "defaultRefreshInterval": 300,
                "rateLimiting": {"requestsPerMinute": 60, "burstSize": 10},
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
        spec = ApiRequestSpec.parse(query)

        url = build_api_url(instance.base_url, spec.endpoint, spec.query_params)
        headers = {"Content-Type": "application/json", **spec.headers}

        json_body = None
        content = None
        if spec.body is not None and spec.method in BODY_METHODS:
            if isinstance(spec.body, str):
                content = spec.body
            else:
                json_body = spec.body

        response = await self.send(
            instance,
            spec.method,
            url,
            headers=headers,
            json_body=json_body,
            content=content,
            timeout_ms=spec.timeout,
        )

        data = self.parse_body(response)
        if not response.is_success:
            self.raise_for_status(response, data)

        return {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
