"""FortiGate firewall connector (generic REST style)."""

from __future__ import annotations

import os
from typing import Any

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.schema import PluginConfig, QueryDefinition


def build_url(base_url: str, path: str) -> str:
    """Join ``path`` onto ``base_url`` with exactly one slash.

    Absolute URLs are returned unchanged.
    """
    if path.startswith(("http://", "https://")):
        return path
    base = base_url.rstrip("/")
    if path.startswith("/"):
        return f"{base}{path}"
    return f"{base}/{path}"


FORTIGATE_DEFAULT_QUERIES = [
    QueryDefinition(id="systemStatus", method="GET", path="/api/v2/monitor/system/status", description="System status and version"),
    QueryDefinition(id="listPolicies", method="GET", path="/api/v2/monitor/firewall/policy", description="Firewall policies"),
    QueryDefinition(id="listAddresses", method="GET", path="/api/v2/monitor/firewall/address", description="Address objects"),
    QueryDefinition(id="listInterfaces", method="GET", path="/api/v2/cmdb/system/interface", description="Network interfaces"),
    QueryDefinition(id="ipsecStatus", method="GET", path="/api/v2/monitor/system/vpn/ipsec", description="IPsec VPN status"),
    QueryDefinition(id="haStatus", method="GET", path="/api/v2/monitor/system/ha/status", description="High Availability status"),
    QueryDefinition(id="routeTable", method="GET", path="/api/v2/monitor/router/ipv4", description="Routing table (IPv4)"),
    QueryDefinition(id="sessionCount", method="GET", path="/api/v2/monitor/firewall/session", description="Current session count"),
    QueryDefinition(id="topSessions", method="GET", path="/api/v2/monitor/firewall/top/sessions", description="Top bandwidth sessions"),
    QueryDefinition(id="licenseInfo", method="GET", path="/api/v2/monitor/system/license/status", description="License information"),
]


class FortigatePlugin(QueryPlugin):
    system_name = "fortigate"
    label = "FortiGate"
    default_queries = FORTIGATE_DEFAULT_QUERIES

    @classmethod
    def default_config(cls) -> PluginConfig:
        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": "fortigate-prod",
                        "name": "Production FortiGate",
                        "baseUrl": os.getenv("FORTIGATE_PROD_URL", "https://192.168.1.1"),
                        "authType": "api_key",
                        "authConfig": {"key": os.getenv("FORTIGATE_PROD_KEY", ""), "header": "Authorization"},
                        "isActive": True,
                        "tags": ["production", "firewall"],
                    },
                    {
                        "id": "fortigate-test",
                        "name": "Test FortiGate",
                        "baseUrl": os.getenv("FORTIGATE_TEST_URL", "https://192.168.1.10"),
                        "authType": "api_key",
                        "authConfig": {"key": os.getenv("FORTIGATE_TEST_KEY", ""), "header": "Authorization"},
                        "isActive": True,
                        "tags": ["test", "firewall"],
                    },
                ],
                "defaultRefreshInterval": 30,
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
        opts = opts or {}

        url = build_url(instance.base_url, query)
        response = await self.send(
            instance,
            method or "GET",
            url,
            headers={"Content-Type": "application/json"},
            json_body=opts.get("body"),
        )

        data = self.parse_body(response)
        self.raise_for_status(response, data)
        return data
