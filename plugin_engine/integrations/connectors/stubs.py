"""
Placeholder connectors.

These satisfy the full plugin contract (instances, catalog, auth config) but
``execute_query`` returns an informational payload instead of calling the
upstream system. A real implementation replaces only ``execute_query``.
"""

from __future__ import annotations

import os
from typing import Any

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.schema import PluginConfig, QueryDefinition, QueryValidation


class StubPlugin(QueryPlugin):
    """Contract-complete connector whose upstream call is not implemented yet."""

    env_prefix: str = ""
    default_base_url: str = "https://example.com"
    default_auth_type: str = "api_key"
    default_tags: tuple[str, ...] = ()

    @classmethod
    def default_config(cls) -> PluginConfig:
        prefix = cls.env_prefix or cls.system_name.upper()
        auth_type = cls.default_auth_type
        if auth_type == "basic":
            auth_config = {"username": os.getenv(f"{prefix}_USERNAME"), "password": os.getenv(f"{prefix}_PASSWORD")}
        elif auth_type == "bearer":
            auth_config = {"token": os.getenv(f"{prefix}_TOKEN")}
        else:
            auth_config = {"key": os.getenv(f"{prefix}_KEY")}

        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": f"{cls.system_name}-main",
                        "name": f"Main {cls.label}",
                        "baseUrl": os.getenv(f"{prefix}_URL", cls.default_base_url),
                        "authType": auth_type,
                        "authConfig": auth_config,
                        "isActive": False,
                        "tags": list(cls.default_tags),
                    }
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
        return {
            "message": f"{self.label} plugin not fully implemented",
            "query": query,
            "method": method,
            "instanceId": instance.id,
            "implemented": False,
        }


class PaloAltoPlugin(StubPlugin):
    system_name = "paloalto"
    label = "Palo Alto"
    default_base_url = "https://paloalto.example.com"
    default_tags = ("firewall", "security", "paloalto")
    default_queries = [
        QueryDefinition(id="systemInfo", method="GET", path="/restapi/9.0/system", description="System info & version"),
        QueryDefinition(id="listPolicies", method="GET", path="/restapi/9.0/Policies/SecurityRules", description="Security policies"),
        QueryDefinition(id="sessionCount", method="GET", path="/restapi/9.0/Operational/GetSessions", description="Current session stats"),
        QueryDefinition(id="threatSummary", method="GET", path="/restapi/9.0/Operational/GetThreats", description="Threat log summary"),
        QueryDefinition(id="listAddresses", method="GET", path="/restapi/9.0/Objects/Addresses", description="Address objects"),
    ]


class SplunkPlugin(StubPlugin):
    system_name = "splunk"
    label = "Splunk"
    default_auth_type = "bearer"
    default_base_url = "https://splunk.example.com:8089"
    default_tags = ("siem", "logs")
    default_queries = [
        QueryDefinition(id="serverInfo", method="GET", path="/services/server/info", description="Server information"),
        QueryDefinition(id="failedLogins", method="POST", path="search index=security action=failure earliest=-24h", description="Failed logins (24h)"),
        QueryDefinition(id="topSources", method="POST", path="search index=main earliest=-1h | top limit=10 source", description="Top event sources (1h)"),
    ]

    def validate_query(self, query: str, method: str = "GET") -> QueryValidation:
        validation = QueryValidation()
        if "index=" not in query:
            validation.warnings.append("Consider specifying an index for better performance")
        if "earliest=" not in query:
            validation.suggestions.append("Add time range with earliest= for faster results")
        return validation


class QRadarPlugin(StubPlugin):
    system_name = "qradar"
    label = "QRadar"
    default_auth_type = "bearer"
    default_base_url = "https://qradar.example.com"
    default_tags = ("siem", "offenses")
    default_queries = [
        QueryDefinition(id="systemAbout", method="GET", path="/api/system/about", description="System information"),
        QueryDefinition(id="openOffenses", method="GET", path="/api/siem/offenses?filter=status%3DOPEN", description="Open offenses"),
        QueryDefinition(id="topEvents", method="POST", path="SELECT QIDNAME(qid), COUNT(*) FROM events LAST 1 HOURS GROUP BY qid", description="Top events (AQL)"),
    ]


class CarbonBlackPlugin(StubPlugin):
    system_name = "carbonblack"
    label = "Carbon Black"
    default_base_url = "https://defense.conferdeploy.net"
    default_tags = ("edr", "endpoints")
    default_queries = [
        QueryDefinition(id="deviceStatus", method="POST", path="/appservices/v6/orgs/{org_key}/devices/_search", description="Device inventory"),
        QueryDefinition(id="alerts", method="POST", path="/api/alerts/v7/orgs/{org_key}/alerts/_search", description="Recent alerts"),
    ]


class SysdigPlugin(StubPlugin):
    system_name = "sysdig"
    label = "Sysdig"
    default_auth_type = "bearer"
    default_base_url = "https://secure.sysdig.com"
    default_tags = ("containers", "runtime-security")
    default_queries = [
        QueryDefinition(id="agents", method="GET", path="/api/agents/connected", description="Connected agents"),
        QueryDefinition(id="events", method="GET", path="/api/v1/secureEvents", description="Runtime security events"),
    ]


class VMwarePlugin(StubPlugin):
    system_name = "vmware"
    label = "VMware vCenter"
    default_auth_type = "basic"
    default_base_url = "https://vcenter.example.com"
    default_tags = ("virtualization",)
    default_queries = [
        QueryDefinition(id="vms", method="GET", path="/api/vcenter/vm", description="Virtual machines"),
        QueryDefinition(id="hosts", method="GET", path="/api/vcenter/host", description="ESXi hosts"),
    ]


class VeeamPlugin(StubPlugin):
    system_name = "veeam"
    label = "Veeam"
    default_auth_type = "bearer"
    default_base_url = "https://veeam.example.com:9419"
    default_tags = ("backup",)
    default_queries = [
        QueryDefinition(id="jobs", method="GET", path="/api/v1/jobs", description="Backup jobs"),
        QueryDefinition(id="sessions", method="GET", path="/api/v1/sessions", description="Recent job sessions"),
    ]


class ConfluencePlugin(StubPlugin):
    system_name = "confluence"
    label = "Confluence"
    default_auth_type = "basic"
    default_base_url = "https://confluence.example.com"
    default_tags = ("documentation",)
    default_queries = [
        QueryDefinition(id="spaces", method="GET", path="/rest/api/space", description="Spaces"),
        QueryDefinition(id="recentPages", method="GET", path="type=page ORDER BY lastmodified DESC", description="Recently modified pages (CQL)"),
    ]


STUB_PLUGINS: tuple[type[StubPlugin], ...] = (
    PaloAltoPlugin,
    SplunkPlugin,
    QRadarPlugin,
    CarbonBlackPlugin,
    SysdigPlugin,
    VMwarePlugin,
    VeeamPlugin,
    ConfluencePlugin,
)
