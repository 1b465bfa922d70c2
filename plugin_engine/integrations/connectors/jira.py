"""
Jira connector (ticketing).

Queries are JQL expressions issued against ``/rest/api/2/search``. The
sentinel ``__health_check__`` is routed to ``/rest/api/2/serverInfo`` and is
the first entry of the catalog, so it doubles as the health probe.
"""

from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.errors import InvalidQueryError, UpstreamError
from plugin_engine.integrations.schema import (
    PluginConfig,
    PluginInstance,
    QueryDefinition,
    QueryValidation,
)

HEALTH_CHECK_QUERY = "__health_check__"
_DANGLING_OPERATOR = re.compile(r"(=|\bAND|\bOR)$")
LONG_QUERY_THRESHOLD = 500


def check_jql_syntax(query: str) -> None:
    """Reject obviously broken JQL before a request is made.

    Raises:
        InvalidQueryError: empty query, dangling operator or unmatched quotes.
    """
    trimmed = (query or "").strip()
    if not trimmed:
        raise InvalidQueryError("Query cannot be empty")
    if trimmed == HEALTH_CHECK_QUERY:
        return
    if _DANGLING_OPERATOR.search(trimmed):
        raise InvalidQueryError("Invalid JQL syntax: query ends with an incomplete operator")
    if trimmed.count("'") % 2 or trimmed.count('"') % 2:
        raise InvalidQueryError("Invalid JQL syntax: unmatched quotes")


class JiraPlugin(QueryPlugin):
    system_name = "jira"
    label = "Jira"
    default_queries = [
        QueryDefinition(id="healthCheck", method="GET", path=HEALTH_CHECK_QUERY, description="Server health check"),
        QueryDefinition(id="recentIssues", method="GET", path="created >= -1w ORDER BY created DESC", description="Issues created in the last week"),
        QueryDefinition(id="openBugs", method="GET", path="type = Bug AND resolution = Unresolved", description="Open bug tickets"),
        QueryDefinition(id="myIssues", method="GET", path="assignee = currentUser() AND resolution = Unresolved", description="My open issues"),
        QueryDefinition(id="recentlyUpdated", method="GET", path="updated >= -3d ORDER BY updated DESC", description="Recently updated issues"),
    ]

    @classmethod
    def default_config(cls) -> PluginConfig:
        auth_type = "bearer" if os.getenv("JIRA_AUTH_TYPE") == "bearer" else "basic"
        secret = os.getenv("JIRA_API_TOKEN")
        auth_config: dict[str, Any] = {"username": os.getenv("JIRA_USERNAME")}
        if auth_type == "basic":
            auth_config["password"] = secret
        else:
            auth_config["token"] = secret

        return PluginConfig.model_validate(
            {
                "instances": [
                    {
                        "id": "jira-main",
                        "name": "Main Jira Instance",
                        "baseUrl": os.getenv("JIRA_URL", "https://jira.example.com"),
                        "authType": auth_type,
                        "authConfig": auth_config,
                        "isActive": os.getenv("JIRA_ENABLED") == "true",
                        "tags": ["tickets", "project-management"],
                        "sslConfig": {"rejectUnauthorized": False, "allowSelfSigned": True, "timeout": 30000},
                    }
                ],
                "defaultRefreshInterval": 60,
                "rateLimiting": {"requestsPerMinute": 100, "burstSize": 20},
            }
        )

    def validate_query(self, query: str, method: str = "GET") -> QueryValidation:
        validation = QueryValidation()
        if "project" not in query and "assignee" not in query:
            validation.warnings.append("Consider adding project or assignee filters for better performance")
        if len(query) > LONG_QUERY_THRESHOLD:
            validation.warnings.append("Very long JQL query - consider breaking it down")
        return validation

    async def execute_query(
        self,
        query: str,
        method: str | None,
        instance_id: str,
        opts: dict[str, Any] | None = None,
    ) -> Any:
        instance = self.resolve_active_instance(instance_id)
        check_jql_syntax(query)

        base = instance.base_url.rstrip("/")
        if query.strip() == HEALTH_CHECK_QUERY:
            return await self._server_info(instance, f"{base}/rest/api/2/serverInfo")

        url = f"{base}/rest/api/2/search?jql={quote(query, safe='')}"
        response = await self.send(instance, "GET", url)
        return self._decode(response, context=f'query "{query}"')

    async def _server_info(self, instance: PluginInstance, url: str) -> dict[str, Any]:
        response = await self.send(instance, "GET", url)
        server_info = self._decode(response, context="health check")

        self.logger.info(
            "jira_health_check_ok",
            instance_id=instance.id,
            version=server_info.get("version"),
        )
        return {
            "status": "healthy",
            "serverInfo": {
                "version": server_info.get("version"),
                "title": server_info.get("serverTitle"),
                "baseUrl": server_info.get("baseUrl"),
                "deploymentType": server_info.get("deploymentType"),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _decode(self, response: httpx.Response, *, context: str) -> Any:
        """Parse a Jira response, mapping HTML login pages to auth errors."""
        content_type = response.headers.get("content-type", "")
        text = response.text

        # Jira answers with its login page when credentials are rejected.
        if "text/html" in content_type or "<html>" in text:
            if response.status_code == 403:
                raise UpstreamError(self.label, 403, "Authentication failed: invalid API token or credentials")
            if response.status_code == 401:
                raise UpstreamError(self.label, 401, "Authentication required: verify your API token and credentials")
            raise UpstreamError(
                self.label,
                response.status_code,
                "returned a web page instead of an API response; check that the REST API is enabled",
            )

        if not response.is_success:
            raise UpstreamError(self.label, response.status_code, text, reason=response.reason_phrase)

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise UpstreamError(
                self.label, response.status_code, f"invalid JSON for {context}: {text}"
            ) from exc
