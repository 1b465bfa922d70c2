"""
Tests for the query execution facade.
"""

import httpx
import pytest

from plugin_engine.integrations import create_default_registry
from plugin_engine.integrations.connectors.fortigate import FortigatePlugin
from plugin_engine.integrations.connectors.jira import JiraPlugin
from plugin_engine.integrations.connectors.stubs import SplunkPlugin
from plugin_engine.integrations.errors import (
    InstanceNotFoundError,
    InvalidQueryError,
    PluginNotFoundError,
    QueryNotFoundError,
    UpstreamError,
)
from plugin_engine.models.models import SavedQuery
from plugin_engine.services.query_service import QueryService, classify_error, record_count

STATUS_PATH = "/api/v2/monitor/system/status"


def activate(registry, plugin_name):
    plugin = registry.require(plugin_name)
    config = plugin.config.model_copy(deep=True)
    for instance in config.instances:
        instance.is_active = True
    registry.update_config(plugin_name, config)


@pytest.fixture(name="service")
def service_fixture(registry) -> QueryService:
    return QueryService(registry)


class TestHelpers:

    def test_record_count(self):
        assert record_count([1, 2, 3]) == 3
        assert record_count({"total": 42, "issues": []}) == 42
        assert record_count({"issues": []}) is None
        assert record_count("text") is None

    def test_classify_connection_refused(self):
        error = httpx.ConnectError("[Errno 111] Connection refused")
        message = classify_error(error, "https://fw.test")

        assert "service may be down" in message
        assert "Errno" not in message

    def test_classify_dns_failure(self):
        error = httpx.ConnectError("[Errno -2] Name or service not known")
        assert classify_error(error, "https://nohost.test") == "Cannot resolve hostname: https://nohost.test"

    def test_classify_auth_and_timeout(self):
        assert "Authentication failed" in classify_error(UpstreamError("Jira", 401, "nope"), "x")
        assert "Access denied" in classify_error(UpstreamError("Jira", 403, "nope"), "x")
        assert "slow or unreachable" in classify_error(httpx.ReadTimeout("timed out"), "x")

    def test_classify_unknown_keeps_message(self):
        assert classify_error(RuntimeError("boom"), "x") == "boom"


class TestConnectionTest:

    async def test_healthy(self, service, upstream):
        upstream.add(STATUS_PATH, json=[{"serial": "FG1"}, {"serial": "FG2"}])

        result = await service.test_connection("fortigate", "fortigate-prod")

        assert result["success"] is True
        assert result["status"] == "healthy"
        assert isinstance(result["responseTime"], int)
        assert result["responseTime"] >= 0
        assert result["recordCount"] == 2
        assert result["testQuery"] == "System status and version"
        assert "FG1" in result["dataPreview"]
        assert result["instance"]["id"] == "fortigate-prod"
        assert len(upstream.requests) == 1

    async def test_connection_refused_is_classified(self, service, upstream):
        upstream.fail(STATUS_PATH, httpx.ConnectError("[Errno 111] Connection refused"))

        result = await service.test_connection("fortigate", "fortigate-prod")

        assert result["success"] is False
        assert result["status"] == "error"
        assert "service may be down" in result["message"]
        assert result["error"] == "ConnectError"
        assert "Connection refused" in result["details"]

    async def test_inactive_instance_skips_network(self, service, upstream):
        result = await service.test_connection("jira", "jira-main")

        assert result["success"] is False
        assert result["status"] == "inactive"
        assert upstream.requests == []

    async def test_placeholder_connector_is_configured_not_healthy(self, service, registry, upstream):
        activate(registry, "splunk")

        result = await service.test_connection("splunk", "splunk-main")

        assert result["success"] is True
        assert result["status"] == "configured"
        assert "dataPreview" not in result
        assert upstream.requests == []

    async def test_unknown_plugin_or_instance(self, service):
        with pytest.raises(PluginNotFoundError):
            await service.test_connection("nope", "x")
        with pytest.raises(InstanceNotFoundError):
            await service.test_connection("fortigate", "missing")


class TestValidation:

    def test_advisory_result(self, service):
        result = service.validate_query("splunk", "splunk-main", "search error")

        assert result["pluginName"] == "splunk"
        assert result["validation"]["isValid"] is True
        assert result["validation"]["warnings"]

    def test_empty_query_rejected(self, service):
        with pytest.raises(InvalidQueryError):
            service.validate_query("fortigate", "fortigate-prod", "")


class TestExecution:

    async def test_execute_query_envelope(self, service, upstream):
        upstream.add("/api/v2/monitor/firewall/policy", json=[{"policyid": 1}])

        result = await service.execute_query("fortigate", "fortigate-prod", "/api/v2/monitor/firewall/policy")

        assert result["success"] is True
        assert result["data"] == [{"policyid": 1}]
        metadata = result["metadata"]
        assert metadata["query"] == "/api/v2/monitor/firewall/policy"
        assert metadata["method"] == "GET"
        assert metadata["dataType"] == "list"
        assert metadata["recordCount"] == 1
        assert metadata["instance"] == {"id": "fortigate-prod", "name": "Production FortiGate"}
        assert isinstance(metadata["responseTime"], int)

    async def test_execute_query_upstream_failure_propagates(self, service, upstream):
        upstream.add(STATUS_PATH, status=500, json={"error": "internal"})

        with pytest.raises(UpstreamError):
            await service.execute_query("fortigate", "fortigate-prod", STATUS_PATH)

    async def test_inactive_instance_envelope(self, service, upstream):
        result = await service.execute_query("jira", "jira-main", "project = SEC")

        assert result["success"] is False
        assert result["status"] == "inactive"
        assert "disabled" in result["message"]
        assert upstream.requests == []

    async def test_default_query(self, service, upstream):
        upstream.add(STATUS_PATH, json={"version": "7.4"})

        result = await service.execute_default_query("fortigate", "fortigate-prod", "systemStatus")

        assert result["success"] is True
        assert result["query"]["id"] == "systemStatus"
        assert result["metadata"]["dataType"] == "dict"

    async def test_unknown_default_query(self, service, upstream):
        with pytest.raises(QueryNotFoundError):
            await service.execute_default_query("fortigate", "fortigate-prod", "nope")
        assert upstream.requests == []

    async def test_saved_query(self, service, upstream):
        upstream.add(STATUS_PATH, json={"version": "7.4"})
        saved = SavedQuery(
            id=5,
            user_id=1,
            plugin_name="fortigate",
            instance_id="fortigate-test",
            name="status",
            query=STATUS_PATH,
            method="GET",
        )

        result = await service.execute_saved_query(saved)

        assert result["success"] is True
        assert result["savedQuery"]["id"] == 5
        assert upstream.requests[0].url.host == "fortigate-lab.test"


class TestHealthSweep:

    async def test_sweep_counts(self, settings, upstream):
        upstream.add(STATUS_PATH, json={"version": "7.4"}, host="fortigate.test")
        upstream.add(STATUS_PATH, status=502, text="bad gateway", host="fortigate-lab.test")
        registry = create_default_registry(
            settings, plugin_classes=[FortigatePlugin, JiraPlugin], transport=upstream.transport
        )

        sweep = await QueryService(registry).health_sweep()

        assert sweep["summary"] == {"total": 3, "healthy": 1, "errors": 1, "inactive": 1, "unknown": 0}
        statuses = [(r["instanceId"], r["status"]) for r in sweep["results"]]
        assert statuses == [
            ("fortigate-prod", "healthy"),
            ("fortigate-test", "error"),
            ("jira-main", "inactive"),
        ]
        assert len(upstream.requests) == 2

    async def test_sweep_without_catalog_is_unknown(self, settings, upstream):
        class BarePlugin(FortigatePlugin):
            system_name = "bare"
            default_queries = []

        registry = create_default_registry(settings, plugin_classes=[BarePlugin], transport=upstream.transport)

        sweep = await QueryService(registry).health_sweep()

        assert sweep["summary"]["unknown"] == 2
        assert upstream.requests == []

    async def test_concurrent_sweep_keeps_order(self, registry, upstream):
        upstream.add(STATUS_PATH, json={"version": "7.4"})

        sequential = await QueryService(registry).health_sweep()
        concurrent = await QueryService(registry, sweep_concurrency=4).health_sweep()

        assert [r["instanceId"] for r in concurrent["results"]] == [
            r["instanceId"] for r in sequential["results"]
        ]
        assert concurrent["summary"] == sequential["summary"]
        assert concurrent["summary"]["healthy"] == 2
        assert concurrent["summary"]["inactive"] == concurrent["summary"]["total"] - 2

    async def test_placeholder_connector_is_unknown(self, settings, upstream):
        registry = create_default_registry(settings, plugin_classes=[SplunkPlugin], transport=upstream.transport)
        activate(registry, "splunk")

        sweep = await QueryService(registry).health_sweep()

        assert [r["status"] for r in sweep["results"]] == ["unknown"]
        assert sweep["summary"]["healthy"] == 0
        assert sweep["summary"]["unknown"] == 1
