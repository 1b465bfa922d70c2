"""Built-in connectors, in registration order."""

from plugin_engine.integrations.connectors.elastic import ElasticPlugin
from plugin_engine.integrations.connectors.fortigate import FortigatePlugin
from plugin_engine.integrations.connectors.generic_api import GenericApiPlugin
from plugin_engine.integrations.connectors.grafana import GrafanaPlugin
from plugin_engine.integrations.connectors.jira import JiraPlugin
from plugin_engine.integrations.connectors.stubs import STUB_PLUGINS, StubPlugin

BUILTIN_PLUGINS = (
    FortigatePlugin,
    JiraPlugin,
    ElasticPlugin,
    GrafanaPlugin,
    GenericApiPlugin,
    *STUB_PLUGINS,
)

__all__ = [
    "BUILTIN_PLUGINS",
    "ElasticPlugin",
    "FortigatePlugin",
    "GenericApiPlugin",
    "GrafanaPlugin",
    "JiraPlugin",
    "StubPlugin",
]
