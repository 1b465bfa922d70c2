"""Exception hierarchy for the plugin engine.

Routers map ``NotFoundError`` to 404 and ``InvalidQueryError`` /
``InvalidInstanceError`` to 400. ``InstanceInactiveError`` is turned into a
structured ``status: "inactive"`` payload by the query service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from plugin_engine.integrations.schema import PluginInstance

BODY_SNIPPET_LIMIT = 200


class PluginError(Exception):
    """Base class for every error raised by the plugin engine."""

    code = "PLUGIN_ERROR"


class NotFoundError(PluginError, LookupError):
    code = "NOT_FOUND"


class PluginNotFoundError(NotFoundError):
    code = "PLUGIN_NOT_FOUND"

    def __init__(self, plugin_name: str) -> None:
        super().__init__(f"Plugin '{plugin_name}' not found")
        self.plugin_name = plugin_name


class InstanceNotFoundError(NotFoundError):
    code = "INSTANCE_NOT_FOUND"

    def __init__(self, plugin_name: str, instance_id: str) -> None:
        super().__init__(f"Instance '{instance_id}' not found in plugin '{plugin_name}'")
        self.plugin_name = plugin_name
        self.instance_id = instance_id


class QueryNotFoundError(NotFoundError):
    code = "QUERY_NOT_FOUND"

    def __init__(self, plugin_name: str, query_id: str) -> None:
        super().__init__(f"Query '{query_id}' not found in plugin '{plugin_name}'")
        self.query_id = query_id


class SavedQueryNotFoundError(NotFoundError):
    code = "SAVED_QUERY_NOT_FOUND"

    def __init__(self, query_id: int) -> None:
        super().__init__(f"Saved query '{query_id}' not found")
        self.query_id = query_id


class InstanceInactiveError(PluginError):
    """Raised by connectors when the target instance is disabled.

    The facade reports this as a structured ``status: "inactive"`` payload,
    never as a failure response.
    """

    code = "INSTANCE_INACTIVE"

    def __init__(self, plugin_name: str, instance: "PluginInstance") -> None:
        super().__init__(f"Instance '{instance.name}' is currently disabled")
        self.plugin_name = plugin_name
        self.instance = instance


class UpstreamError(PluginError):
    """Non-2xx response from the external system."""

    code = "UPSTREAM_ERROR"

    def __init__(self, label: str, status: int, body: str, reason: str = "") -> None:
        self.status = status
        self.body = body[:BODY_SNIPPET_LIMIT]
        prefix = f"{label} API {status}"
        if reason:
            prefix = f"{prefix}: {reason} -"
        else:
            prefix = f"{prefix}:"
        super().__init__(f"{prefix} {self.body}")


class InvalidQueryError(PluginError, ValueError):
    code = "INVALID_QUERY"


class InvalidInstanceError(PluginError, ValueError):
    code = "INVALID_INSTANCE"


class DuplicateInstanceError(InvalidInstanceError):
    code = "DUPLICATE_INSTANCE"


class ConfigPersistenceError(PluginError):
    code = "CONFIG_PERSISTENCE_ERROR"

