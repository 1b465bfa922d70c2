"""
Base plugin interface: abstract class for all external query connectors.

Every connector (FortiGate, Jira, Elastic, etc.) must subclass ``QueryPlugin``
and implement ``execute_query``.

Usage::

    from plugin_engine.integrations.base import QueryPlugin

    class FortigatePlugin(QueryPlugin):
        system_name = "fortigate"

        async def execute_query(self, query, method, instance_id, opts=None): ...
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from plugin_engine.integrations.errors import (
    InstanceInactiveError,
    InstanceNotFoundError,
    UpstreamError,
)
from plugin_engine.integrations.schema import (
    PluginConfig,
    PluginInstance,
    QueryDefinition,
    QueryValidation,
)
from plugin_engine.integrations.transport import build_auth_headers, build_transport_options


class QueryPlugin(ABC):
    """Abstract base for external system connectors.

    Subclasses must define:
    * ``system_name``: unique, case-insensitive identifier
    * ``label``: human-readable name used in error messages
    * ``default_queries``: catalog; the first entry is the health probe
    * ``default_config()``: compiled instance defaults
    * ``execute_query()``: run one query against one instance

    Optional overrides:
    * ``validate_query()``: advisory lint for the system's query language
    """

    system_name: str = "base"
    label: str = "Plugin"
    default_queries: list[QueryDefinition] = []

    def __init__(
        self,
        config: PluginConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config if config is not None else self.default_config()
        self.transport = transport
        self.logger = structlog.get_logger(f"{__name__}.{self.system_name}")

    @classmethod
    def default_config(cls) -> PluginConfig:
        """Compiled defaults, used when no persisted file exists."""
        return PluginConfig()

    # ── Required methods ──

    @abstractmethod
    async def execute_query(
        self,
        query: str,
        method: str | None,
        instance_id: str,
        opts: dict[str, Any] | None = None,
    ) -> Any:
        """Execute ``query`` against the instance ``instance_id``.

        Args:
            query: raw query text (REST path, JQL, search DSL …)
            method: HTTP verb or system-specific method selector
            instance_id: target instance
            opts: extra parameters from the caller (e.g. ``body``)

        Raises:
            InstanceNotFoundError, InstanceInactiveError, UpstreamError
        """
        ...

    # ── Optional methods ──

    def validate_query(self, query: str, method: str = "GET") -> QueryValidation:
        return QueryValidation()

    # ── Instance lookup ──

    def get_instances(self) -> list[PluginInstance]:
        return self.config.instances

    def get_instance(self, instance_id: str) -> PluginInstance | None:
        for instance in self.config.instances:
            if instance.id == instance_id:
                return instance
        return None

    def get_default_query(self, query_id: str) -> QueryDefinition | None:
        for query_def in self.default_queries:
            if query_def.id == query_id:
                return query_def
        return None

    def resolve_active_instance(self, instance_id: str) -> PluginInstance:
        instance = self.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFoundError(self.system_name, instance_id)
        if not instance.is_active:
            raise InstanceInactiveError(self.system_name, instance)
        return instance

    # ── Transport helpers ──

    async def send(
        self,
        instance: PluginInstance,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        content: str | bytes | None = None,
        timeout_ms: int | None = None,
    ) -> httpx.Response:
        """Issue exactly one request to the instance. No retries."""
        options = build_transport_options(instance, build_auth_headers(instance, headers))
        if timeout_ms:
            options.timeout_ms = timeout_ms

        self.logger.info("plugin_request", plugin=self.system_name, instance_id=instance.id, method=method, url=url)
        async with httpx.AsyncClient(transport=self.transport, **options.client_kwargs()) as client:
            return await client.request(method.upper(), url, json=json_body, content=content)

    def parse_body(self, response: httpx.Response) -> Any:
        """Decode JSON when the content type says so, plain text otherwise."""
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except json.JSONDecodeError:
                return response.text
        return response.text

    def raise_for_status(self, response: httpx.Response, data: Any = None) -> None:
        if response.is_success:
            return
        if data is None:
            body = response.text
        elif isinstance(data, str):
            body = data
        else:
            body = json.dumps(data)
        raise UpstreamError(self.label, response.status_code, body)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} system_name={self.system_name} instances={len(self.config.instances)}>"
