"""
Plugin registry: maps system name to connector.

The registry is a plain service object: the application builds one at
startup (see ``create_default_registry``) and tests build their own.
"""

from __future__ import annotations

import threading
from contextlib import nullcontext
from typing import ContextManager, Iterator

import structlog
from pydantic import ValidationError

from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.config_store import ConfigStore
from plugin_engine.integrations.errors import PluginNotFoundError
from plugin_engine.integrations.schema import PluginConfig, RegisteredInstance

LOGGER = structlog.get_logger(__name__)


class PluginRegistry:
    """Process-wide map ``system_name -> QueryPlugin``.

    Persisted configuration is merged over compiled defaults on ``register``.
    ``update_config`` replaces the whole config of a plugin and writes it
    back through the ``ConfigStore``. Writes are last-writer-wins unless the
    registry is built with ``serialize_mutations=True``, in which case
    ``mutation_lock`` hands out one lock per plugin.
    """

    def __init__(self, config_store: ConfigStore, *, serialize_mutations: bool = False) -> None:
        self.config_store = config_store
        self.serialize_mutations = serialize_mutations
        self.config_load_errors: dict[str, str] = {}
        self._plugins: dict[str, QueryPlugin] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ── Registration ──

    def register(self, plugin: QueryPlugin) -> QueryPlugin:
        key = plugin.system_name.lower()
        if plugin.config is None:
            plugin.config = PluginConfig()

        result = self.config_store.load(plugin.system_name)
        error = (result.error or "unreadable config file") if result.corrupt else None
        source = "defaults"
        if result.loaded:
            merged = plugin.config.to_json_dict()
            merged.update(result.config)
            merged["instances"] = result.config.get("instances") or []
            try:
                plugin.config = PluginConfig.model_validate(merged)
            except ValidationError as exc:
                error = f"invalid plugin config: {exc.error_count()} validation error(s), first: {exc.errors()[0]['msg']}"
            else:
                source = "file"

        if error is None:
            self.config_load_errors.pop(key, None)
        else:
            self.config_load_errors[key] = error
            LOGGER.error(
                "plugin_config_ignored",
                plugin=plugin.system_name,
                reason=error,
                fallback="compiled defaults",
            )

        self._plugins[key] = plugin
        LOGGER.info(
            "plugin_registered",
            plugin=plugin.system_name,
            instances=len(plugin.config.instances),
            source=source,
        )
        return plugin

    # ── Lookup ──

    def get(self, system_name: str) -> QueryPlugin | None:
        return self._plugins.get(system_name.lower())

    def require(self, system_name: str) -> QueryPlugin:
        plugin = self.get(system_name)
        if plugin is None:
            raise PluginNotFoundError(system_name)
        return plugin

    def list(self) -> list[QueryPlugin]:
        return list(self._plugins.values())

    def all_instances(self) -> list[RegisteredInstance]:
        return [
            RegisteredInstance(plugin.system_name, instance)
            for plugin in self._plugins.values()
            for instance in plugin.config.instances
        ]

    def __contains__(self, system_name: str) -> bool:
        return system_name.lower() in self._plugins

    def __iter__(self) -> Iterator[QueryPlugin]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._plugins)

    # ── Mutation ──

    def update_config(self, system_name: str, new_config: PluginConfig) -> None:
        """Persist ``new_config`` and, once written, make it the plugin's config.

        A failed write leaves the in-memory config untouched.

        Raises:
            PluginNotFoundError: plugin is not registered.
            ConfigPersistenceError: the file could not be written.
        """
        plugin = self.require(system_name)
        self.config_store.save(plugin.system_name, new_config.to_json_dict())
        plugin.config = new_config
        LOGGER.info("plugin_config_updated", plugin=plugin.system_name, instances=len(new_config.instances))

    def mutation_lock(self, system_name: str) -> ContextManager:
        if not self.serialize_mutations:
            return nullcontext()
        key = system_name.lower()
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
        return lock
