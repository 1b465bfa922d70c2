"""
Instance administration: create, update, toggle and delete plugin instances.

Every mutation copies the plugin config, edits the copy and hands it to
``PluginRegistry.update_config``, which replaces the in-memory config and
writes the plugin file.
"""

from __future__ import annotations

import re
import time
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from plugin_engine.integrations.errors import (
    DuplicateInstanceError,
    InstanceNotFoundError,
    InvalidInstanceError,
)
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.integrations.schema import PluginConfig, PluginInstance

LOGGER = structlog.get_logger(__name__)

_SLUG_PATTERN = re.compile(r"[^a-z0-9]")


def generate_instance_id(plugin_name: str, name: str, now_ms: Optional[int] = None) -> str:
    """``<plugin>-<slug(name)>-<epoch ms>``; ids are never reused."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{plugin_name}-{_SLUG_PATTERN.sub('-', name.lower())}-{now_ms}"


class InstanceService:
    """Administrative mutations on plugin instances."""

    def __init__(self, registry: PluginRegistry):
        self.registry = registry

    def _find_index(self, config: PluginConfig, plugin_name: str, instance_id: str) -> int:
        for index, instance in enumerate(config.instances):
            if instance.id == instance_id:
                return index
        raise InstanceNotFoundError(plugin_name, instance_id)

    @staticmethod
    def _validate(data: dict[str, Any]) -> PluginInstance:
        try:
            return PluginInstance.model_validate(data)
        except ValidationError as exc:
            raise InvalidInstanceError(f"Invalid instance configuration: {exc.errors()[0]['msg']}") from exc

    def create_instance(self, plugin_name: str, payload: dict[str, Any]) -> PluginInstance:
        name = (payload.get("name") or "").strip()
        base_url = (payload.get("baseUrl") or "").strip()
        if not name or not base_url:
            raise InvalidInstanceError("Name and baseUrl are required")

        plugin = self.registry.require(plugin_name)
        with self.registry.mutation_lock(plugin_name):
            config = plugin.config.model_copy(deep=True)
            if any(inst.name.lower() == name.lower() for inst in config.instances):
                raise DuplicateInstanceError(f"Instance with name '{name}' already exists")

            instance = self._validate(
                {
                    "id": generate_instance_id(plugin.system_name, name),
                    "name": name,
                    "baseUrl": base_url.rstrip("/"),
                    "authType": payload.get("authType") or "none",
                    "authConfig": payload.get("authConfig") or {},
                    "isActive": payload.get("isActive", True),
                    "tags": payload.get("tags") or [],
                    "sslConfig": payload.get("sslConfig"),
                }
            )
            config.instances.append(instance)
            self.registry.update_config(plugin_name, config)

        LOGGER.info("plugin_instance_created", plugin=plugin.system_name, instance_id=instance.id)
        return instance

    def update_instance(self, plugin_name: str, instance_id: str, changes: dict[str, Any]) -> PluginInstance:
        """Shallow-merge ``changes`` (camelCase keys) over the instance; ``id`` never changes."""
        plugin = self.registry.require(plugin_name)
        with self.registry.mutation_lock(plugin_name):
            config = plugin.config.model_copy(deep=True)
            index = self._find_index(config, plugin_name, instance_id)

            merged = {**config.instances[index].to_json_dict(), **changes, "id": instance_id}
            instance = self._validate(merged)
            config.instances[index] = instance
            self.registry.update_config(plugin_name, config)

        LOGGER.info("plugin_instance_updated", plugin=plugin.system_name, instance_id=instance_id)
        return instance

    def toggle_instance(self, plugin_name: str, instance_id: str, is_active: Optional[bool] = None) -> PluginInstance:
        """Set ``isActive`` to ``is_active``, or flip it when not given."""
        plugin = self.registry.require(plugin_name)
        with self.registry.mutation_lock(plugin_name):
            config = plugin.config.model_copy(deep=True)
            index = self._find_index(config, plugin_name, instance_id)

            instance = config.instances[index]
            instance.is_active = (not instance.is_active) if is_active is None else is_active
            self.registry.update_config(plugin_name, config)

        LOGGER.info(
            "plugin_instance_toggled",
            plugin=plugin.system_name,
            instance_id=instance_id,
            is_active=instance.is_active,
        )
        return instance

    def delete_instance(self, plugin_name: str, instance_id: str) -> PluginInstance:
        plugin = self.registry.require(plugin_name)
        with self.registry.mutation_lock(plugin_name):
            config = plugin.config.model_copy(deep=True)
            index = self._find_index(config, plugin_name, instance_id)

            removed = config.instances.pop(index)
            self.registry.update_config(plugin_name, config)

        LOGGER.info("plugin_instance_deleted", plugin=plugin.system_name, instance_id=instance_id)
        return removed
