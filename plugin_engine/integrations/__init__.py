"""
Integration layer: external system plugins.

Provides:
* ``QueryPlugin``: abstract contract every connector implements
* ``PluginRegistry``: name → plugin map with persisted configuration
* ``create_default_registry()``: composition root registering the built-in connectors
"""

from __future__ import annotations

from typing import Iterable

import httpx

from plugin_engine.core.config import EngineSettings
from plugin_engine.integrations.base import QueryPlugin
from plugin_engine.integrations.config_store import ConfigStore
from plugin_engine.integrations.registry import PluginRegistry


def create_default_registry(
    settings: EngineSettings | None = None,
    *,
    plugin_classes: Iterable[type[QueryPlugin]] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PluginRegistry:
    """Build a registry and register every built-in connector.

    ``transport`` is handed to each connector; tests pass an
    ``httpx.MockTransport`` here.
    """
    from plugin_engine.integrations.connectors import BUILTIN_PLUGINS

    settings = settings or EngineSettings.from_env()
    registry = PluginRegistry(
        ConfigStore(settings.plugin_config_dir),
        serialize_mutations=settings.serialize_mutations,
    )
    for plugin_cls in plugin_classes if plugin_classes is not None else BUILTIN_PLUGINS:
        registry.register(plugin_cls(transport=transport))
    return registry


__all__ = [
    "PluginRegistry",
    "QueryPlugin",
    "create_default_registry",
]
