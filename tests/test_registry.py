"""
Tests for the plugin registry and its config merge rules.
"""

import json

import pytest

from plugin_engine.integrations import create_default_registry
from plugin_engine.integrations.config_store import ConfigStore
from plugin_engine.integrations.connectors import BUILTIN_PLUGINS
from plugin_engine.integrations.connectors.fortigate import FortigatePlugin
from plugin_engine.integrations.connectors.jira import JiraPlugin
from plugin_engine.integrations.errors import ConfigPersistenceError, PluginNotFoundError
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.integrations.schema import PluginConfig
from plugin_engine.services.instance_service import InstanceService


def write_config(config_dir, name, payload):
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / f"{name}.json").write_text(json.dumps(payload), encoding="utf-8")


class TestRegistration:

    def test_default_registry_registers_builtins(self, registry):
        assert len(registry) == len(BUILTIN_PLUGINS)
        assert [plugin.system_name for plugin in registry.list()][:5] == [
            "fortigate",
            "jira",
            "elastic",
            "grafana",
            "generic-api",
        ]

    def test_lookup_is_case_insensitive(self, registry):
        assert registry.get("FortiGate") is registry.get("fortigate")
        assert "JIRA" in registry

    def test_require_unknown_plugin(self, registry):
        assert registry.get("nope") is None
        with pytest.raises(PluginNotFoundError):
            registry.require("nope")

    def test_re_registration_replaces(self, config_dir):
        registry = PluginRegistry(ConfigStore(config_dir))
        first = registry.register(FortigatePlugin())
        second = registry.register(FortigatePlugin(PluginConfig()))

        assert registry.get("fortigate") is second
        assert registry.get("fortigate") is not first
        assert len(registry) == 1
        assert registry.all_instances() == []

    def test_all_instances_counts_every_plugin(self, settings):
        registry = create_default_registry(settings, plugin_classes=[FortigatePlugin, JiraPlugin])

        entries = registry.all_instances()

        assert len(entries) == 3
        assert {entry.plugin_name for entry in entries} == {"fortigate", "jira"}


class TestPersistedConfig:

    def test_file_overrides_compiled_defaults(self, config_dir):
        write_config(
            config_dir,
            "fortigate",
            {
                "instances": [{"id": "fw-file", "name": "From file", "baseUrl": "https://file.test"}],
                "defaultRefreshInterval": 99,
                "customFlag": True,
            },
        )
        registry = PluginRegistry(ConfigStore(config_dir))
        plugin = registry.register(FortigatePlugin())

        assert [instance.id for instance in plugin.get_instances()] == ["fw-file"]
        assert plugin.config.default_refresh_interval == 99
        # keys not present in the file keep the compiled value
        assert plugin.config.rate_limiting.requests_per_minute == 60
        assert plugin.config.to_json_dict()["customFlag"] is True

    def test_file_without_instances_means_empty(self, config_dir):
        write_config(config_dir, "fortigate", {"defaultRefreshInterval": 10})
        registry = PluginRegistry(ConfigStore(config_dir))

        plugin = registry.register(FortigatePlugin())

        assert plugin.get_instances() == []

    def test_corrupt_file_falls_back_and_is_recorded(self, config_dir):
        config_dir.mkdir(parents=True)
        (config_dir / "fortigate.json").write_text("{broken", encoding="utf-8")
        registry = PluginRegistry(ConfigStore(config_dir))

        plugin = registry.register(FortigatePlugin())

        assert [instance.id for instance in plugin.get_instances()] == ["fortigate-prod", "fortigate-test"]
        assert "fortigate" in registry.config_load_errors

    def test_invalid_instance_schema_falls_back_and_is_recorded(self, config_dir):
        write_config(config_dir, "fortigate", {"instances": [{"id": "x", "name": "no url"}]})
        registry = PluginRegistry(ConfigStore(config_dir))

        plugin = registry.register(FortigatePlugin())

        assert [instance.id for instance in plugin.get_instances()] == ["fortigate-prod", "fortigate-test"]
        assert "invalid plugin config" in registry.config_load_errors["fortigate"]

    def test_invalid_top_level_field_falls_back(self, config_dir):
        write_config(config_dir, "jira", {"rateLimiting": "fast", "instances": []})
        registry = PluginRegistry(ConfigStore(config_dir))

        plugin = registry.register(JiraPlugin())

        assert [instance.id for instance in plugin.get_instances()] == ["jira-main"]
        assert "jira" in registry.config_load_errors

    def test_valid_file_clears_previous_load_error(self, config_dir):
        write_config(config_dir, "fortigate", {"instances": [{"id": "x", "name": "no url"}]})
        registry = PluginRegistry(ConfigStore(config_dir))
        registry.register(FortigatePlugin())

        write_config(config_dir, "fortigate", {"instances": []})
        registry.register(FortigatePlugin())

        assert "fortigate" not in registry.config_load_errors

    def test_update_config_round_trip(self, config_dir):
        registry = PluginRegistry(ConfigStore(config_dir))
        plugin = registry.register(FortigatePlugin())

        config = plugin.config.model_copy(deep=True)
        config.instances = config.instances[:1]
        registry.update_config("fortigate", config)

        reloaded = PluginRegistry(ConfigStore(config_dir)).register(FortigatePlugin())
        assert [instance.id for instance in reloaded.get_instances()] == ["fortigate-prod"]
        assert reloaded.config.to_json_dict() == config.to_json_dict()

    def test_update_config_unknown_plugin(self, config_dir):
        registry = PluginRegistry(ConfigStore(config_dir))
        with pytest.raises(PluginNotFoundError):
            registry.update_config("nope", PluginConfig())
        assert not config_dir.exists()


class TestMutationLock:

    def test_default_is_noop(self, config_dir):
        registry = PluginRegistry(ConfigStore(config_dir))
        with registry.mutation_lock("fortigate"):
            with registry.mutation_lock("fortigate"):
                pass

    def test_serialized_mode_hands_out_one_lock_per_plugin(self, config_dir):
        registry = PluginRegistry(ConfigStore(config_dir), serialize_mutations=True)

        lock = registry.mutation_lock("fortigate")

        assert registry.mutation_lock("FORTIGATE") is lock
        assert registry.mutation_lock("jira") is not lock
        with lock:
            assert lock.locked()


class TestFailedSave:

    @pytest.fixture(name="unwritable_registry")
    def unwritable_registry_fixture(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        registry = PluginRegistry(ConfigStore(blocker / "plugins"))
        registry.register(FortigatePlugin())
        return registry

    def test_update_config_keeps_memory_untouched(self, unwritable_registry):
        plugin = unwritable_registry.require("fortigate")
        config = plugin.config.model_copy(deep=True)
        config.instances = []

        with pytest.raises(ConfigPersistenceError):
            unwritable_registry.update_config("fortigate", config)

        assert [instance.id for instance in plugin.get_instances()] == ["fortigate-prod", "fortigate-test"]

    def test_delete_is_not_applied(self, unwritable_registry):
        service = InstanceService(unwritable_registry)

        with pytest.raises(ConfigPersistenceError):
            service.delete_instance("fortigate", "fortigate-prod")

        plugin = unwritable_registry.require("fortigate")
        assert plugin.get_instance("fortigate-prod") is not None

    def test_create_is_not_applied(self, unwritable_registry, sample_instance_data):
        service = InstanceService(unwritable_registry)

        with pytest.raises(ConfigPersistenceError):
            service.create_instance("fortigate", sample_instance_data)

        plugin = unwritable_registry.require("fortigate")
        assert [instance.id for instance in plugin.get_instances()] == ["fortigate-prod", "fortigate-test"]
