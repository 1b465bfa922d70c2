"""
File-backed store for per-plugin configuration.

One JSON file per plugin, named ``<systemName>.json``, holding the full
config object (``instances``, ``defaultRefreshInterval``, ``rateLimiting``).
No schema version or checksum is stored.

Usage::

    store = ConfigStore(Path("config/plugins"))
    result = store.load("jira")
    if result.loaded:
        ...
    store.save("jira", {"instances": [...]})
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

import structlog

from plugin_engine.integrations.errors import ConfigPersistenceError

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ConfigLoadResult:
    """Outcome of reading one plugin file.

    ``absent`` means the plugin was never configured; ``corrupt`` means a file
    exists but could not be parsed into a JSON object.
    """

    status: Literal["loaded", "absent", "corrupt"]
    config: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.status == "loaded"

    @property
    def corrupt(self) -> bool:
        return self.status == "corrupt"


class ConfigStore:
    """Load/save plugin configuration files under ``config_dir``."""

    def __init__(self, config_dir: Path | str) -> None:
        self.config_dir = Path(config_dir)

    def path_for(self, name: str) -> Path:
        return self.config_dir / f"{name}.json"

    def load(self, name: str) -> ConfigLoadResult:
        path = self.path_for(name)
        if not path.exists():
            return ConfigLoadResult(status="absent")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.error("plugin_config_corrupt", plugin=name, path=str(path), error=str(exc))
            return ConfigLoadResult(status="corrupt", error=str(exc))

        if not isinstance(data, dict):
            error = f"expected a JSON object, got {type(data).__name__}"
            LOGGER.error("plugin_config_corrupt", plugin=name, path=str(path), error=error)
            return ConfigLoadResult(status="corrupt", error=error)

        LOGGER.info("plugin_config_loaded", plugin=name, path=str(path))
        return ConfigLoadResult(status="loaded", config=data)

    def save(self, name: str, config: dict[str, Any]) -> Path:
        """Overwrite the plugin file with pretty-printed JSON.

        The write is a plain overwrite, not write-then-rename.

        Raises:
            ConfigPersistenceError: if the directory or file cannot be written.
        """
        path = self.path_for(name)
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.error("plugin_config_save_failed", plugin=name, path=str(path), error=str(exc))
            raise ConfigPersistenceError(f"Failed to save config for plugin '{name}': {exc}") from exc

        LOGGER.info("plugin_config_saved", plugin=name, path=str(path))
        return path
