"""Central configuration for the plugin engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# --- Project settings ---
ROOT_DIR = Path(__file__).resolve().parents[2]

DEFAULT_PLUGIN_CONFIG_DIR = ROOT_DIR / "config" / "plugins"
DEFAULT_DATABASE_URL = "sqlite:///./plugin_engine.db"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Runtime settings, read from the environment by ``from_env``."""

    plugin_config_dir: Path = DEFAULT_PLUGIN_CONFIG_DIR
    database_url: str = DEFAULT_DATABASE_URL
    health_sweep_concurrency: int = 1
    serialize_mutations: bool = False

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            plugin_config_dir=Path(os.getenv("PLUGIN_CONFIG_DIR") or DEFAULT_PLUGIN_CONFIG_DIR),
            database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
            health_sweep_concurrency=max(1, int(os.getenv("HEALTH_SWEEP_CONCURRENCY", "1"))),
            serialize_mutations=_env_flag("PLUGIN_SERIALIZE_MUTATIONS"),
        )
