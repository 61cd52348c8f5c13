"""TOML configuration loader for the decision engine.

Loads engine settings from defaults.toml. Seed rules live next to it in
rules.toml and are loaded by devpilot.rules.seed.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from devpilot.errors import ConfigError
from devpilot.schemas.config import (
    AIConfig,
    DecisionConfig,
    EngineConfig,
    LearningConfig,
    StorageConfig,
)

# Default config directory relative to the devpilot package
CONFIG_DIR = Path(__file__).parent / "config"

_SECTIONS = {
    "decision": DecisionConfig,
    "learning": LearningConfig,
    "ai": AIConfig,
    "storage": StorageConfig,
}


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration from a TOML file.

    Missing sections fall back to their defaults. Unknown sections are
    ignored so a single file can also carry collaborator settings.

    Args:
        config_path: Path to a TOML file. Defaults to devpilot/config/defaults.toml.

    Returns:
        A validated EngineConfig.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If a section is not a table or fails validation.
    """
    path = config_path or CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    sections: dict[str, object] = {}
    for name, model in _SECTIONS.items():
        section = raw.get(name, {})
        if not isinstance(section, dict):
            raise ConfigError(f"[{name}] in {path} must be a table")
        try:
            sections[name] = model(**section)
        except ValidationError as e:
            raise ConfigError(f"Invalid [{name}] section in {path}: {e}") from e

    return EngineConfig(**sections)
