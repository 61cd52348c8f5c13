"""Seed rule loader.

Reads the default rule set from rules.toml. Each ``[rules.<id>]`` table
becomes one Rule with source=seed.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from devpilot.errors import InvalidRuleError
from devpilot.schemas.rules import Rule, RuleSource
from devpilot.settings import CONFIG_DIR


def load_seed_rules(config_path: Path | None = None) -> list[Rule]:
    """Load seed rules from a TOML file.

    Args:
        config_path: Path to rules.toml. Defaults to devpilot/config/rules.toml.

    Returns:
        Rules in file order.

    Raises:
        FileNotFoundError: If the rules file does not exist.
        ValueError: If the file has no [rules] section.
        InvalidRuleError: If an entry is not a valid rule.
    """
    path = config_path or CONFIG_DIR / "rules.toml"
    if not path.exists():
        raise FileNotFoundError(f"Seed rules not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    rules_section = raw.get("rules")
    if not rules_section or not isinstance(rules_section, dict):
        raise ValueError(f"No [rules] section found in {path}")

    rules: list[Rule] = []
    for rule_id, entry in rules_section.items():
        if not isinstance(entry, dict):
            continue
        try:
            rules.append(Rule(id=rule_id, source=RuleSource.SEED, **entry))
        except ValidationError as e:
            raise InvalidRuleError(f"Invalid seed rule {rule_id!r} in {path}: {e}") from e

    return rules
