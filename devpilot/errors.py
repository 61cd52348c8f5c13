"""Exception types raised by the devpilot decision engine."""

from __future__ import annotations


class DevpilotError(Exception):
    """Base class for all devpilot errors."""


class InvalidRuleError(DevpilotError):
    """A rule is missing a required field or its pattern does not compile."""


class DuplicateRuleError(InvalidRuleError):
    """A rule with the same id is already registered."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule '{rule_id}' is already registered")
        self.rule_id = rule_id


class ConfigError(DevpilotError, ValueError):
    """Engine configuration could not be parsed into a valid EngineConfig."""
