"""Rule registry: seed rules, matching and confidence feedback."""

from devpilot.rules.registry import RuleRegistry
from devpilot.rules.seed import load_seed_rules
from devpilot.rules.text import canonical_json, matchable_text, to_match_text

__all__ = [
    "RuleRegistry",
    "canonical_json",
    "load_seed_rules",
    "matchable_text",
    "to_match_text",
]
