"""Tests for the TOML loaders: seed rules and engine configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from devpilot.errors import ConfigError, InvalidRuleError
from devpilot.rules.seed import load_seed_rules
from devpilot.schemas.config import EngineConfig
from devpilot.schemas.rules import RuleSource
from devpilot.settings import load_engine_config


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


# ── Seed rules ─────────────────────────────────────────────────────


class TestLoadSeedRules:
    def test_shipped_rules(self):
        rules = load_seed_rules()
        ids = [r.id for r in rules]

        assert len(rules) == 10
        assert ids[0] == "install-failed"
        assert all(r.source == RuleSource.SEED for r in rules)
        assert {r.category for r in rules} == {"build", "pr", "workitem"}

    def test_install_failed_definition(self):
        rule = next(r for r in load_seed_rules() if r.id == "install-failed")
        assert rule.confidence == 0.9
        assert rule.auto_fix is True
        assert rule.action == "retry_with_clean_cache"

    def test_custom_file(self, tmp_path):
        path = _write(tmp_path, "rules.toml", """
[rules.flaky]
category = "build"
pattern = 'flaky'
action = "rerun"
confidence = 0.6
""")
        (rule,) = load_seed_rules(path)
        assert rule.id == "flaky"
        assert rule.confidence == 0.6

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_seed_rules(tmp_path / "nope.toml")

    def test_missing_rules_section(self, tmp_path):
        path = _write(tmp_path, "rules.toml", "[other]\nkey = 1\n")
        with pytest.raises(ValueError, match="No \\[rules\\] section"):
            load_seed_rules(path)

    def test_invalid_entry(self, tmp_path):
        path = _write(tmp_path, "rules.toml", """
[rules.broken]
pattern = 'x'
action = "a"
confidence = 3.0
""")
        with pytest.raises(InvalidRuleError, match="broken"):
            load_seed_rules(path)


# ── Engine config ──────────────────────────────────────────────────


class TestLoadEngineConfig:
    def test_shipped_defaults_match_model_defaults(self):
        assert load_engine_config() == EngineConfig()

    def test_shipped_values(self):
        config = load_engine_config()
        assert config.decision.rule_confidence_threshold == 0.7
        assert config.decision.rule_cache_ttl == 86_400
        assert config.learning.min_confidence == 0.85
        assert config.learning.min_success_count == 5
        assert config.ai.model == "gpt-4o-mini"

    def test_partial_file_uses_defaults(self, tmp_path):
        path = _write(tmp_path, "engine.toml", "[learning]\nmin_success_count = 3\n")
        config = load_engine_config(path)
        assert config.learning.min_success_count == 3
        assert config.learning.min_confidence == 0.85
        assert config.decision.confident_plan_threshold == 0.8

    def test_unknown_sections_ignored(self, tmp_path):
        path = _write(tmp_path, "engine.toml", "[webhooks]\nport = 8080\n")
        assert load_engine_config(path) == EngineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.toml")

    def test_section_must_be_table(self, tmp_path):
        path = _write(tmp_path, "engine.toml", 'decision = "fast"\n')
        with pytest.raises(ConfigError, match="must be a table"):
            load_engine_config(path)

    def test_invalid_value(self, tmp_path):
        path = _write(tmp_path, "engine.toml", "[decision]\nrule_confidence_threshold = 2.0\n")
        with pytest.raises(ValueError, match="Invalid \\[decision\\]"):
            load_engine_config(path)
