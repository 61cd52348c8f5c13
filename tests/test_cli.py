"""Tests for the devpilot CLI via CliRunner."""

from __future__ import annotations

import asyncio
import json

from typer.testing import CliRunner

from devpilot import __version__
from devpilot.cli import app
from devpilot.learning.store import PatternStore, close_db, init_db
from devpilot.schemas.patterns import Pattern

# NO_COLOR=1 keeps Rich from injecting ANSI codes into the output.
# COLUMNS=200 prevents wrapping that could split identifiers across lines.
runner = CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})


# ── Factories ──────────────────────────────────────────────────────


def _seed_db(db_path: str, *patterns: Pattern) -> None:
    async def _seed():
        db = await init_db(db_path)
        store = PatternStore(db)
        for pattern in patterns:
            await store.insert(pattern)
        await close_db(db)

    asyncio.run(_seed())


def _make_pattern(**overrides) -> Pattern:
    defaults = {
        "signature": "build_failed:npm install failed:npm ci",
        "problem_key": "build_failed:npm install failed",
        "type": "build_failed",
        "category": "build",
        "keywords": ["npm", "failed"],
        "solution": "retry with npm ci",
        "success_count": 9,
        "failure_count": 0,
        "confidence": 0.95,
    }
    defaults.update(overrides)
    return Pattern(**defaults)


# ── Help / version ─────────────────────────────────────────────────


class TestHelp:
    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("rules", "match", "patterns", "learn", "cleanup"):
            assert command in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_patterns_help(self):
        result = runner.invoke(app, ["patterns", "--help"])
        assert result.exit_code == 0
        assert "--min-confidence" in result.output
        assert "--db" in result.output


# ── Rules ──────────────────────────────────────────────────────────


class TestRulesCommands:
    def test_rules_lists_seed_rules(self):
        result = runner.invoke(app, ["rules"])
        assert result.exit_code == 0
        assert "Rules (10)" in result.output
        assert "install-failed" in result.output
        assert "work-item-unassigned" in result.output

    def test_rules_by_category(self):
        result = runner.invoke(app, ["rules", "--category", "pr"])
        assert result.exit_code == 0
        assert "Rules (3)" in result.output
        assert "install-failed" not in result.output

    def test_rules_unknown_category(self):
        result = runner.invoke(app, ["rules", "-c", "nope"])
        assert result.exit_code == 0
        assert "No rules found" in result.output

    def test_match(self):
        result = runner.invoke(
            app, ["match", "install failed: cannot find module", "--category", "build"],
        )
        assert result.exit_code == 0
        assert "install-failed" in result.output
        assert "retry_with_clean_cache" in result.output
        assert "0.90" in result.output

    def test_no_match_exits_nonzero(self):
        result = runner.invoke(app, ["match", "everything is fine"])
        assert result.exit_code == 1
        assert "No rule matched" in result.output

    def test_learned_rules_file(self, tmp_path):
        learned = tmp_path / "learned.json"
        learned.write_text(json.dumps([{
            "id": "learned-linker",
            "category": "build",
            "pattern": "linker",
            "action": "notify",
            "confidence": 0.92,
            "source": "learned",
        }]))
        result = runner.invoke(app, ["match", "linker exploded", "--learned", str(learned)])
        assert result.exit_code == 0
        assert "learned-linker" in result.output

    def test_invalid_learned_file(self, tmp_path):
        learned = tmp_path / "learned.json"
        learned.write_text("[{")
        result = runner.invoke(app, ["rules", "--learned", str(learned)])
        assert result.exit_code == 1
        assert "Failed to load rules" in result.output


# ── Patterns / learn / cleanup ─────────────────────────────────────


class TestPatternCommands:
    def test_patterns_empty(self, tmp_path):
        result = runner.invoke(app, ["patterns", "--db", str(tmp_path / "p.db")])
        assert result.exit_code == 0
        assert "No patterns found" in result.output

    def test_patterns_listed(self, tmp_path):
        db_path = str(tmp_path / "p.db")
        _seed_db(db_path, _make_pattern())
        result = runner.invoke(app, ["patterns", "--db", db_path])
        assert result.exit_code == 0
        assert "Patterns (1 shown)" in result.output
        assert "retry with npm ci" in result.output

    def test_learn_generates_and_exports(self, tmp_path):
        db_path = str(tmp_path / "p.db")
        output = tmp_path / "learned.json"
        _seed_db(db_path, _make_pattern())

        result = runner.invoke(app, ["learn", "--db", db_path, "--output", str(output)])

        assert result.exit_code == 0
        assert "Generated rules (1)" in result.output
        exported = json.loads(output.read_text())
        assert [e["source"] for e in exported] == ["learned"]
        assert exported[0]["pattern"] == "npm|failed"

    def test_learn_nothing_qualifies(self, tmp_path):
        db_path = str(tmp_path / "p.db")
        _seed_db(db_path, _make_pattern(success_count=2))
        result = runner.invoke(app, ["learn", "--db", db_path])
        assert result.exit_code == 0
        assert "No patterns qualified" in result.output

    def test_cleanup(self, tmp_path):
        from datetime import UTC, datetime, timedelta

        db_path = str(tmp_path / "p.db")
        old = datetime.now(UTC) - timedelta(days=200)
        _seed_db(
            db_path,
            _make_pattern(success_count=1, last_seen=old),
            _make_pattern(signature="build_failed:x:y", last_seen=old),
        )

        result = runner.invoke(app, ["cleanup", "--db", db_path, "--days", "90"])

        assert result.exit_code == 0
        assert "Deleted 1 pattern(s)" in result.output

    def test_bad_config(self, tmp_path):
        result = runner.invoke(
            app, ["cleanup", "--db", str(tmp_path / "p.db"), "--config", str(tmp_path / "no.toml")],
        )
        assert result.exit_code == 1
        assert "Config error" in result.output
