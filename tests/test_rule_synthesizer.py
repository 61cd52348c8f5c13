"""Tests for devpilot.learning.synthesizer — patterns become learned rules."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest

from devpilot.learning.store import PatternStore, close_db, init_db
from devpilot.learning.synthesizer import (
    RuleSynthesizer,
    extract_action,
    learned_rule_id,
)
from devpilot.learning.tracker import PatternTracker
from devpilot.rules.registry import RuleRegistry
from devpilot.schemas.patterns import Pattern
from devpilot.schemas.rules import RuleSource


# ── Factories ──────────────────────────────────────────────────────


def _make_pattern(signature: str = "build_failed:npm install failed:npm ci", **overrides) -> Pattern:
    defaults = {
        "signature": signature,
        "problem_key": signature.rsplit(":", 1)[0],
        "type": "build_failed",
        "category": "build",
        "keywords": ["npm", "failed"],
        "solution": "retry with npm ci",
        "success_count": 6,
        "failure_count": 0,
        "confidence": 0.90,
    }
    defaults.update(overrides)
    return Pattern(**defaults)


@asynccontextmanager
async def _open_synthesizer(*patterns: Pattern):
    db = await init_db(":memory:")
    store = PatternStore(db)
    for pattern in patterns:
        await store.insert(pattern)
    registry = RuleRegistry()
    try:
        yield RuleSynthesizer(PatternTracker(store), registry), registry
    finally:
        await close_db(db)


# ── Helpers ────────────────────────────────────────────────────────


class TestHelpers:
    @pytest.mark.parametrize(
        ("solution", "action"),
        [
            ("Retry the build", "retry_with_solution"),
            ("run npm ci", "retry_with_solution"),
            ("Escalate to on-call", "escalate"),
            ("notify the owner", "notify"),
            ("bump the timeout", "apply_learned_solution"),
            (None, "apply_learned_solution"),
        ],
    )
    def test_extract_action(self, solution, action):
        assert extract_action(solution) == action

    def test_learned_rule_id_truncates(self):
        assert learned_rule_id("x" * 80) == "learned-" + "x" * 30

    def test_create_rule(self):
        rule = RuleSynthesizer.create_rule(_make_pattern(confidence=0.92), "learned-a")
        assert rule.pattern == "npm|failed"
        assert rule.source == RuleSource.LEARNED
        assert rule.auto_fix is True
        assert rule.learned_from == "build_failed:npm install failed:npm ci"

    def test_create_rule_escapes_and_filters_keywords(self):
        rule = RuleSynthesizer.create_rule(
            _make_pattern(keywords=["c++", "ok", "build"], confidence=0.9), "learned-b",
        )
        assert rule.pattern == r"c\+\+|build"
        assert rule.auto_fix is False

    def test_create_rule_without_keywords(self):
        assert RuleSynthesizer.create_rule(_make_pattern(keywords=["ok"]), "x") is None


# ── generate_rules ─────────────────────────────────────────────────


class TestGenerateRules:
    @pytest.mark.asyncio
    async def test_qualifying_pattern_generates_rule(self):
        pattern = _make_pattern()
        async with _open_synthesizer(pattern) as (synthesizer, registry):
            count = await synthesizer.generate_rules(0.85, 5)

        rule_id = learned_rule_id(pattern.signature)
        assert count == 1
        assert rule_id in registry
        assert synthesizer.generated_rule_ids == {rule_id}
        assert registry.match("npm failed").rule.id == rule_id

    @pytest.mark.asyncio
    async def test_too_few_successes(self):
        async with _open_synthesizer(_make_pattern(success_count=4)) as (synthesizer, registry):
            count = await synthesizer.generate_rules(0.85, 5)
        assert count == 0
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_low_confidence(self):
        async with _open_synthesizer(_make_pattern(confidence=0.8)) as (synthesizer, _):
            assert await synthesizer.generate_rules(0.85, 5) == 0

    @pytest.mark.asyncio
    async def test_second_call_generates_nothing(self):
        async with _open_synthesizer(_make_pattern()) as (synthesizer, _):
            assert await synthesizer.generate_rules(0.85, 5) == 1
            assert await synthesizer.generate_rules(0.85, 5) == 0

    @pytest.mark.asyncio
    async def test_existing_enabled_rule_is_not_replaced(self):
        pattern = _make_pattern()
        async with _open_synthesizer(pattern) as (synthesizer, registry):
            registry.add_rule({
                "id": learned_rule_id(pattern.signature),
                "pattern": "manual",
                "action": "notify",
            })
            assert await synthesizer.generate_rules(0.85, 5) == 0
            assert registry.get_rule(learned_rule_id(pattern.signature)).pattern == "manual"

    @pytest.mark.asyncio
    async def test_pattern_without_keywords_skipped(self):
        async with _open_synthesizer(_make_pattern(keywords=[])) as (synthesizer, _):
            assert await synthesizer.generate_rules(0.85, 5) == 0


# ── review_rules ───────────────────────────────────────────────────


class TestReviewRules:
    @pytest.mark.asyncio
    async def test_weak_unused_rule_disabled_then_regenerated(self):
        pattern = _make_pattern(confidence=0.55, success_count=2)
        rule_id = learned_rule_id(pattern.signature)
        async with _open_synthesizer(pattern) as (synthesizer, registry):
            assert await synthesizer.generate_rules(0.5, 1) == 1

            assert await synthesizer.review_rules() == 0
            assert registry.get_rule(rule_id).enabled is False
            assert rule_id not in synthesizer.generated_rule_ids
            assert registry.match("npm failed").matched is False

            assert await synthesizer.generate_rules(0.5, 1) == 1
            assert registry.get_rule(rule_id).enabled is True

    @pytest.mark.asyncio
    async def test_heavily_used_rule_boosted(self):
        pattern = _make_pattern()
        rule_id = learned_rule_id(pattern.signature)
        async with _open_synthesizer(pattern) as (synthesizer, registry):
            await synthesizer.generate_rules(0.85, 5)
            for _ in range(6):
                registry.match("npm install failed")

            assert await synthesizer.review_rules() == 1
            assert registry.get_rule(rule_id).confidence == pytest.approx(0.91)
            assert rule_id in synthesizer.generated_rule_ids

    @pytest.mark.asyncio
    async def test_weak_rule_with_hits_kept(self):
        pattern = _make_pattern(confidence=0.55, success_count=2)
        rule_id = learned_rule_id(pattern.signature)
        async with _open_synthesizer(pattern) as (synthesizer, registry):
            await synthesizer.generate_rules(0.5, 1)
            registry.match("failed")

            assert await synthesizer.review_rules() == 0
            assert registry.get_rule(rule_id).enabled is True

    @pytest.mark.asyncio
    async def test_stats(self):
        pattern = _make_pattern()
        async with _open_synthesizer(pattern) as (synthesizer, _):
            await synthesizer.generate_rules(0.85, 5)
        assert synthesizer.get_stats() == {
            "generated_rules": 1,
            "rule_ids": [learned_rule_id(pattern.signature)],
        }


# ── Volume and concurrency ─────────────────────────────────────────


class TestGenerateRulesAtVolume:
    @pytest.mark.asyncio
    async def test_every_qualifying_pattern_gets_a_rule(self):
        patterns = [
            _make_pattern(f"p{i:02d}:build_failed:npm ci", confidence=0.93)
            for i in range(25)
        ]
        async with _open_synthesizer(*patterns) as (synthesizer, registry):
            first = await synthesizer.generate_rules(0.85, 5)
            second = await synthesizer.generate_rules(0.85, 5)

        assert first == 25
        assert second == 0
        assert len(registry) == 25

    @pytest.mark.asyncio
    async def test_weaker_pattern_not_starved_by_stronger_ones(self):
        strong = [
            _make_pattern(f"s{i:02d}:build_failed:npm ci", confidence=0.95)
            for i in range(20)
        ]
        late = _make_pattern("late:build_failed:npm ci", confidence=0.86)
        async with _open_synthesizer(*strong, late) as (synthesizer, registry):
            assert await synthesizer.generate_rules(0.85, 5) == 21
        assert learned_rule_id(late.signature) in registry

    @pytest.mark.asyncio
    async def test_concurrent_generation_registers_once(self):
        async with _open_synthesizer(_make_pattern()) as (synthesizer, registry):
            counts = await asyncio.gather(
                synthesizer.generate_rules(0.85, 5),
                synthesizer.generate_rules(0.85, 5),
            )
        assert sum(counts) == 1
        assert len(registry) == 1
