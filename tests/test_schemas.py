"""Tests for devpilot.schemas — tasks, rules, patterns and decisions."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from devpilot.schemas import (
    MAX_EXAMPLES,
    AgentStats,
    AIAnalysis,
    Analysis,
    Pattern,
    PatternExample,
    RuleAnalysis,
    StatsSnapshot,
    Task,
    TaskPriority,
)


class TestTask:
    def test_defaults(self):
        task = Task(type="pr_idle")
        assert task.id
        assert task.priority == TaskPriority.NORMAL
        assert task.data == {}

    def test_frozen(self):
        task = Task(type="pr_idle")
        with pytest.raises(ValidationError):
            task.type = "other"

    def test_type_required(self):
        with pytest.raises(ValidationError):
            Task(type="")


class TestAnalysisUnion:
    def test_discriminates_on_method(self):
        adapter = TypeAdapter(Analysis)
        rule = adapter.validate_python(
            {"method": "rule", "rule_id": "r", "confidence": 0.9, "action": "retry"}
        )
        ai = adapter.validate_python({"method": "ai", "analysis": "look closer"})

        assert isinstance(rule, RuleAnalysis)
        assert isinstance(ai, AIAnalysis)
        assert ai.solution == "look closer"
        assert ai.action == "ai_suggested"

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Analysis).validate_python({"method": "guess", "analysis": "x"})


class TestPattern:
    def test_examples_fifo(self):
        pattern = Pattern(signature="s", problem_key="p", type="t")
        for i in range(MAX_EXAMPLES + 2):
            pattern.add_example(PatternExample(solution=str(i)))
        assert [e.solution for e in pattern.examples] == ["2", "3", "4", "5", "6"]


class TestStatsSnapshot:
    def test_rates(self):
        snapshot = StatsSnapshot.from_stats(
            AgentStats(tasks_completed=4, rules_used=3, ai_used=1, cache_hits=1)
        )
        assert snapshot.rule_usage_rate == 0.75
        assert snapshot.ai_usage_rate == 0.25
        assert snapshot.cache_hit_rate == 0.25

    def test_zero_denominators(self):
        snapshot = StatsSnapshot.from_stats(AgentStats(errors=3))
        assert snapshot.rule_usage_rate == 0.0
        assert snapshot.ai_usage_rate == 0.0
        assert snapshot.cache_hit_rate == 0.0
        assert snapshot.errors == 3
