"""Rule schemas for the rule registry.

Defines the Rule model (a named pattern → action mapping with a confidence
score), the MatchResult returned by RuleRegistry.match(), and the flattened
RuleExport used for backup and audit.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class RuleSource(StrEnum):
    """Where a rule came from."""

    SEED = "seed"
    LEARNED = "learned"


class Rule(BaseModel):
    """A pattern → action mapping carrying a confidence score.

    ``pattern`` holds the regular expression source. The registry compiles it
    once, case-insensitively, when the rule is registered.
    """

    id: str = Field(min_length=1, description="Unique rule identifier")
    category: str | None = Field(
        default=None, description="Rule family ('build', 'pr', 'workitem')",
    )
    pattern: str = Field(min_length=1, description="Regular expression source")
    action: str = Field(min_length=1, description="Action dispatched when the rule wins")
    confidence: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Confidence in the rule's action",
    )
    solution: str | None = Field(default=None, description="Suggested remediation text")
    auto_fix: bool = Field(
        default=False, description="Whether the action is safe without human approval",
    )
    match_count: int = Field(default=0, ge=0, description="Times this rule has matched")
    enabled: bool = Field(default=True, description="Disabled rules never match")
    source: RuleSource = Field(default=RuleSource.SEED, description="Seed or learned")
    learned_from: str | None = Field(
        default=None, description="Pattern signature a learned rule was built from",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Registration time",
    )


class MatchResult(BaseModel):
    """Outcome of matching one input against the registry.

    ``rule`` is the primary (highest-confidence) match; ``all_matches``
    lists every rule that matched, in the same order used to pick it.
    """

    matched: bool = Field(description="Whether at least one rule matched")
    rule: Rule | None = Field(default=None, description="Primary matching rule")
    confidence: float = Field(default=0.0, description="Primary rule confidence")
    action: str | None = Field(default=None, description="Primary rule action")
    solution: str | None = Field(default=None, description="Primary rule solution")
    auto_fix: bool = Field(default=False, description="Primary rule auto_fix flag")
    all_matches: list[Rule] = Field(
        default_factory=list, description="Every matching rule, best first",
    )


class RuleExport(BaseModel):
    """Serialized rule for backup/audit — the matcher as its pattern source."""

    id: str
    category: str | None = None
    pattern: str
    action: str
    confidence: float
    solution: str | None = None
    auto_fix: bool = False
    match_count: int = 0
    enabled: bool = True
    source: RuleSource = RuleSource.SEED


class RuleHit(BaseModel):
    """One entry of the registry's top-rules listing."""

    id: str
    hits: int


class RuleRegistryStats(BaseModel):
    """Aggregate registry statistics."""

    total_rules: int = Field(description="Number of registered rules")
    total_matches: int = Field(description="match() calls that produced at least one match")
    rule_hits: dict[str, int] = Field(default_factory=dict, description="Hits per rule id")
    top_rules: list[RuleHit] = Field(
        default_factory=list, description="Top 5 rules by hits",
    )
