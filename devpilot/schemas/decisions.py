"""Decision loop schemas.

Each phase of the Analyze → Plan → Act → Learn cycle produces a typed value:
Analysis (a discriminated union of rule- and AI-backed analyses), Plan,
ActResult, and finally the ExecutionResult returned to the caller.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class LoopState(StrEnum):
    """States of a single decision-loop execution."""

    ANALYZING = "analyzing"
    PLANNING = "planning"
    ACTING = "acting"
    LEARNING = "learning"
    DONE = "done"
    FAILED = "failed"


class AnalysisMethod(StrEnum):
    """Which tier produced an analysis."""

    RULE = "rule"
    AI = "ai"


class RuleAnalysis(BaseModel):
    """Analysis backed by a matching rule."""

    method: Literal["rule"] = "rule"
    rule_id: str = Field(description="Id of the winning rule")
    confidence: float = Field(ge=0.0, le=1.0)
    action: str = Field(description="Action proposed by the rule")
    solution: str | None = Field(default=None)
    auto_fix: bool = Field(default=False)


class AIAnalysis(BaseModel):
    """Analysis produced by the AI fallback."""

    method: Literal["ai"] = "ai"
    analysis: str = Field(description="Free-text model response")
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    action: str = Field(default="ai_suggested")
    auto_fix: bool = Field(default=False)

    @property
    def solution(self) -> str:
        """The model's response doubles as the suggested solution."""
        return self.analysis


Analysis = Annotated[RuleAnalysis | AIAnalysis, Field(discriminator="method")]


class PlanType(StrEnum):
    """How an analysis will be acted on."""

    AUTO = "auto"
    CONFIDENT = "confident"
    MANUAL = "manual"


class Plan(BaseModel):
    """The chosen course of action for a task."""

    type: PlanType
    action: str
    solution: str | None = None
    requires_approval: bool = False


class ActStatus(StrEnum):
    """Well-known act statuses. Executors may return others."""

    COMPLETED = "completed"
    ACTION_SUGGESTED = "action_suggested"
    PENDING_APPROVAL = "pending_approval"
    FAILED = "failed"


# Act statuses whose outcome is worth remembering
LEARNABLE_STATUSES = frozenset({ActStatus.COMPLETED, ActStatus.ACTION_SUGGESTED})


class ActResult(BaseModel):
    """Result of executing (or deferring) a plan."""

    status: str = Field(description="Outcome status, e.g. 'completed'")
    action: str | None = None
    solution: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class AgentStats(BaseModel):
    """Raw counters owned by one decision loop."""

    tasks_completed: int = 0
    rules_used: int = 0
    ai_used: int = 0
    cache_hits: int = 0
    errors: int = 0


class StatsSnapshot(AgentStats):
    """Counters plus derived usage rates in [0, 1]."""

    rule_usage_rate: float = 0.0
    ai_usage_rate: float = 0.0
    cache_hit_rate: float = 0.0

    @classmethod
    def from_stats(cls, stats: AgentStats) -> StatsSnapshot:
        resolved = stats.rules_used + stats.ai_used
        rule_rate = stats.rules_used / resolved if resolved else 0.0
        return cls(
            **stats.model_dump(),
            rule_usage_rate=rule_rate,
            ai_usage_rate=(stats.ai_used / resolved) if resolved else 0.0,
            cache_hit_rate=(
                stats.cache_hits / stats.tasks_completed if stats.tasks_completed else 0.0
            ),
        )


class ExecutionResult(BaseModel):
    """What execute() returns: either a result or an error, never both."""

    success: bool
    execution_id: str
    result: ActResult | None = None
    error: str | None = None
    state: LoopState = LoopState.DONE
    failed_in: LoopState | None = Field(
        default=None, description="Phase that raised, when success is False",
    )
    analysis: RuleAnalysis | AIAnalysis | None = None
    duration_seconds: float = 0.0
    stats: StatsSnapshot | None = None
