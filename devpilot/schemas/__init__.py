"""devpilot schema definitions.

All Pydantic v2 models shared by the rule registry, the learning subsystem
and the decision loop.
"""

from devpilot.schemas.config import (
    AIConfig,
    DecisionConfig,
    EngineConfig,
    LearningConfig,
    StorageConfig,
)
from devpilot.schemas.decisions import (
    LEARNABLE_STATUSES,
    ActResult,
    ActStatus,
    AgentStats,
    AIAnalysis,
    Analysis,
    AnalysisMethod,
    ExecutionResult,
    LoopState,
    Plan,
    PlanType,
    RuleAnalysis,
    StatsSnapshot,
)
from devpilot.schemas.patterns import (
    MAX_EXAMPLES,
    Pattern,
    PatternExample,
    TrackerStats,
)
from devpilot.schemas.rules import (
    MatchResult,
    Rule,
    RuleExport,
    RuleHit,
    RuleRegistryStats,
    RuleSource,
)
from devpilot.schemas.tasks import Task, TaskPriority

__all__ = [
    "AIAnalysis",
    "AIConfig",
    "ActResult",
    "ActStatus",
    "AgentStats",
    "Analysis",
    "AnalysisMethod",
    "DecisionConfig",
    "EngineConfig",
    "ExecutionResult",
    "LEARNABLE_STATUSES",
    "LearningConfig",
    "LoopState",
    "MAX_EXAMPLES",
    "MatchResult",
    "Pattern",
    "PatternExample",
    "Plan",
    "PlanType",
    "Rule",
    "RuleAnalysis",
    "RuleExport",
    "RuleHit",
    "RuleRegistryStats",
    "RuleSource",
    "StatsSnapshot",
    "StorageConfig",
    "Task",
    "TaskPriority",
    "TrackerStats",
]
