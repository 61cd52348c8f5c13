"""Decision engine: tiered resolution, planning and action execution."""

from devpilot.engine.actions import ActionExecutor, suggest
from devpilot.engine.ai import LiteLLMQuery, build_analysis_prompt
from devpilot.engine.cache import CacheManager, TTLCache
from devpilot.engine.feedback import PatternFeedback
from devpilot.engine.loop import DecisionLoop, OutcomeObserver

__all__ = [
    "ActionExecutor",
    "CacheManager",
    "DecisionLoop",
    "LiteLLMQuery",
    "OutcomeObserver",
    "PatternFeedback",
    "TTLCache",
    "build_analysis_prompt",
    "suggest",
]
