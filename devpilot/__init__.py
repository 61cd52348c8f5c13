"""DevPilot — adaptive decision engine for development-workflow events."""

__version__ = "0.1.0"

from .engine import DecisionLoop, PatternFeedback
from .rules import RuleRegistry
from .schemas import Task

__all__ = ["DecisionLoop", "PatternFeedback", "RuleRegistry", "Task"]
