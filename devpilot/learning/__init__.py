"""Learning subsystem: pattern tracking, rule synthesis and scheduling."""

from devpilot.learning.scheduler import LearningScheduler
from devpilot.learning.store import PatternStore, close_db, init_db
from devpilot.learning.synthesizer import RuleSynthesizer
from devpilot.learning.tracker import PatternTracker, calculate_confidence

__all__ = [
    "LearningScheduler",
    "PatternStore",
    "PatternTracker",
    "RuleSynthesizer",
    "calculate_confidence",
    "close_db",
    "init_db",
]
