"""Long-term outcome memory used by the Learn phase and AI context."""

from devpilot.memory.outcomes import MemoryStore, OutcomeMemory, format_task_outcome

__all__ = ["MemoryStore", "OutcomeMemory", "format_task_outcome"]
