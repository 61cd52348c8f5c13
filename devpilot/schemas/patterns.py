"""Pattern schemas for the outcome tracker.

A Pattern is an empirically observed recurring problem signature with its
accumulated success and failure evidence.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

MAX_EXAMPLES = 5


class PatternExample(BaseModel):
    """A single observed (task, solution) pair kept on a pattern."""

    task: str | None = Field(default=None, description="Task description at the time")
    solution: str | None = Field(default=None, description="Solution that worked")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When it was observed",
    )


class Pattern(BaseModel):
    """Recurring problem signature with success/failure evidence."""

    signature: str = Field(description="Bounded canonical key (type:problem:solution)")
    problem_key: str = Field(description="Solution-independent part of the signature")
    type: str = Field(description="Task type the pattern was observed on")
    category: str | None = Field(default=None, description="Task category")
    keywords: list[str] = Field(
        default_factory=list, description="Problem vocabulary extracted from the task",
    )
    solution: str | None = Field(default=None, description="Solution that succeeded")
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    examples: list[PatternExample] = Field(
        default_factory=list, description=f"Most recent examples (at most {MAX_EXAMPLES})",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_seen: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def add_example(self, example: PatternExample) -> None:
        """Append an example, evicting the oldest beyond MAX_EXAMPLES."""
        self.examples.append(example)
        if len(self.examples) > MAX_EXAMPLES:
            self.examples = self.examples[-MAX_EXAMPLES:]


class TrackerStats(BaseModel):
    """Pattern tracker counters plus store totals."""

    patterns_detected: int = 0
    success_tracked: int = 0
    failures_tracked: int = 0
    unattached_failures: int = 0
    total_patterns: int = 0
    high_confidence_patterns: int = 0
