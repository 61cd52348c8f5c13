"""Task schema — the unit of work handed to the decision loop.

A Task is produced by an ingestion collaborator (webhook, poller) for every
observed pipeline event and consumed exactly once by one execution.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskPriority(StrEnum):
    """Conventional priority labels used by ingestion collaborators."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Task(BaseModel):
    """An observed pipeline event awaiting a decision.

    Immutable once created. ``type`` names the event kind (``build_failed``,
    ``pr_idle``, ``workitem_blocked``), ``category`` selects the rule family
    (``build``, ``pr``, ``workitem``).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Unique task identifier",
    )
    type: str = Field(min_length=1, description="Event kind that produced this task")
    category: str | None = Field(
        default=None, description="Rule category used to filter matching",
    )
    description: str | None = Field(
        default=None, description="Human-readable summary of the event",
    )
    data: dict[str, Any] = Field(
        default_factory=dict, description="Raw structured event payload",
    )
    priority: str = Field(default=TaskPriority.NORMAL, description="Priority label")
    context: dict[str, Any] = Field(
        default_factory=dict, description="Extra context supplied by the producer",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the event was observed",
    )
