"""Canonical text forms of task input for rule matching and cache keys."""

from __future__ import annotations

import json
from typing import Any

from devpilot.schemas.tasks import Task


def canonical_json(value: Any) -> str:
    """Deterministic JSON: sorted keys, compact separators, str() for the rest."""
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str,
    )


def to_match_text(value: Any) -> str:
    """Strings pass through unchanged; everything else is canonical JSON."""
    if isinstance(value, str):
        return value
    return canonical_json(value)


def matchable_text(task: Task) -> str:
    """Text a task is matched on: its description, else its serialized data."""
    if task.description:
        return task.description
    return canonical_json(task.data)
