from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from devpilot.schemas.decisions import ActResult
from devpilot.schemas.tasks import Task

logger = logging.getLogger(__name__)


class MemoryStore(Protocol):
    async def store(self, content: str, metadata: dict[str, Any]) -> str: ...

    async def build_context(self, task: Task, max_memories: int = 3) -> str: ...


def format_task_outcome(task: Task, result: ActResult) -> str:
    """Plain-text summary of a task and how it was resolved."""
    lines = [
        f"Task: {task.type}",
        f"Description: {task.description or 'N/A'}",
        "Outcome: Success",
    ]
    if result.solution:
        lines.append(f"Solution: {result.solution}")
    if result.action:
        lines.append(f"Action: {result.action}")
    return "\n".join(lines) + "\n"


class OutcomeMemory:
    """Append-only JSONL log of resolved tasks, reused as AI prompt context."""

    def __init__(self, memory_dir: Path | str) -> None:
        self.memory_dir = Path(memory_dir).expanduser()
        self.outcomes_file = self.memory_dir / "outcomes.jsonl"

    async def store(self, content: str, metadata: dict[str, Any]) -> str:
        """Append one memory; returns its id."""
        memory_id = str(uuid4())
        record = {
            "memory_id": memory_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "content": content,
            "metadata": metadata,
        }
        await asyncio.to_thread(self._append, record)
        return memory_id

    def _append(self, record: dict[str, Any]) -> None:
        self.memory_dir.mkdir(parents=True, exist_ok=True)
        with open(self.outcomes_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    async def store_task_outcome(self, task: Task, result: ActResult) -> str:
        return await self.store(
            format_task_outcome(task, result),
            {
                "type": task.type,
                "category": task.category,
                "success": True,
                "status": result.status,
                "task_id": task.id,
            },
        )

    def query(self, type: str | None = None, limit: int | None = None) -> list[dict]:
        """Stored memories, oldest first, optionally filtered by task type."""
        results: list[dict] = []
        if not self.outcomes_file.exists():
            return results

        with open(self.outcomes_file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if type and record.get("metadata", {}).get("type") != type:
                    continue
                results.append(record)

        if limit:
            results = results[-limit:]
        return results

    async def build_context(self, task: Task, max_memories: int = 3) -> str:
        """Recent same-type outcomes formatted as prompt context ('' if none)."""
        if max_memories <= 0:
            return ""
        memories = await asyncio.to_thread(self.query, task.type, max_memories)
        if not memories:
            return ""

        parts = ["Relevant past outcomes:"]
        for i, memory in enumerate(reversed(memories), start=1):
            parts.append(f"[{i}] {memory['content'].strip()}")
        return "\n".join(parts)
