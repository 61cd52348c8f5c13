"""Action executor — maps plan actions to concrete side effects.

Callers register a handler per action name (send a chat notification,
re-queue a build, reassign a work item). Actions with no handler complete
as a plain echo so the loop never stalls on an unknown action.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from devpilot.schemas.decisions import ActResult, ActStatus
from devpilot.schemas.tasks import Task

logger = logging.getLogger(__name__)

ActionHandler = Callable[[str | None, Task], Awaitable[ActResult]]


class Executor(Protocol):
    async def execute(self, action: str, solution: str | None, task: Task) -> ActResult: ...


async def suggest(solution: str | None, task: Task) -> ActResult:
    """Record a suggestion without acting on it."""
    return ActResult(
        status=ActStatus.ACTION_SUGGESTED,
        action="ai_suggested",
        solution=solution,
        details={"task_type": task.type},
    )


class ActionExecutor:
    """Registry of action handlers with a ``completed`` echo fallback."""

    def __init__(self, handlers: dict[str, ActionHandler] | None = None) -> None:
        self._handlers: dict[str, ActionHandler] = {"ai_suggested": suggest}
        self._handlers.update(handlers or {})

    def register(self, action: str, handler: ActionHandler) -> None:
        self._handlers[action] = handler

    def __contains__(self, action: object) -> bool:
        return action in self._handlers

    async def execute(self, action: str, solution: str | None, task: Task) -> ActResult:
        handler = self._handlers.get(action)
        if handler is None:
            logger.debug("No handler for action %s, echoing as completed", action)
            return ActResult(status=ActStatus.COMPLETED, action=action, solution=solution)

        logger.info("Executing action %s for task %s", action, task.id)
        return await handler(solution, task)
