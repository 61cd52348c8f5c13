"""Outcome observer that feeds execution results back into learning."""

from __future__ import annotations

import logging

from devpilot.learning.tracker import PatternTracker
from devpilot.rules.registry import RuleRegistry
from devpilot.schemas.decisions import (
    LEARNABLE_STATUSES,
    ActStatus,
    ExecutionResult,
    RuleAnalysis,
)
from devpilot.schemas.tasks import Task

logger = logging.getLogger(__name__)


class PatternFeedback:
    """Records successes and failures with the pattern tracker.

    Successful executions whose act status is learnable strengthen the
    (task, solution) pattern. Executions that failed after an analysis was
    produced, or whose executor reported ``failed``, weaken it. When a
    registry is given, rule-backed outcomes also adjust that rule's
    confidence.

    Pending-approval outcomes are neither, and are ignored.
    """

    def __init__(self, tracker: PatternTracker, registry: RuleRegistry | None = None) -> None:
        self._tracker = tracker
        self._registry = registry

    async def on_outcome(self, task: Task, result: ExecutionResult) -> None:
        act = result.result
        analysis = result.analysis

        if result.success and act is not None and act.status in LEARNABLE_STATUSES:
            if act.solution:
                await self._tracker.track_success(
                    task,
                    act.solution,
                    {"action": act.action, "status": act.status},
                )
            self._rule_feedback(analysis, successful=True)
            return

        failed_action = result.success and act is not None and act.status == ActStatus.FAILED
        if (not result.success and analysis is not None) or failed_action:
            error = result.error or (act.details.get("error") if act else None)
            await self._tracker.track_failure(
                task,
                error,
                solution=analysis.solution if analysis is not None else None,
            )
            self._rule_feedback(analysis, successful=False)

    def _rule_feedback(self, analysis, *, successful: bool) -> None:
        if self._registry is None or not isinstance(analysis, RuleAnalysis):
            return
        confidence = self._registry.update_confidence(analysis.rule_id, successful)
        if confidence is not None:
            logger.debug(
                "Rule %s confidence now %.2f (%s)",
                analysis.rule_id, confidence, "success" if successful else "failure",
            )
