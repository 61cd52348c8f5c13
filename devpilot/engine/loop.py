"""Decision loop — ties analyze → plan → act → learn together.

Resolution is tiered. A cached analysis wins outright, then a confident rule
match, and only then the AI fallback. Every execution returns an
ExecutionResult; a fault in any phase is reported in the result rather than
raised to the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Protocol
from uuid import uuid4

from devpilot.engine.actions import ActionExecutor, Executor
from devpilot.engine.ai import AIQuery, LiteLLMQuery, build_analysis_prompt
from devpilot.engine.cache import Cache, CacheManager
from devpilot.memory.outcomes import MemoryStore, format_task_outcome
from devpilot.rules.registry import RuleRegistry
from devpilot.rules.text import matchable_text
from devpilot.schemas.config import AIConfig, DecisionConfig
from devpilot.schemas.decisions import (
    LEARNABLE_STATUSES,
    ActResult,
    ActStatus,
    AgentStats,
    AIAnalysis,
    ExecutionResult,
    LoopState,
    Plan,
    PlanType,
    RuleAnalysis,
    StatsSnapshot,
)
from devpilot.schemas.tasks import Task

logger = logging.getLogger(__name__)

_ANALYSIS_NS = "analysis"


class OutcomeObserver(Protocol):
    """Notified once per execution, after the result is final."""

    async def on_outcome(self, task: Task, result: ExecutionResult) -> None: ...


class DecisionLoop:
    """Resolves tasks through cache, rules, then AI, and acts on the plan."""

    def __init__(
        self,
        registry: RuleRegistry,
        *,
        cache: Cache | None = None,
        ai: AIQuery | None = None,
        memory: MemoryStore | None = None,
        executor: Executor | None = None,
        observers: Iterable[OutcomeObserver] = (),
        config: DecisionConfig | None = None,
        ai_config: AIConfig | None = None,
        name: str = "decision-loop",
    ) -> None:
        self.name = name
        self._registry = registry
        self._cache = cache if cache is not None else CacheManager()
        self._ai_config = ai_config or AIConfig()
        self._ai = ai if ai is not None else LiteLLMQuery(self._ai_config)
        self._memory = memory
        self._executor = executor if executor is not None else ActionExecutor()
        self._observers: list[OutcomeObserver] = list(observers)
        self._config = config or DecisionConfig()
        self._stats = AgentStats()

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def add_observer(self, observer: OutcomeObserver) -> None:
        self._observers.append(observer)

    async def execute(self, task: Task) -> ExecutionResult:
        """Run one full analyze → plan → act → learn cycle for a task."""
        execution_id = str(uuid4())
        start = time.monotonic()
        state = LoopState.ANALYZING
        analysis: RuleAnalysis | AIAnalysis | None = None

        logger.info("[%s] Executing task %s (%s)", self.name, task.id, task.type)
        try:
            analysis = await self.analyze(task)
            state = LoopState.PLANNING
            plan = self.plan(analysis)
            state = LoopState.ACTING
            act_result = await self.act(plan, task)
            state = LoopState.LEARNING
            await self.learn(task, act_result)
        except Exception as e:
            self._stats.errors += 1
            logger.error(
                "[%s] Task %s failed while %s: %s", self.name, task.id, state, e,
            )
            outcome = ExecutionResult(
                success=False,
                execution_id=execution_id,
                error=str(e) or type(e).__name__,
                state=LoopState.FAILED,
                failed_in=state,
                analysis=analysis,
                duration_seconds=time.monotonic() - start,
                stats=self.get_stats(),
            )
        else:
            self._stats.tasks_completed += 1
            outcome = ExecutionResult(
                success=True,
                execution_id=execution_id,
                result=act_result,
                analysis=analysis,
                duration_seconds=time.monotonic() - start,
                stats=self.get_stats(),
            )

        await self._notify(task, outcome)
        return outcome

    async def analyze(self, task: Task) -> RuleAnalysis | AIAnalysis:
        key = self._cache.generate_key(_ANALYSIS_NS, {"type": task.type, "data": task.data})
        cached = self._cache.get(_ANALYSIS_NS, key)
        if cached is not None:
            self._stats.cache_hits += 1
            logger.debug("[%s] Cache hit for task %s", self.name, task.id)
            return cached

        match = self._registry.match(matchable_text(task), task.category)
        if match.matched and match.confidence > self._config.rule_confidence_threshold:
            analysis: RuleAnalysis | AIAnalysis = RuleAnalysis(
                rule_id=match.rule.id,
                confidence=match.confidence,
                action=match.action,
                solution=match.solution,
                auto_fix=match.auto_fix,
            )
            self._cache.set(_ANALYSIS_NS, key, analysis, self._config.rule_cache_ttl)
            self._stats.rules_used += 1
            logger.info(
                "[%s] Rule %s resolved task %s (confidence %.2f)",
                self.name, match.rule.id, task.id, match.confidence,
            )
            return analysis

        analysis = await self._ask_ai(task)
        self._cache.set(_ANALYSIS_NS, key, analysis, self._config.ai_cache_ttl)
        self._stats.ai_used += 1
        return analysis

    async def _ask_ai(self, task: Task) -> AIAnalysis:
        context = ""
        if self._memory is not None:
            try:
                context = await self._memory.build_context(
                    task, self._config.context_memories,
                )
            except Exception as e:
                logger.warning("[%s] Memory context unavailable: %s", self.name, e)

        logger.info("[%s] No confident rule for task %s, asking AI", self.name, task.id)
        text = await self._ai(
            build_analysis_prompt(task, context),
            max_tokens=self._ai_config.max_tokens,
            temperature=self._ai_config.temperature,
        )
        return AIAnalysis(
            analysis=text,
            confidence=self._config.ai_default_confidence,
            auto_fix=self._config.ai_auto_fix,
        )

    def plan(self, analysis: RuleAnalysis | AIAnalysis) -> Plan:
        if isinstance(analysis, RuleAnalysis) and analysis.auto_fix:
            return Plan(type=PlanType.AUTO, action=analysis.action, solution=analysis.solution)

        if analysis.confidence > self._config.confident_plan_threshold:
            return Plan(
                type=PlanType.CONFIDENT, action=analysis.action, solution=analysis.solution,
            )

        return Plan(
            type=PlanType.MANUAL,
            action="notify_human",
            solution=analysis.solution,
            requires_approval=True,
        )

    async def act(self, plan: Plan, task: Task) -> ActResult:
        if plan.requires_approval:
            return ActResult(
                status=ActStatus.PENDING_APPROVAL,
                action=plan.action,
                solution=plan.solution,
            )
        return await self._executor.execute(plan.action, plan.solution, task)

    async def learn(self, task: Task, result: ActResult) -> None:
        """Remember successful outcomes. Memory faults never fail the task."""
        if self._memory is None or result.status not in LEARNABLE_STATUSES:
            return
        try:
            await self._memory.store(
                format_task_outcome(task, result),
                {
                    "type": task.type,
                    "category": task.category,
                    "success": True,
                    "status": result.status,
                    "task_id": task.id,
                },
            )
        except Exception as e:
            logger.warning("[%s] Failed to store outcome for %s: %s", self.name, task.id, e)

    async def _notify(self, task: Task, outcome: ExecutionResult) -> None:
        for observer in self._observers:
            try:
                await observer.on_outcome(task, outcome)
            except Exception:
                logger.exception("[%s] Outcome observer %r failed", self.name, observer)

    def get_stats(self) -> StatsSnapshot:
        return StatsSnapshot.from_stats(self._stats)

    def reset_stats(self) -> None:
        self._stats = AgentStats()
