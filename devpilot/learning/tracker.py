"""Pattern tracker — learns from successful and failed outcomes.

Every tracked success strengthens (or creates) a pattern keyed by a bounded
signature of the problem and the solution that fixed it. Failures attach to
an existing pattern for the same problem and weaken it; a failure with no
prior success is only counted.

Signatures have two parts:

    problem_key = "<type>:<normalized description or type>"
    signature   = "<problem_key>:<normalized solution>"   (≤ 200 chars)

Persistence failures are logged and degrade to None / [] / 0 so the
decision path never waits on the learning signal.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite

from devpilot.learning.store import PatternStore
from devpilot.schemas.patterns import Pattern, PatternExample, TrackerStats
from devpilot.schemas.tasks import Task

logger = logging.getLogger(__name__)

_SIGNATURE_MAX = 200
_NORMALIZED_MAX = 100

# Problem vocabulary used as the similarity feature set
_PROBLEM_TOKENS_RE = re.compile(
    r"\b(failed|error|timeout|blocked|npm|test|build|deploy)\b"
)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

SIMILAR_CANDIDATES = 10
SIMILAR_MIN_CONFIDENCE = 0.7
SIMILARITY_THRESHOLD = 0.5
PATTERN_LIMIT = 20
HIGH_CONFIDENCE = 0.8
RETAIN_SUCCESS_COUNT = 3


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace, cap at 100 chars."""
    lowered = _NON_ALNUM_RE.sub("", text.lower())
    return _WHITESPACE_RE.sub(" ", lowered).strip()[:_NORMALIZED_MAX]


def problem_key(task: Task) -> str:
    return f"{task.type}:{normalize_text(task.description or task.type)}"


def create_signature(task: Task, solution: str | None) -> str:
    solution_key = normalize_text(solution) if solution else ""
    return f"{problem_key(task)}:{solution_key}"[:_SIGNATURE_MAX]


def calculate_confidence(success_count: int, failure_count: int) -> float:
    """Blend observed success rate with a sample-size boost.

    ``min(0.95, success_rate * 0.7 + min(total / 10, 1) * 0.3)``; 0.5 with no
    evidence at all.
    """
    total = success_count + failure_count
    if total == 0:
        return 0.5
    success_rate = success_count / total
    data_boost = min(total / 10, 1.0)
    return min(0.95, success_rate * 0.7 + data_boost * 0.3)


def jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class PatternTracker:
    """Records success/failure evidence per recurring problem signature."""

    def __init__(self, store: PatternStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._stats = TrackerStats()

    @property
    def store(self) -> PatternStore:
        return self._store

    async def track_success(
        self,
        task: Task,
        solution: str,
        metadata: dict[str, Any] | None = None,
    ) -> Pattern | None:
        """Strengthen or create the pattern for (task, solution)."""
        signature = create_signature(task, solution)
        now = datetime.now(UTC)
        example = PatternExample(task=task.description, solution=solution, timestamp=now)

        try:
            async with self._lock:
                pattern = await self._store.get(signature)
                if pattern is not None:
                    pattern.success_count += 1
                    pattern.last_seen = now
                    pattern.confidence = calculate_confidence(
                        pattern.success_count, pattern.failure_count,
                    )
                    pattern.add_example(example)
                    await self._store.update(pattern)
                else:
                    pattern = Pattern(
                        signature=signature,
                        problem_key=problem_key(task),
                        type=task.type,
                        category=task.category,
                        keywords=self.extract_pattern(task),
                        solution=solution,
                        success_count=1,
                        failure_count=0,
                        confidence=0.5,
                        examples=[example],
                        metadata=metadata or {},
                        discovered_at=now,
                        last_seen=now,
                    )
                    await self._store.insert(pattern)
                    self._stats.patterns_detected += 1
        except aiosqlite.Error:
            logger.exception("Failed to track success for %s", signature)
            return None

        self._stats.success_tracked += 1
        logger.debug(
            "Success tracked %s (success=%d, confidence=%.2f)",
            signature, pattern.success_count, pattern.confidence,
        )
        return pattern

    async def track_failure(
        self,
        task: Task,
        error: str | BaseException | None = None,
        metadata: dict[str, Any] | None = None,
        solution: str | None = None,
    ) -> Pattern | None:
        """Weaken the pattern this failure belongs to, if one exists.

        With ``solution`` the failure attaches to that exact signature;
        without it, to the most recently seen pattern for the same problem.
        """
        try:
            async with self._lock:
                if solution:
                    pattern = await self._store.get(create_signature(task, solution))
                else:
                    pattern = await self._store.latest_for_problem(problem_key(task))

                if pattern is not None:
                    pattern.failure_count += 1
                    pattern.last_seen = datetime.now(UTC)
                    pattern.confidence = calculate_confidence(
                        pattern.success_count, pattern.failure_count,
                    )
                    await self._store.update(pattern)
        except aiosqlite.Error:
            logger.exception("Failed to track failure for task %s", task.id)
            return None

        self._stats.failures_tracked += 1
        if pattern is None:
            self._stats.unattached_failures += 1

        logger.debug(
            "Failure tracked for %s (%s, failures=%d): %s",
            problem_key(task),
            pattern.signature if pattern else "no pattern",
            pattern.failure_count if pattern else 0,
            error,
        )
        return pattern

    @staticmethod
    def extract_pattern(task: Task) -> list[str]:
        """Known problem tokens in the description, first occurrence order."""
        text = (task.description or "").lower()
        return list(dict.fromkeys(_PROBLEM_TOKENS_RE.findall(text)))

    async def find_similar(self, task: Task) -> Pattern | None:
        """Best same-type pattern by keyword Jaccard similarity, if > 0.5."""
        features = set(self.extract_pattern(task))
        try:
            candidates = await self._store.query(
                type=task.type,
                min_confidence=SIMILAR_MIN_CONFIDENCE,
                limit=SIMILAR_CANDIDATES,
            )
        except aiosqlite.Error:
            logger.exception("Failed to find similar pattern")
            return None

        best: Pattern | None = None
        best_score = 0.0
        for candidate in candidates:
            score = jaccard(features, set(candidate.keywords))
            if score > best_score:
                best, best_score = candidate, score

        if best is not None and best_score > SIMILARITY_THRESHOLD:
            return best
        return None

    async def get_patterns(
        self,
        type: str | None = None,
        min_confidence: float = 0.7,
    ) -> list[Pattern]:
        """Up to 20 patterns, by (confidence desc, success_count desc)."""
        try:
            return await self._store.query(
                type=type, min_confidence=min_confidence, limit=PATTERN_LIMIT,
            )
        except aiosqlite.Error:
            logger.exception("Failed to get patterns")
            return []

    async def qualifying_patterns(
        self, min_confidence: float, min_success_count: int,
    ) -> list[Pattern]:
        """All patterns proven enough to become rules. Not capped."""
        try:
            return await self._store.qualifying(min_confidence, min_success_count)
        except aiosqlite.Error:
            logger.exception("Failed to read qualifying patterns")
            return []

    async def cleanup(self, older_than_days: int = 90) -> int:
        """Delete stale patterns; 3+ proven successes are kept regardless of age."""
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        try:
            deleted = await self._store.delete_stale(cutoff, RETAIN_SUCCESS_COUNT)
        except aiosqlite.Error:
            logger.exception("Failed to clean up patterns")
            return 0

        if deleted > 0:
            logger.info("Cleaned up %d old patterns", deleted)
        return deleted

    async def get_stats(self) -> TrackerStats:
        stats = self._stats.model_copy()
        try:
            stats.total_patterns = await self._store.count()
            stats.high_confidence_patterns = await self._store.count(HIGH_CONFIDENCE)
        except aiosqlite.Error:
            logger.exception("Failed to read pattern totals")
        return stats
