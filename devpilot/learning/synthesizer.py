"""Rule synthesizer — turns high-confidence patterns into rules.

Generation and review are meant to run periodically (see
devpilot.learning.scheduler), not per task. Both are serialized by one lock
so overlapping runs cannot register the same rule twice.
"""

from __future__ import annotations

import asyncio
import logging
import re

from devpilot.errors import InvalidRuleError
from devpilot.learning.tracker import PatternTracker
from devpilot.rules.registry import RuleRegistry
from devpilot.schemas.patterns import Pattern
from devpilot.schemas.rules import Rule, RuleSource

logger = logging.getLogger(__name__)

LEARNED_PREFIX = "learned-"
_RULE_ID_SIGNATURE_CHARS = 30
_MIN_KEYWORD_LENGTH = 3
_AUTO_FIX_CONFIDENCE = 0.9
_BOOST_HITS = 5
_PRUNE_CONFIDENCE = 0.6

# Solution keyword → action, checked in order
_ACTION_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("retry", "run"), "retry_with_solution"),
    (("escalate",), "escalate"),
    (("notify",), "notify"),
]
_DEFAULT_ACTION = "apply_learned_solution"


def learned_rule_id(signature: str) -> str:
    return f"{LEARNED_PREFIX}{signature[:_RULE_ID_SIGNATURE_CHARS]}"


def extract_action(solution: str | None) -> str:
    """Infer an action from the wording of a solution."""
    if not solution:
        return _DEFAULT_ACTION
    lower = solution.lower()
    for keywords, action in _ACTION_KEYWORDS:
        if any(kw in lower for kw in keywords):
            return action
    return _DEFAULT_ACTION


class RuleSynthesizer:
    """Generates rules from proven patterns and prunes the weak ones."""

    def __init__(self, tracker: PatternTracker, registry: RuleRegistry) -> None:
        self._tracker = tracker
        self._registry = registry
        self._generated: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def generated_rule_ids(self) -> frozenset[str]:
        return frozenset(self._generated)

    async def generate_rules(
        self,
        min_confidence: float = 0.85,
        min_success_count: int = 5,
    ) -> int:
        """Register a learned rule for each qualifying pattern.

        Returns the number of rules generated by this call.
        """
        async with self._lock:
            patterns = await self._tracker.qualifying_patterns(
                min_confidence, min_success_count,
            )
            generated = 0

            for pattern in patterns:
                rule_id = learned_rule_id(pattern.signature)
                if rule_id in self._generated:
                    continue

                rule = self.create_rule(pattern, rule_id)
                if rule is None:
                    continue

                existing = self._registry.get_rule(rule_id)
                if existing is not None and existing.enabled:
                    logger.debug("Rule %s already registered, skipping", rule_id)
                    continue

                try:
                    self._registry.add_rule(rule, replace=existing is not None)
                except InvalidRuleError as e:
                    logger.debug("Could not register learned rule %s: %s", rule_id, e)
                    continue

                self._generated.add(rule_id)
                generated += 1
                logger.info(
                    "Generated rule %s from pattern (confidence=%.2f, successes=%d)",
                    rule_id, pattern.confidence, pattern.success_count,
                )

        logger.info("Generated %d new rules from patterns", generated)
        return generated

    @staticmethod
    def create_rule(pattern: Pattern, rule_id: str) -> Rule | None:
        """Build a learned rule from a pattern, or None without usable keywords."""
        keywords = [k for k in pattern.keywords if len(k) >= _MIN_KEYWORD_LENGTH]
        if not keywords:
            return None

        return Rule(
            id=rule_id,
            category=pattern.category or pattern.type,
            pattern="|".join(re.escape(k) for k in keywords),
            action=extract_action(pattern.solution),
            confidence=pattern.confidence,
            solution=pattern.solution,
            auto_fix=pattern.confidence > _AUTO_FIX_CONFIDENCE,
            source=RuleSource.LEARNED,
            learned_from=pattern.signature,
        )

    async def review_rules(self) -> int:
        """Boost heavily used learned rules and disable unused weak ones.

        A disabled rule leaves the generated set and can be generated again
        from stronger evidence. Returns the number of rules boosted.
        """
        async with self._lock:
            boosted = 0
            for rule_id in sorted(self._generated):
                rule = self._registry.get_rule(rule_id)
                if rule is None:
                    continue

                hits = self._registry.hits(rule_id)
                if hits > _BOOST_HITS:
                    self._registry.update_confidence(rule_id, True)
                    boosted += 1

                if rule.confidence < _PRUNE_CONFIDENCE and hits == 0:
                    self._registry.disable_rule(rule_id)
                    self._generated.discard(rule_id)
                    logger.info("Disabled low-performing rule: %s", rule_id)

        if boosted > 0:
            logger.info("Updated %d rule confidences", boosted)
        return boosted

    def get_stats(self) -> dict:
        return {
            "generated_rules": len(self._generated),
            "rule_ids": sorted(self._generated),
        }
