"""Rule registry — pattern → action rules with confidence scoring.

Handles the common, recognisable cases without an AI call. Every rule's
pattern is compiled once at registration. Matching, hit counting and
confidence updates are guarded by a single re-entrant lock so the registry
can be shared by concurrently running decision loops.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from devpilot.errors import DuplicateRuleError, InvalidRuleError
from devpilot.rules.text import to_match_text
from devpilot.schemas.rules import (
    MatchResult,
    Rule,
    RuleExport,
    RuleHit,
    RuleRegistryStats,
)

logger = logging.getLogger(__name__)

_MAX_CONFIDENCE = 0.99
_MIN_CONFIDENCE = 0.5
_CONFIDENCE_STEP_UP = 0.01
_CONFIDENCE_STEP_DOWN = 0.05
_TOP_RULES = 5


def _match_order(rule: Rule) -> tuple[float, str]:
    """Confidence descending, then id ascending."""
    return (-rule.confidence, rule.id)


class RuleRegistry:
    """Holds rules, matches text against them, and tracks their hits.

    Disabled rules stay registered but never match. Rules are never removed;
    learned rules that were disabled can be re-registered with
    ``add_rule(rule, replace=True)``.
    """

    def __init__(self, rules: Iterable[Rule | Mapping[str, Any]] = ()) -> None:
        self._lock = threading.RLock()
        self._rules: dict[str, Rule] = {}
        self._matchers: dict[str, re.Pattern[str]] = {}
        self._total_matches = 0
        for rule in rules:
            self.add_rule(rule)

    @classmethod
    def with_seed_rules(cls) -> RuleRegistry:
        """Build a registry populated with the shipped seed rules."""
        from devpilot.rules.seed import load_seed_rules

        registry = cls(load_seed_rules())
        logger.info("RuleRegistry initialized with %d seed rules", len(registry))
        return registry

    # ── Registration ─────────────────────────────────────────────

    def add_rule(self, rule: Rule | Mapping[str, Any], *, replace: bool = False) -> Rule:
        """Validate, compile and register a rule.

        Args:
            rule: A Rule, or a mapping with at least id, pattern and action.
            replace: Overwrite an existing rule with the same id.

        Returns:
            The registered rule (match_count reset to 0).

        Raises:
            InvalidRuleError: If id, pattern or action is missing, or the
                pattern is not a valid regular expression.
            DuplicateRuleError: If the id is taken and replace is False.
        """
        if isinstance(rule, Rule):
            candidate = rule.model_copy(update={"match_count": 0})
        else:
            missing = [k for k in ("id", "pattern", "action") if not rule.get(k)]
            if missing:
                raise InvalidRuleError(
                    f"Rule must have id, pattern, and action (missing: {', '.join(missing)})"
                )
            try:
                candidate = Rule.model_validate({**rule, "match_count": 0})
            except ValidationError as e:
                raise InvalidRuleError(f"Invalid rule {rule.get('id')!r}: {e}") from e

        if not candidate.id or not candidate.pattern or not candidate.action:
            raise InvalidRuleError("Rule must have id, pattern, and action")

        try:
            matcher = re.compile(candidate.pattern, re.IGNORECASE)
        except re.error as e:
            raise InvalidRuleError(
                f"Rule {candidate.id!r} has an invalid pattern: {e}"
            ) from e

        with self._lock:
            if candidate.id in self._rules and not replace:
                raise DuplicateRuleError(candidate.id)
            self._rules[candidate.id] = candidate
            self._matchers[candidate.id] = matcher

        logger.debug("Registered rule %s (%s)", candidate.id, candidate.source.value)
        return candidate

    def import_rules(self, exported: Iterable[RuleExport | Mapping[str, Any]]) -> int:
        """Re-register rules from an export_rules() backup.

        Existing ids are replaced. Returns the number of rules imported.
        """
        count = 0
        for entry in exported:
            data = entry.model_dump() if isinstance(entry, RuleExport) else dict(entry)
            data.pop("match_count", None)
            self.add_rule(data, replace=True)
            count += 1
        logger.info("Imported %d rules", count)
        return count

    # ── Matching ─────────────────────────────────────────────────

    def match(self, value: Any, category: str | None = None) -> MatchResult:
        """Match input against every enabled rule (optionally one category).

        Every matching rule's hit counter increments. The primary result is
        the highest-confidence match, ties broken by ascending rule id.
        """
        text = to_match_text(value)

        with self._lock:
            matches: list[Rule] = []
            for rule_id, rule in self._rules.items():
                if not rule.enabled:
                    continue
                if category is not None and rule.category != category:
                    continue
                if self._matchers[rule_id].search(text):
                    rule.match_count += 1
                    matches.append(rule.model_copy())

            if not matches:
                return MatchResult(matched=False)

            self._total_matches += 1

        matches.sort(key=_match_order)
        best = matches[0]
        logger.info(
            "Rule matched %s (confidence=%.2f, action=%s, auto_fix=%s)",
            best.id, best.confidence, best.action, best.auto_fix,
        )
        return MatchResult(
            matched=True,
            rule=best,
            confidence=best.confidence,
            action=best.action,
            solution=best.solution,
            auto_fix=best.auto_fix,
            all_matches=matches,
        )

    def matches_with_confidence(
        self,
        value: Any,
        min_confidence: float = 0.7,
        category: str | None = None,
    ) -> bool:
        """Whether input matches a rule with at least ``min_confidence``."""
        result = self.match(value, category)
        return result.matched and result.confidence >= min_confidence

    # ── Lookup ───────────────────────────────────────────────────

    def get_rule(self, rule_id: str) -> Rule | None:
        with self._lock:
            rule = self._rules.get(rule_id)
            return rule.model_copy() if rule else None

    def list_rules(self) -> list[Rule]:
        with self._lock:
            return [r.model_copy() for r in self._rules.values()]

    def rules_by_category(self, category: str) -> list[Rule]:
        with self._lock:
            return [r.model_copy() for r in self._rules.values() if r.category == category]

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    # ── Feedback ─────────────────────────────────────────────────

    def update_confidence(self, rule_id: str, successful: bool) -> float | None:
        """Nudge a rule's confidence after an observed outcome.

        Success adds 0.01 (capped at 0.99); failure subtracts 0.05 (floored
        at 0.5). Returns the new confidence, or None for an unknown id.
        """
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                logger.debug("update_confidence: unknown rule %s", rule_id)
                return None
            if successful:
                rule.confidence = min(_MAX_CONFIDENCE, rule.confidence + _CONFIDENCE_STEP_UP)
            else:
                rule.confidence = max(_MIN_CONFIDENCE, rule.confidence - _CONFIDENCE_STEP_DOWN)
            confidence = rule.confidence

        logger.debug("Updated rule %s confidence to %.2f", rule_id, confidence)
        return confidence

    def disable_rule(self, rule_id: str) -> bool:
        return self._set_enabled(rule_id, False)

    def enable_rule(self, rule_id: str) -> bool:
        return self._set_enabled(rule_id, True)

    def _set_enabled(self, rule_id: str, enabled: bool) -> bool:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return False
            rule.enabled = enabled
        logger.info("Rule %s %s", rule_id, "enabled" if enabled else "disabled")
        return True

    # ── Reporting ────────────────────────────────────────────────

    def hits(self, rule_id: str) -> int:
        """Live hit count for a rule (0 for unknown ids)."""
        with self._lock:
            rule = self._rules.get(rule_id)
            return rule.match_count if rule else 0

    def export_rules(self) -> list[RuleExport]:
        """Serialize every rule, matcher included as its pattern source."""
        with self._lock:
            return [
                RuleExport(
                    id=rule.id,
                    category=rule.category,
                    pattern=self._matchers[rule.id].pattern,
                    action=rule.action,
                    confidence=rule.confidence,
                    solution=rule.solution,
                    auto_fix=rule.auto_fix,
                    match_count=rule.match_count,
                    enabled=rule.enabled,
                    source=rule.source,
                )
                for rule in self._rules.values()
            ]

    def get_stats(self) -> RuleRegistryStats:
        with self._lock:
            rule_hits = {rule_id: rule.match_count for rule_id, rule in self._rules.items()}
            total_matches = self._total_matches

        ranked = sorted(rule_hits.items(), key=lambda item: (-item[1], item[0]))
        return RuleRegistryStats(
            total_rules=len(rule_hits),
            total_matches=total_matches,
            rule_hits=rule_hits,
            top_rules=[RuleHit(id=rule_id, hits=hits) for rule_id, hits in ranked[:_TOP_RULES]],
        )
