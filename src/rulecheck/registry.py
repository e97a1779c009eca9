"""Rule registry: the in-memory store of named validation rules."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any

from rulecheck.exceptions import (
    DuplicateRuleError,
    InvalidRuleUpdateError,
    MissingCustomValidatorError,
)
from rulecheck.models import CustomCheck, Rule, RuleCategory

log = logging.getLogger(__name__)

_RULE_FIELDS = frozenset(f.name for f in dataclasses.fields(Rule))


def validate_rule(rule: Rule) -> None:
    """Reject definitions that can only fail at run time.

    Raises ``MissingCustomValidatorError`` for a custom check without a
    predicate.
    """
    for check in rule.checks:
        if isinstance(check, CustomCheck) and check.predicate is None:
            raise MissingCustomValidatorError(rule.rule_id, check.check_id)


class RuleRegistry:
    """Dict-backed rule store keyed by ``rule_id``.

    Accessors return new lists, so callers cannot change registry state
    through a returned collection.  Rules are immutable; ``update`` swaps in
    a modified copy.  All operations are guarded by a lock so a run can
    snapshot the registry while another thread edits it.
    """

    def __init__(self, rules: list[Rule] | None = None, *, logger: logging.Logger | None = None) -> None:
        self._rules: dict[str, Rule] = {}
        self._lock = threading.Lock()
        self._log = logger or log
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: Rule) -> None:
        """Register a rule. Raises ``DuplicateRuleError`` if the id exists."""
        validate_rule(rule)
        with self._lock:
            if rule.rule_id in self._rules:
                raise DuplicateRuleError(rule.rule_id)
            self._rules[rule.rule_id] = rule
        self._log.debug("Rule added: %s (%s)", rule.rule_id, rule.name)

    def remove(self, rule_id: str) -> bool:
        """Remove a rule; return whether it was present."""
        with self._lock:
            removed = self._rules.pop(rule_id, None) is not None
        if removed:
            self._log.debug("Rule removed: %s", rule_id)
        return removed

    def update(self, rule_id: str, **changes: Any) -> bool:
        """Merge ``changes`` into an existing rule.

        Returns False if the rule is absent; never creates a rule.
        """
        if "rule_id" in changes and changes["rule_id"] != rule_id:
            raise InvalidRuleUpdateError(f"Cannot change id of rule {rule_id!r}")
        unknown = set(changes) - _RULE_FIELDS
        if unknown:
            raise InvalidRuleUpdateError(f"Unknown rule fields: {', '.join(sorted(unknown))}")

        with self._lock:
            current = self._rules.get(rule_id)
            if current is None:
                return False
            updated = dataclasses.replace(current, **changes)
            validate_rule(updated)
            self._rules[rule_id] = updated
        self._log.debug("Rule updated: %s %s", rule_id, sorted(changes))
        return True

    def enable(self, rule_id: str) -> bool:
        return self.update(rule_id, enabled=True)

    def disable(self, rule_id: str) -> bool:
        return self.update(rule_id, enabled=False)

    def get(self, rule_id: str) -> Rule:
        """Get a rule by ID. Raises KeyError if not found."""
        with self._lock:
            if rule_id not in self._rules:
                raise KeyError(f"Rule {rule_id!r} not found")
            return self._rules[rule_id]

    def list(self, *, category: RuleCategory | str | None = None) -> list[Rule]:
        """All rules in registration order, optionally filtered by category."""
        with self._lock:
            rules = list(self._rules.values())
        if category is not None:
            wanted = RuleCategory(category)
            rules = [r for r in rules if r.category == wanted]
        return rules

    def list_enabled(self) -> list[Rule]:
        return [r for r in self.list() if r.enabled]

    def list_disabled(self) -> list[Rule]:
        return [r for r in self.list() if not r.enabled]

    def clear(self) -> None:
        """Remove every rule. Stored results elsewhere are unaffected."""
        with self._lock:
            count = len(self._rules)
            self._rules.clear()
        self._log.info("Cleared %d rules", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        with self._lock:
            return rule_id in self._rules
