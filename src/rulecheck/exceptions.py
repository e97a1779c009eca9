"""Exception hierarchy for rulecheck.

Configuration errors are raised synchronously by the registration API.
Run-time errors (``RetrievalError``, ``CheckEvaluationError``) are recovered
by the engine into failed result objects and never escape a validation run.
"""

from __future__ import annotations


class RulecheckError(Exception):
    """Base exception for all rulecheck errors."""


class RuleConfigurationError(RulecheckError):
    """A rule or check definition is malformed."""


class DuplicateRuleError(RuleConfigurationError):
    """Raised when a rule id is registered twice."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule {rule_id!r} is already registered")
        self.rule_id = rule_id


class MissingCustomValidatorError(RuleConfigurationError):
    """Raised when a ``custom`` check is registered without a predicate."""

    def __init__(self, rule_id: str, check_id: str) -> None:
        super().__init__(
            f"Custom check {check_id!r} on rule {rule_id!r} has no predicate"
        )
        self.rule_id = rule_id
        self.check_id = check_id


class InvalidCheckError(RuleConfigurationError):
    """Raised when a check is constructed with inconsistent fields."""


class InvalidRuleUpdateError(RuleConfigurationError):
    """Raised when an update would change a rule's identity."""


class RetrievalError(RulecheckError):
    """Raised by retrieval adapters when an observable cannot be fetched."""


class CheckEvaluationError(RulecheckError):
    """Raised inside evaluation when a single check cannot be computed."""


class RunInProgressError(RulecheckError):
    """Raised when a validation run is started while another is in flight."""


__all__ = [
    "RulecheckError",
    "RuleConfigurationError",
    "DuplicateRuleError",
    "MissingCustomValidatorError",
    "InvalidCheckError",
    "InvalidRuleUpdateError",
    "RetrievalError",
    "CheckEvaluationError",
    "RunInProgressError",
]
