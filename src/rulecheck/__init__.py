"""rulecheck: declarative rule-based validation engine.

Register rules made of typed checks, run them against values fetched by an
injected retrieval adapter, and aggregate the outcome::

    from rulecheck import Rule, StatusCheck, ValidationEngine, StaticRetrieval

    engine = ValidationEngine(StaticRetrieval({"/health": {"status": 200}}))
    engine.add_rule(
        Rule(
            rule_id="api-001",
            name="Health endpoint",
            target="/health",
            checks=(StatusCheck(check_id="status", name="Status 200", expected_value=200),),
        )
    )
    engine.validate_all()
    summary = engine.get_summary()

Factory function::

    from rulecheck import create_engine
    engine = create_engine(AppSettings(), retrieve)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from rulecheck.adapters import RetrievalAdapter, StaticRetrieval, from_callable
from rulecheck.aggregator import ResultAggregator
from rulecheck.config import AppSettings
from rulecheck.engine import ValidationEngine
from rulecheck.evaluator import MISSING, evaluate, resolve_path
from rulecheck.exceptions import (
    CheckEvaluationError,
    DuplicateRuleError,
    InvalidCheckError,
    InvalidRuleUpdateError,
    MissingCustomValidatorError,
    RetrievalError,
    RuleConfigurationError,
    RulecheckError,
    RunInProgressError,
)
from rulecheck.executor import RuleExecutor
from rulecheck.models import (
    Check,
    CheckResult,
    CheckType,
    CustomCheck,
    FieldCheck,
    NumericCheck,
    Operator,
    Predicate,
    Rule,
    RuleCategory,
    RuleResult,
    SchemaCheck,
    Severity,
    StatusCheck,
    ValidationSummary,
)
from rulecheck.registry import RuleRegistry


def create_engine(
    settings: AppSettings,
    retrieve: RetrievalAdapter,
    *,
    predicates: Mapping[str, Predicate] | None = None,
    logger: logging.Logger | None = None,
) -> ValidationEngine:
    """Create a ValidationEngine from settings, loading ``rules_path`` if set."""
    engine = ValidationEngine(
        retrieve,
        max_workers=settings.engine.max_workers,
        timeout_seconds=settings.engine.retrieval_timeout_seconds,
        retain_history=settings.engine.retain_history,
        history_limit=settings.engine.history_limit,
        logger=logger,
    )
    if settings.rules.rules_path is not None:
        from rulecheck.loader import load_rules

        engine.add_rules(load_rules(settings.rules.rules_path, predicates=predicates))
    return engine


__all__ = [
    "AppSettings",
    "Check",
    "CheckEvaluationError",
    "CheckResult",
    "CheckType",
    "CustomCheck",
    "DuplicateRuleError",
    "FieldCheck",
    "InvalidCheckError",
    "InvalidRuleUpdateError",
    "MISSING",
    "MissingCustomValidatorError",
    "NumericCheck",
    "Operator",
    "Predicate",
    "ResultAggregator",
    "RetrievalAdapter",
    "RetrievalError",
    "Rule",
    "RuleCategory",
    "RuleConfigurationError",
    "RuleExecutor",
    "RuleRegistry",
    "RuleResult",
    "RulecheckError",
    "RunInProgressError",
    "SchemaCheck",
    "Severity",
    "StaticRetrieval",
    "StatusCheck",
    "ValidationEngine",
    "ValidationSummary",
    "create_engine",
    "evaluate",
    "from_callable",
    "resolve_path",
]
