"""Validation data models: rules, typed checks, and results."""

from __future__ import annotations

import enum
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from rulecheck.exceptions import InvalidCheckError

Predicate = Callable[[Any], bool]


class Severity(str, enum.Enum):
    """Severity of a failed check."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for the most severe level."""
        return _SEVERITY_ORDER.index(self)

    @property
    def is_error(self) -> bool:
        """Critical and high failures are errors; the rest are warnings."""
        return self in (Severity.CRITICAL, Severity.HIGH)


_SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]


class CheckType(str, enum.Enum):
    """What a check inspects on the retrieved value."""

    STATUS = "status"
    SCHEMA = "schema"
    RESPONSE_TIME = "response_time"
    NUMERIC = "numeric"
    HEADER = "header"
    FIELD = "field"
    BODY = "body"
    CUSTOM = "custom"


class Operator(str, enum.Enum):
    """Comparison applied between the actual and the expected value."""

    EQUALS = "equals"
    CONTAINS = "contains"
    MATCHES = "matches"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class RuleCategory(str, enum.Enum):
    """Category of a validation rule.

    Callers may use additional categories beyond these core values.
    Use string values directly for domain-specific categories.
    """

    API = "api"
    REFERENTIAL = "referential"
    BUSINESS_LOGIC = "business_logic"
    DATA_QUALITY = "data_quality"
    PERFORMANCE = "performance"
    SYNC = "sync"
    MIGRATION = "migration"

    @classmethod
    def _missing_(cls, value: object) -> RuleCategory | None:
        """Allow arbitrary string values for domain extensibility."""
        if isinstance(value, str):
            obj = str.__new__(cls, value)
            obj._value_ = value
            obj._name_ = value.upper()
            return obj
        return None


SCHEMA_KINDS = frozenset({"object", "array", "string", "number", "integer", "boolean", "null"})


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── Checks ──────────────────────────────────────────────────────────


@dataclass(frozen=True, kw_only=True)
class Check:
    """Fields shared by every check variant.

    Not instantiated directly; use one of the typed subclasses.
    """

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset()

    check_id: str
    name: str
    severity: Severity = Severity.MEDIUM
    path: str = ""
    check_type: CheckType = CheckType.FIELD

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "check_type", CheckType(self.check_type))
        if self.check_type not in self.allowed_types:
            raise InvalidCheckError(
                f"{type(self).__name__} {self.check_id!r} cannot have type {self.check_type.value!r}"
            )

    @property
    def expected(self) -> Any:
        """The value reported as ``expected_value`` in results."""
        return None


@dataclass(frozen=True, kw_only=True)
class _ComparisonCheck(Check):
    expected_value: Any = None
    operator: Operator = Operator.EQUALS
    tolerance: float | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "operator", Operator(self.operator))
        if self.tolerance is not None:
            if not _is_number(self.tolerance) or self.tolerance < 0:
                raise InvalidCheckError(
                    f"Check {self.check_id!r}: tolerance must be a non-negative number"
                )

    @property
    def expected(self) -> Any:
        return self.expected_value


@dataclass(frozen=True, kw_only=True)
class StatusCheck(_ComparisonCheck):
    """Compares the ``status`` (or ``status_code``) of the retrieved value."""

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset({CheckType.STATUS})

    check_type: CheckType = CheckType.STATUS


@dataclass(frozen=True, kw_only=True)
class NumericCheck(_ComparisonCheck):
    """Numeric comparison, optionally within a tolerance.

    ``response_time`` checks read the ``response_time`` field first.
    """

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset(
        {CheckType.NUMERIC, CheckType.RESPONSE_TIME}
    )

    check_type: CheckType = CheckType.NUMERIC

    def __post_init__(self) -> None:
        super().__post_init__()
        needs_number = self.operator in (
            Operator.EQUALS,
            Operator.GREATER_THAN,
            Operator.LESS_THAN,
        )
        if needs_number and not _is_number(self.expected_value):
            raise InvalidCheckError(
                f"Numeric check {self.check_id!r} needs a numeric expected_value"
            )
        if self.operator in (Operator.CONTAINS, Operator.MATCHES):
            raise InvalidCheckError(
                f"Numeric check {self.check_id!r} does not support {self.operator.value!r}"
            )


@dataclass(frozen=True, kw_only=True)
class FieldCheck(_ComparisonCheck):
    """Compares a field of the retrieved value.

    ``header`` checks look ``path`` up in ``headers`` (case-insensitive),
    ``body`` checks resolve ``path`` under ``body``, ``field`` checks resolve
    it from the root.
    """

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset(
        {CheckType.FIELD, CheckType.HEADER, CheckType.BODY}
    )

    check_type: CheckType = CheckType.FIELD

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.check_type == CheckType.HEADER and not self.path:
            raise InvalidCheckError(f"Header check {self.check_id!r} needs a header name in path")


@dataclass(frozen=True, kw_only=True)
class SchemaCheck(Check):
    """Shallow kind match against a ``{"type": ...}`` descriptor."""

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset({CheckType.SCHEMA})

    check_type: CheckType = CheckType.SCHEMA
    expected_schema: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        kind = self.expected_schema.get("type") if isinstance(self.expected_schema, Mapping) else None
        if kind not in SCHEMA_KINDS:
            raise InvalidCheckError(
                f"Schema check {self.check_id!r} needs a type in {sorted(SCHEMA_KINDS)}"
            )

    @property
    def expected(self) -> Any:
        return dict(self.expected_schema)


@dataclass(frozen=True, kw_only=True)
class CustomCheck(Check):
    """Delegates to a caller-supplied predicate.

    The predicate is required; the registry rejects a custom check without one.
    """

    allowed_types: ClassVar[frozenset[CheckType]] = frozenset({CheckType.CUSTOM})

    check_type: CheckType = CheckType.CUSTOM
    predicate: Predicate | None = field(default=None, compare=False)


# ── Rules ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Rule:
    """A named expectation about one observable, composed of checks."""

    rule_id: str
    name: str
    description: str = ""
    category: RuleCategory = RuleCategory.API
    severity: Severity = Severity.MEDIUM
    target: Any = None
    checks: tuple[Check, ...] = ()
    enabled: bool = True
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", RuleCategory(self.category))
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "checks", tuple(self.checks))
        object.__setattr__(self, "metadata", types.MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view of the rule; predicates are omitted."""
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "target": to_plain(self.target),
            "enabled": self.enabled,
            "checks": [_check_to_dict(c) for c in self.checks],
            "metadata": to_plain(self.metadata),
        }


def _check_to_dict(check: Check) -> dict[str, Any]:
    data: dict[str, Any] = {
        "check_id": check.check_id,
        "name": check.name,
        "type": check.check_type.value,
        "severity": check.severity.value,
        "path": check.path,
    }
    if isinstance(check, _ComparisonCheck):
        data["operator"] = check.operator.value
        data["expected_value"] = to_plain(check.expected_value)
        if check.tolerance is not None:
            data["tolerance"] = check.tolerance
    elif isinstance(check, SchemaCheck):
        data["expected_schema"] = to_plain(check.expected_schema)
    return data


# ── Results ─────────────────────────────────────────────────────────


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CheckResult:
    """Outcome of evaluating one check against one retrieved value."""

    check_id: str
    check_name: str
    check_type: CheckType
    passed: bool
    expected_value: Any
    actual_value: Any
    message: str
    severity: Severity
    execution_time_ms: float = 0.0
    difference: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "check_name": self.check_name,
            "check_type": self.check_type.value,
            "passed": self.passed,
            "expected_value": to_plain(self.expected_value),
            "actual_value": to_plain(self.actual_value),
            "message": self.message,
            "severity": self.severity.value,
            "execution_time_ms": self.execution_time_ms,
            "difference": self.difference,
        }


@dataclass(frozen=True)
class RuleResult:
    """Outcome of one rule: its check results plus routed messages."""

    rule_id: str
    rule_name: str
    category: RuleCategory
    severity: Severity
    passed: bool
    checks: tuple[CheckResult, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    timestamp: str = field(default_factory=_utcnow)
    execution_time_ms: float = 0.0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def has_failure(self, severity: Severity) -> bool:
        """True if at least one failed check has this severity."""
        return any(c.severity == severity for c in self.failed_checks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "category": self.category.value,
            "severity": self.severity.value,
            "passed": self.passed,
            "checks": [c.to_dict() for c in self.checks],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "timestamp": self.timestamp,
            "execution_time_ms": self.execution_time_ms,
            "metadata": to_plain(self.metadata),
        }


@dataclass(frozen=True)
class ValidationSummary:
    """Aggregate of one run's rule results. Always derived, never edited."""

    total_rules: int = 0
    passed_rules: int = 0
    failed_rules: int = 0
    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    by_severity: Mapping[Severity, int] = field(
        default_factory=lambda: {s: 0 for s in _SEVERITY_ORDER}
    )
    average_execution_time_ms: float = 0.0
    total_execution_time_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.failed_rules == 0

    @property
    def pass_rate(self) -> float:
        """Percentage of rules that passed; 100.0 for an empty run."""
        if self.total_rules == 0:
            return 100.0
        return self.passed_rules / self.total_rules * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rules": self.total_rules,
            "passed_rules": self.passed_rules,
            "failed_rules": self.failed_rules,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "by_severity": {s.value: self.by_severity.get(s, 0) for s in _SEVERITY_ORDER},
            "average_execution_time_ms": self.average_execution_time_ms,
            "total_execution_time_ms": self.total_execution_time_ms,
        }


def to_plain(value: Any) -> Any:
    """Convert enums, tuples and mappings into JSON-friendly data."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


__all__ = [
    "Predicate",
    "Severity",
    "CheckType",
    "Operator",
    "RuleCategory",
    "SCHEMA_KINDS",
    "Check",
    "StatusCheck",
    "NumericCheck",
    "FieldCheck",
    "SchemaCheck",
    "CustomCheck",
    "Rule",
    "CheckResult",
    "RuleResult",
    "ValidationSummary",
    "to_plain",
]
