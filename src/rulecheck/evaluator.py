"""Check evaluation: resolve the observed value and apply the check's operator.

Every function here is pure apart from timing.  ``evaluate`` never raises;
any failure while computing a check becomes a failed ``CheckResult``.
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from rulecheck.exceptions import CheckEvaluationError
from rulecheck.models import (
    Check,
    CheckResult,
    CheckType,
    CustomCheck,
    FieldCheck,
    NumericCheck,
    Operator,
    SchemaCheck,
    StatusCheck,
)


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_STATUS_FIELDS = ("status", "status_code")


# ── Path resolution ─────────────────────────────────────────────────


def _step(current: Any, key: str) -> Any:
    if current is MISSING or current is None:
        return MISSING
    if isinstance(current, Mapping):
        return current[key] if key in current else MISSING
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            index = int(key)
        except ValueError:
            return MISSING
        if -len(current) <= index < len(current):
            return current[index]
        return MISSING
    if isinstance(current, (str, bytes, int, float, bool)):
        return MISSING
    return getattr(current, key, MISSING)


def resolve_path(value: Any, path: str) -> Any:
    """Walk a dot-separated path (``a.b.0.c``) through ``value``.

    Mappings are indexed by key, sequences by integer segment, other objects
    by attribute.  A segment that does not resolve yields ``MISSING``.
    """
    if not path:
        return value
    current = value
    for key in path.split("."):
        current = _step(current, key)
        if current is MISSING:
            break
    return current


def _lookup_header(headers: Any, name: str) -> Any:
    if headers is MISSING or headers is None:
        return MISSING
    items = headers.items() if hasattr(headers, "items") else ()
    wanted = name.lower()
    for key, header_value in items:
        if str(key).lower() == wanted:
            return header_value
    return MISSING


def _status_of(value: Any) -> Any:
    for name in _STATUS_FIELDS:
        found = _step(value, name)
        if found is not MISSING:
            return found
    return MISSING


def actual_value_for(check: Check, value: Any) -> Any:
    """Select the part of the retrieved value a check inspects."""
    ctype = check.check_type
    if ctype == CheckType.STATUS:
        return resolve_path(_status_of(value), check.path)
    if ctype == CheckType.RESPONSE_TIME:
        return resolve_path(_step(value, "response_time"), check.path)
    if ctype == CheckType.HEADER:
        return _lookup_header(_step(value, "headers"), check.path)
    if ctype == CheckType.BODY:
        return resolve_path(_step(value, "body"), check.path)
    return resolve_path(value, check.path)


# ── Operators ───────────────────────────────────────────────────────


def is_number(value: Any) -> bool:
    """True for ints and floats; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def exists(actual: Any) -> bool:
    """An actual value exists when it is neither missing nor ``None``."""
    return actual is not MISSING and actual is not None


def values_equal(actual: Any, expected: Any, tolerance: float | None = None) -> bool:
    """Structural equality; numbers compare within ``tolerance`` when given."""
    if is_number(actual) and is_number(expected):
        if tolerance is not None:
            return abs(actual - expected) <= tolerance
        return actual == expected
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        if set(actual) != set(expected):
            return False
        return all(values_equal(actual[k], expected[k], tolerance) for k in actual)
    if _is_list_like(actual) and _is_list_like(expected):
        if len(actual) != len(expected):
            return False
        return all(values_equal(a, e, tolerance) for a, e in zip(actual, expected))
    if actual is MISSING:
        return False
    return actual == expected


def _is_list_like(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def compare(
    actual: Any,
    expected: Any,
    operator: Operator,
    tolerance: float | None = None,
) -> bool:
    """Apply ``operator`` to an actual/expected pair.

    Raises ``CheckEvaluationError`` when ``matches`` is given a bad pattern.
    """
    if operator == Operator.EXISTS:
        return exists(actual)
    if operator == Operator.NOT_EXISTS:
        return not exists(actual)
    if operator == Operator.EQUALS:
        return values_equal(actual, expected, tolerance)
    if operator == Operator.CONTAINS:
        return isinstance(actual, str) and str(expected) in actual
    if operator == Operator.MATCHES:
        if not isinstance(actual, str):
            return False
        try:
            return re.search(str(expected), actual) is not None
        except re.error as exc:
            raise CheckEvaluationError(f"Invalid pattern {expected!r}: {exc}") from exc
    if operator in (Operator.GREATER_THAN, Operator.LESS_THAN):
        if not (is_number(actual) and is_number(expected)):
            return False
        if operator == Operator.GREATER_THAN:
            return actual > expected
        return actual < expected
    raise CheckEvaluationError(f"Unsupported operator {operator!r}")


def numeric_difference(actual: Any, expected: Any) -> float | None:
    """Absolute difference when both sides are finite numbers."""
    if is_number(actual) and is_number(expected):
        diff = abs(actual - expected)
        return None if math.isnan(diff) else float(diff)
    return None


# ── Schema ──────────────────────────────────────────────────────────


def kind_of(value: Any) -> str:
    """JSON kind name of a Python value (``number`` covers ``integer``)."""
    if value is None or value is MISSING:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if _is_list_like(value):
        return "array"
    return type(value).__name__


def matches_schema(value: Any, schema: Mapping[str, Any]) -> bool:
    """Shallow kind match: only the top-level ``type`` is checked."""
    wanted = schema.get("type")
    actual = kind_of(value)
    if wanted == "number":
        return actual in ("number", "integer")
    return actual == wanted


# ── Evaluation ──────────────────────────────────────────────────────


def _describe(check: Check) -> str:
    return f"{check.check_type.value} {check.path}".rstrip() if check.path else check.check_type.value


def _evaluate_comparison(check: StatusCheck | NumericCheck | FieldCheck, actual: Any) -> tuple[bool, str]:
    passed = compare(actual, check.expected_value, check.operator, check.tolerance)
    shown = "<missing>" if actual is MISSING else repr(actual)
    label = _describe(check)
    op = check.operator
    if op in (Operator.EXISTS, Operator.NOT_EXISTS):
        verdict = "exists" if exists(actual) else "does not exist"
        return passed, f"{label} {verdict}"
    if passed:
        return passed, f"{label} is {shown}"
    if op == Operator.EQUALS:
        within = f" (tolerance {check.tolerance})" if check.tolerance is not None else ""
        return passed, f"Expected {label} {check.expected_value!r}{within}, got {shown}"
    return passed, f"{label} {shown} does not satisfy {op.value} {check.expected_value!r}"


def _evaluate_schema(check: SchemaCheck, actual: Any) -> tuple[bool, str]:
    wanted = check.expected_schema.get("type")
    if matches_schema(actual, check.expected_schema):
        return True, f"Value matches schema type {wanted!r}"
    return False, f"Expected schema type {wanted!r}, got {kind_of(actual)!r}"


def _evaluate_custom(check: CustomCheck, actual: Any) -> tuple[bool, str]:
    if check.predicate is None:
        raise CheckEvaluationError("Custom validator not provided")
    try:
        passed = bool(check.predicate(actual))
    except Exception as exc:
        raise CheckEvaluationError(f"Custom validator raised {type(exc).__name__}: {exc}") from exc
    return passed, "Custom validation passed" if passed else "Custom validation failed"


def evaluate(
    check: Check,
    value: Any,
    *,
    clock: Callable[[], float] = time.perf_counter,
) -> CheckResult:
    """Evaluate one check against one retrieved value.

    Never raises: a predicate exception, bad regex, or any other failure
    produces a failed result whose message names the cause.
    """
    started = clock()
    actual: Any = MISSING
    expected: Any = None
    difference: float | None = None
    try:
        expected = check.expected
        actual = actual_value_for(check, value)
        if isinstance(check, (StatusCheck, NumericCheck, FieldCheck)):
            passed, message = _evaluate_comparison(check, actual)
            difference = numeric_difference(actual, check.expected_value)
        elif isinstance(check, SchemaCheck):
            passed, message = _evaluate_schema(check, actual)
        elif isinstance(check, CustomCheck):
            passed, message = _evaluate_custom(check, actual)
        else:
            raise CheckEvaluationError(f"Unknown check variant {type(check).__name__}")
    except CheckEvaluationError as exc:
        passed, message = False, f"Check execution failed: {exc}"
    except Exception as exc:
        passed, message = False, f"Check execution failed: {type(exc).__name__}: {exc}"

    return CheckResult(
        check_id=check.check_id,
        check_name=check.name,
        check_type=check.check_type,
        passed=passed,
        expected_value=expected,
        actual_value=None if actual is MISSING else actual,
        message=message,
        severity=check.severity,
        execution_time_ms=(clock() - started) * 1000,
        difference=difference,
    )


__all__ = [
    "MISSING",
    "resolve_path",
    "actual_value_for",
    "is_number",
    "exists",
    "values_equal",
    "compare",
    "numeric_difference",
    "kind_of",
    "matches_schema",
    "evaluate",
]
