"""Rule file loader: builds ``Rule`` objects from YAML or JSON documents.

Expected layout::

    version: 1
    rules:
      - rule_id: api-001
        name: Test Suites API
        category: api
        severity: high
        target: /api/test-suites
        checks:
          - check_id: check-001
            name: Status Code
            type: status
            expected_value: 200
            severity: critical
          - check_id: check-002
            name: Has data
            type: custom
            predicate: non_empty

Custom checks name a predicate that the caller supplies in ``predicates``.
PyYAML is only required for ``.yaml`` / ``.yml`` files.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rulecheck.exceptions import MissingCustomValidatorError, RuleConfigurationError
from rulecheck.models import (
    Check,
    CheckType,
    CustomCheck,
    FieldCheck,
    NumericCheck,
    Predicate,
    Rule,
    RuleCategory,
    SchemaCheck,
    Severity,
    StatusCheck,
)

log = logging.getLogger(__name__)

_COMPARISON_CLASSES: dict[CheckType, type[Check]] = {
    CheckType.STATUS: StatusCheck,
    CheckType.NUMERIC: NumericCheck,
    CheckType.RESPONSE_TIME: NumericCheck,
    CheckType.FIELD: FieldCheck,
    CheckType.HEADER: FieldCheck,
    CheckType.BODY: FieldCheck,
}


def load_rules(path: Path, *, predicates: Mapping[str, Predicate] | None = None) -> list[Rule]:
    """Read and parse a rules file. Raises FileNotFoundError if absent."""
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    raw_text = path.read_text(encoding="utf-8")

    if path.suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError as exc:
            raise ImportError(
                "PyYAML is required for YAML rules files. "
                "Install with: pip install rulecheck[yaml]"
            ) from exc
        data = yaml.safe_load(raw_text)
    else:
        data = json.loads(raw_text)

    rules = parse_rules(data or {}, predicates=predicates)
    log.info("Loaded %d rules from %s", len(rules), path)
    return rules


def parse_rules(data: Mapping[str, Any], *, predicates: Mapping[str, Predicate] | None = None) -> list[Rule]:
    """Parse a ``{"version": n, "rules": [...]}`` document."""
    if not isinstance(data, Mapping):
        raise RuleConfigurationError("Rules document must be a mapping with a 'rules' list")
    version = data.get("version", 1)
    rules = data.get("rules") or []
    if not isinstance(rules, list):
        raise RuleConfigurationError(f"'rules' must be a list, got {type(rules).__name__}")
    return [parse_rule(rule_data, predicates=predicates or {}, version=version) for rule_data in rules]


def parse_rule(
    rule_data: Mapping[str, Any],
    *,
    predicates: Mapping[str, Predicate],
    version: int = 1,
) -> Rule:
    if not isinstance(rule_data, Mapping):
        raise RuleConfigurationError(f"Rule definition must be a mapping, got {type(rule_data).__name__}")
    try:
        rule_id = rule_data["rule_id"]
        severity = Severity(rule_data.get("severity", Severity.MEDIUM))
        checks_data = rule_data.get("checks") or []
        if not isinstance(checks_data, list):
            raise RuleConfigurationError(
                f"Rule {rule_id!r}: 'checks' must be a list, got {type(checks_data).__name__}"
            )
        checks = [
            _parse_check(rule_id, check_data, severity, predicates)
            for check_data in checks_data
        ]
        metadata = dict(rule_data.get("metadata", {}))
        metadata.setdefault("version", rule_data.get("version", version))
        return Rule(
            rule_id=rule_id,
            name=rule_data.get("name", rule_id),
            description=rule_data.get("description", ""),
            category=RuleCategory(rule_data.get("category", RuleCategory.API)),
            severity=severity,
            target=rule_data.get("target"),
            checks=tuple(checks),
            enabled=rule_data.get("enabled", True),
            metadata=metadata,
        )
    except KeyError as exc:
        raise RuleConfigurationError(f"Rule definition is missing {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise RuleConfigurationError(f"Invalid rule {rule_data.get('rule_id')!r}: {exc}") from exc


def _parse_check(
    rule_id: str,
    check_data: Mapping[str, Any],
    default_severity: Severity,
    predicates: Mapping[str, Predicate],
) -> Check:
    if not isinstance(check_data, Mapping):
        raise RuleConfigurationError(
            f"Rule {rule_id!r}: check definition must be a mapping, got {type(check_data).__name__}"
        )
    check_id = check_data["check_id"]
    check_type = CheckType(check_data["type"])
    common: dict[str, Any] = {
        "check_id": check_id,
        "name": check_data.get("name", check_id),
        "severity": Severity(check_data.get("severity", default_severity)),
        "path": check_data.get("path", ""),
        "check_type": check_type,
    }

    if check_type == CheckType.SCHEMA:
        schema = check_data.get("expected_schema", check_data.get("expected_value", {}))
        return SchemaCheck(expected_schema=schema, **common)

    if check_type == CheckType.CUSTOM:
        name = check_data.get("predicate")
        if name not in predicates:
            raise MissingCustomValidatorError(rule_id, check_id)
        return CustomCheck(predicate=predicates[name], **common)

    cls = _COMPARISON_CLASSES[check_type]
    return cls(
        expected_value=check_data.get("expected_value"),
        operator=check_data.get("operator", "equals"),
        tolerance=check_data.get("tolerance"),
        **common,
    )
