"""Tests for loading rules from YAML and JSON files."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rulecheck.exceptions import (
    InvalidCheckError,
    MissingCustomValidatorError,
    RuleConfigurationError,
)
from rulecheck.loader import load_rules, parse_rules
from rulecheck.models import (
    CheckType,
    CustomCheck,
    FieldCheck,
    NumericCheck,
    Operator,
    RuleCategory,
    SchemaCheck,
    Severity,
    StatusCheck,
)


@pytest.fixture
def yaml_rules_path(tmp_path: Path) -> Path:
    content = """\
version: 3
rules:
  - rule_id: api-001
    name: Players API
    category: api
    severity: high
    target: /api/players
    checks:
      - check_id: check-001
        name: Status Code
        type: status
        expected_value: 200
        severity: critical
      - check_id: check-002
        name: Response Time
        type: response_time
        operator: less_than
        expected_value: 1000
      - check_id: check-003
        name: Content Type
        type: header
        path: content-type
        operator: contains
        expected_value: application/json
        severity: medium
      - check_id: check-004
        name: Body shape
        type: schema
        expected_value:
          type: object
          properties:
            players: {type: array}
  - rule_id: db-001
    name: Orphaned participations
    category: referential
    target: SELECT COUNT(*) FROM game_participations WHERE player_id IS NULL
    enabled: false
    checks:
      - check_id: orphans
        name: No orphans
        type: numeric
        expected_value: 0
        tolerance: 0
"""
    path = tmp_path / "rules.yaml"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def json_rules_path(tmp_path: Path) -> Path:
    data = {
        "rules": [
            {
                "rule_id": "custom-001",
                "name": "Unique nicknames",
                "category": "tournament_scoring",
                "target": "players",
                "checks": [
                    {"check_id": "c1", "type": "custom", "predicate": "unique"},
                    {"check_id": "c2", "type": "body", "path": "data.0.id", "operator": "exists"},
                ],
            }
        ]
    }
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadRules:
    def test_yaml(self, yaml_rules_path: Path) -> None:
        rules = load_rules(yaml_rules_path)
        assert [r.rule_id for r in rules] == ["api-001", "db-001"]

        api = rules[0]
        assert api.severity is Severity.HIGH
        assert api.target == "/api/players"
        assert api.metadata["version"] == 3
        status, latency, header, schema = api.checks
        assert isinstance(status, StatusCheck)
        assert status.severity is Severity.CRITICAL
        assert isinstance(latency, NumericCheck)
        assert latency.check_type is CheckType.RESPONSE_TIME
        assert latency.severity is Severity.HIGH  # inherited from the rule
        assert isinstance(header, FieldCheck)
        assert header.operator is Operator.CONTAINS
        assert isinstance(schema, SchemaCheck)
        assert schema.expected_schema["type"] == "object"

        db = rules[1]
        assert db.enabled is False
        assert db.category is RuleCategory.REFERENTIAL
        assert db.checks[0].tolerance == 0

    def test_json_with_predicates(self, json_rules_path: Path) -> None:
        rules = load_rules(json_rules_path, predicates={"unique": lambda v: len(set(v)) == len(v)})
        rule = rules[0]
        assert rule.category.value == "tournament_scoring"
        assert isinstance(rule.checks[0], CustomCheck)
        assert rule.checks[0].predicate is not None
        assert rule.checks[0].name == "c1"
        assert rule.checks[1].check_type is CheckType.BODY

    def test_unknown_predicate(self, json_rules_path: Path) -> None:
        with pytest.raises(MissingCustomValidatorError):
            load_rules(json_rules_path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "nonexistent.yaml")

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        assert load_rules(path) == []


class TestParseRules:
    def test_missing_required_key(self) -> None:
        with pytest.raises(RuleConfigurationError, match="rule_id"):
            parse_rules({"rules": [{"name": "No id"}]})

    def test_unknown_check_type(self) -> None:
        data = {"rules": [{"rule_id": "R", "checks": [{"check_id": "c", "type": "xpath"}]}]}
        with pytest.raises(RuleConfigurationError):
            parse_rules(data)

    def test_invalid_check_definition(self) -> None:
        data = {
            "rules": [
                {
                    "rule_id": "R",
                    "checks": [{"check_id": "c", "type": "numeric", "expected_value": 1, "tolerance": -2}],
                }
            ]
        }
        with pytest.raises(InvalidCheckError):
            parse_rules(data)

    @pytest.mark.parametrize(
        "document",
        [
            {"rules": "api-001"},
            {"rules": ["not-a-mapping"]},
            {"rules": [{"rule_id": "R", "checks": "status"}]},
            {"rules": [{"rule_id": "R", "checks": ["status"]}]},
            {"rules": [{"rule_id": "R", "metadata": ["owner"]}]},
            {"rules": [{"rule_id": "R", "checks": [{"check_id": "c", "type": "custom", "predicate": ["x"]}]}]},
        ],
        ids=["rules-string", "rule-string", "checks-string", "check-string", "metadata-list", "predicate-list"],
    )
    def test_malformed_shapes(self, document: dict) -> None:
        with pytest.raises(RuleConfigurationError):
            parse_rules(document)

    def test_document_must_be_mapping(self) -> None:
        with pytest.raises(RuleConfigurationError):
            parse_rules([])  # type: ignore[arg-type]

    def test_defaults(self) -> None:
        rules = parse_rules({"rules": [{"rule_id": "R"}]})
        assert rules[0].name == "R"
        assert rules[0].checks == ()
        assert rules[0].enabled is True
        assert rules[0].metadata == {"version": 1}
