"""Shared fixtures for rulecheck tests."""

from __future__ import annotations

from typing import Any

import pytest

from rulecheck.models import (
    FieldCheck,
    NumericCheck,
    Rule,
    RuleCategory,
    Severity,
    StatusCheck,
)


def fixed_clock() -> float:
    """Clock that never advances, so every timing is exactly 0 ms."""
    return 0.0


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def api_response() -> dict[str, Any]:
    """A recorded API response in the shape the status/header/body checks read."""
    return {
        "status": 200,
        "response_time": 240,
        "headers": {"Content-Type": "application/json; charset=utf-8"},
        "body": {
            "success": True,
            "data": [{"id": 1, "nickname": "Don"}, {"id": 2, "nickname": "Sheriff"}],
            "pagination": {"page": 1, "total": 2},
        },
    }


@pytest.fixture
def status_rule() -> Rule:
    return Rule(
        rule_id="api-status",
        name="Status 200",
        category=RuleCategory.API,
        severity=Severity.CRITICAL,
        target="/api/players",
        checks=(
            StatusCheck(
                check_id="status",
                name="Status code",
                expected_value=200,
                severity=Severity.CRITICAL,
            ),
        ),
    )


@pytest.fixture
def rating_rule() -> Rule:
    return Rule(
        rule_id="player-rating",
        name="Rating range",
        category=RuleCategory.DATA_QUALITY,
        target="player:42",
        checks=(
            NumericCheck(
                check_id="rating-min",
                name="Rating above zero",
                path="rating",
                operator="greater_than",
                expected_value=0,
                severity=Severity.HIGH,
            ),
            NumericCheck(
                check_id="rating-max",
                name="Rating below 3000",
                path="rating",
                operator="less_than",
                expected_value=3000,
                severity=Severity.MEDIUM,
            ),
        ),
    )


@pytest.fixture
def body_rule() -> Rule:
    return Rule(
        rule_id="api-body",
        name="Players payload",
        target="/api/players",
        checks=(
            FieldCheck(
                check_id="success",
                name="Success flag",
                check_type="body",
                path="success",
                expected_value=True,
            ),
            FieldCheck(
                check_id="content-type",
                name="JSON content type",
                check_type="header",
                path="content-type",
                operator="contains",
                expected_value="application/json",
                severity=Severity.LOW,
            ),
        ),
    )
