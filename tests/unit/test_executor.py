"""Tests for RuleExecutor: retrieval handling, isolation, concurrency, timeouts."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from rulecheck.evaluator import evaluate as real_evaluate
from rulecheck.exceptions import RetrievalError
from rulecheck.executor import RuleExecutor
from rulecheck.models import (
    FieldCheck,
    Rule,
    Severity,
    StatusCheck,
)
from tests.conftest import fixed_clock
from tests.fakes.fake_retrieval import FakeAsyncRetrieval, FakeRetrieval


def _rule(rule_id: str, target: str | None = None, *, severity: Severity = Severity.MEDIUM) -> Rule:
    return Rule(
        rule_id=rule_id,
        name=f"Rule {rule_id}",
        target=target or rule_id,
        severity=severity,
        checks=(StatusCheck(check_id=f"{rule_id}-status", name="Status", expected_value=200),),
    )


class TestValidateRule:
    def test_all_checks_pass(self, body_rule: Rule, api_response: dict) -> None:
        executor = RuleExecutor(FakeRetrieval({"/api/players": api_response}), clock=fixed_clock)
        result = executor.validate_rule(body_rule)
        assert result.passed is True
        assert len(result.checks) == 2
        assert result.errors == ()
        assert result.warnings == ()
        assert result.metadata == {"target": "/api/players"}

    def test_failed_checks_routed_by_severity(self) -> None:
        rule = Rule(
            rule_id="R",
            name="Routing",
            target="t",
            checks=(
                FieldCheck(check_id="crit", name="c", path="a", expected_value=1, severity=Severity.CRITICAL),
                FieldCheck(check_id="high", name="h", path="b", expected_value=1, severity=Severity.HIGH),
                FieldCheck(check_id="med", name="m", path="c", expected_value=1, severity=Severity.MEDIUM),
                FieldCheck(check_id="low", name="l", path="d", expected_value=1, severity=Severity.LOW),
            ),
        )
        executor = RuleExecutor(FakeRetrieval({"t": {"a": 0, "b": 0, "c": 0, "d": 0}}))
        result = executor.validate_rule(rule)
        assert result.passed is False
        assert len(result.errors) == 2
        assert len(result.warnings) == 2

    def test_passed_is_and_over_checks(self, rating_rule: Rule) -> None:
        executor = RuleExecutor(FakeRetrieval({"player:42": {"rating": -100}}))
        result = executor.validate_rule(rating_rule)
        first, second = result.checks
        assert first.passed is False
        assert second.passed is True
        assert result.passed is False
        assert result.passed == all(c.passed for c in result.checks)

    def test_retrieval_error_value(self) -> None:
        executor = RuleExecutor(FakeRetrieval(errors={"t": "connection refused"}))
        result = executor.validate_rule(_rule("R", "t"))
        assert result.passed is False
        assert result.checks == ()
        assert result.errors == ("Retrieval failed: connection refused",)
        assert result.metadata["error_type"] == "RetrievalError"

    def test_retrieval_error_exception_object(self) -> None:
        executor = RuleExecutor(FakeRetrieval(errors={"t": ConnectionError("db down")}))
        result = executor.validate_rule(_rule("R", "t"))
        assert result.passed is False
        assert result.checks == ()
        assert result.metadata["error_type"] == "ConnectionError"
        assert "db down" in result.errors[0]

    def test_retrieval_raising(self) -> None:
        executor = RuleExecutor(FakeRetrieval(raises={"t": TimeoutError("socket timeout")}))
        result = executor.validate_rule(_rule("R", "t"))
        assert result.passed is False
        assert len(result.errors) == 1
        assert result.checks == ()

    def test_adapter_must_return_pair(self) -> None:
        executor = RuleExecutor(lambda rule: {"status": 200})
        result = executor.validate_rule(_rule("R"))
        assert result.passed is False
        assert "expected (value, error)" in result.errors[0]

    def test_timeout_treated_as_retrieval_error(self) -> None:
        executor = RuleExecutor(
            FakeRetrieval({"slow": {"status": 200}}, delays={"slow": 1.0}),
            timeout_seconds=0.05,
        )
        started = time.perf_counter()
        result = executor.validate_rule(_rule("R", "slow"))
        assert time.perf_counter() - started < 0.5
        assert result.passed is False
        assert result.checks == ()
        assert "timed out" in result.errors[0]

    def test_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            RuleExecutor(FakeRetrieval(), max_workers=0)
        with pytest.raises(ValueError):
            RuleExecutor(FakeRetrieval(), timeout_seconds=0)

    def test_async_adapter(self) -> None:
        executor = RuleExecutor(FakeAsyncRetrieval({"t": {"status": 200}}))
        assert executor.validate_rule(_rule("R", "t")).passed is True


class TestRun:
    def test_one_result_per_rule_in_order(self) -> None:
        rules = [_rule("A"), _rule("B"), _rule("C")]
        retrieval = FakeRetrieval(
            {"A": {"status": 200}, "B": {"status": 500}, "C": {"status": 200}},
            delays={"A": 0.05, "B": 0.02},
        )
        results = RuleExecutor(retrieval, max_workers=3).run(rules)
        assert [r.rule_id for r in results] == ["A", "B", "C"]
        assert [r.passed for r in results] == [True, False, True]

    def test_failing_retrieval_does_not_block_siblings(self) -> None:
        rules = [_rule("A"), _rule("B"), _rule("C")]
        retrieval = FakeRetrieval(
            {"A": {"status": 200}, "C": {"status": 200}},
            raises={"B": RetrievalError("query failed")},
        )
        results = RuleExecutor(retrieval).run(rules)
        assert len(results) == 3
        assert [r.passed for r in results] == [True, False, True]
        assert results[1].checks == ()
        assert sorted(retrieval.calls) == ["A", "B", "C"]

    def test_unexpected_exception_isolated_to_its_rule(self) -> None:
        def _flaky_evaluate(check, value, **kwargs):
            if check.check_id == "B-status":
                raise RuntimeError("evaluator bug")
            return real_evaluate(check, value, **kwargs)

        rules = [_rule("A"), _rule("B"), _rule("C")]
        retrieval = FakeRetrieval({k: {"status": 200} for k in "ABC"})
        with patch("rulecheck.executor.evaluate", side_effect=_flaky_evaluate):
            results = RuleExecutor(retrieval).run(rules)

        assert [r.passed for r in results] == [True, False, True]
        assert results[1].errors == ("Rule execution failed: evaluator bug",)
        assert results[1].checks == ()
        assert results[1].metadata["error_type"] == "RuntimeError"

    def test_thread_concurrency_is_bounded(self) -> None:
        rules = [_rule(str(i)) for i in range(8)]
        retrieval = FakeRetrieval(
            {str(i): {"status": 200} for i in range(8)},
            delays={str(i): 0.03 for i in range(8)},
        )
        results = RuleExecutor(retrieval, max_workers=3).run(rules)
        assert all(r.passed for r in results)
        assert 1 <= retrieval.max_active <= 3

    def test_sequential_with_one_worker(self) -> None:
        rules = [_rule(str(i)) for i in range(4)]
        retrieval = FakeRetrieval({str(i): {"status": 200} for i in range(4)})
        RuleExecutor(retrieval, max_workers=1).run(rules)
        assert retrieval.max_active == 1
        assert retrieval.calls == ["0", "1", "2", "3"]

    def test_hung_sync_adapter_does_not_hold_up_run(self) -> None:
        rules = [_rule("ok"), _rule("hung")]
        retrieval = FakeRetrieval({"ok": {"status": 200}}, delays={"hung": 2.0})
        started = time.perf_counter()
        results = RuleExecutor(retrieval, timeout_seconds=0.1).run(rules)
        elapsed = time.perf_counter() - started

        assert [r.passed for r in results] == [True, False]
        assert results[1].errors == ("Retrieval failed: timed out after 0.1s",)
        assert elapsed < 1.0

    def test_empty_batch(self) -> None:
        assert RuleExecutor(FakeRetrieval()).run([]) == []

    @pytest.mark.asyncio
    async def test_run_async_bounds_coroutines(self) -> None:
        rules = [_rule(str(i)) for i in range(6)]
        retrieval = FakeAsyncRetrieval(
            {str(i): {"status": 200} for i in range(6)},
            delays={str(i): 0.02 for i in range(6)},
        )
        results = await RuleExecutor(retrieval, max_workers=2).run_async(rules)
        assert len(results) == 6
        assert retrieval.max_active == 2

    @pytest.mark.asyncio
    async def test_slow_rule_times_out_while_others_complete(self) -> None:
        rules = [_rule("fast"), _rule("slow"), _rule("fast2", "fast")]
        retrieval = FakeAsyncRetrieval(
            {"fast": {"status": 200}, "slow": {"status": 200}},
            delays={"slow": 1.0},
        )
        results = await RuleExecutor(retrieval, timeout_seconds=0.05).run_async(rules)
        assert [r.passed for r in results] == [True, False, True]
        assert "timed out" in results[1].errors[0]
