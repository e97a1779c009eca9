"""Validation engine: registry, executor and aggregation behind one object.

Each ``validate_all()`` / ``validate_rule()`` call replaces the stored
results of the previous run.  With ``retain_history=True`` completed runs
are also kept, newest last, up to ``history_limit``.

Runs are single-flight per engine: starting a run while another is in flight
raises ``RunInProgressError`` instead of interleaving two result sets.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone
from typing import Any

from rulecheck.adapters import RetrievalAdapter
from rulecheck.aggregator import ResultAggregator
from rulecheck.exceptions import RunInProgressError
from rulecheck.executor import RuleExecutor
from rulecheck.models import Rule, RuleCategory, RuleResult, Severity, ValidationSummary
from rulecheck.registry import RuleRegistry

log = logging.getLogger(__name__)


class ValidationEngine:
    """Registers rules, runs them, and answers questions about the last run."""

    def __init__(
        self,
        retrieve: RetrievalAdapter,
        *,
        registry: RuleRegistry | None = None,
        max_workers: int = 4,
        timeout_seconds: float | None = 30.0,
        retain_history: bool = False,
        history_limit: int = 10,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._log = logger or log
        self._registry = registry if registry is not None else RuleRegistry(logger=self._log)
        self._executor = RuleExecutor(
            retrieve,
            max_workers=max_workers,
            timeout_seconds=timeout_seconds,
            logger=self._log,
            clock=clock,
        )
        self._results: tuple[RuleResult, ...] = ()
        self._retain_history = retain_history
        self._history: deque[tuple[RuleResult, ...]] = deque(maxlen=history_limit)
        self._run_lock = threading.Lock()

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    # ── Registration ────────────────────────────────────────────────

    def add_rule(self, rule: Rule) -> None:
        self._registry.add(rule)

    def add_rules(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self._registry.add(rule)

    def remove_rule(self, rule_id: str) -> bool:
        return self._registry.remove(rule_id)

    def update_rule(self, rule_id: str, **changes: Any) -> bool:
        return self._registry.update(rule_id, **changes)

    def enable_rule(self, rule_id: str) -> bool:
        return self._registry.enable(rule_id)

    def disable_rule(self, rule_id: str) -> bool:
        return self._registry.disable(rule_id)

    def get_rule(self, rule_id: str) -> Rule:
        return self._registry.get(rule_id)

    def list_rules(self, *, category: RuleCategory | str | None = None) -> list[Rule]:
        return self._registry.list(category=category)

    def list_enabled_rules(self) -> list[Rule]:
        return self._registry.list_enabled()

    def list_disabled_rules(self) -> list[Rule]:
        return self._registry.list_disabled()

    def clear_rules(self) -> None:
        self._registry.clear()

    # ── Execution ───────────────────────────────────────────────────

    @contextlib.contextmanager
    def _single_flight(self) -> Iterator[None]:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("A validation run is already in progress on this engine")
        try:
            yield
        finally:
            self._run_lock.release()

    def validate_all(self) -> list[RuleResult]:
        """Run every enabled rule; one result per rule, in registry order.

        Must not be called from inside a running event loop; use
        ``validate_all_async`` there.
        """
        with self._single_flight():
            rules = self._start(self._registry.list_enabled())
            results = self._executor.run(rules)
            self._finish(results)
        return results

    async def validate_all_async(self) -> list[RuleResult]:
        with self._single_flight():
            rules = self._start(self._registry.list_enabled())
            results = await self._executor.run_async(rules)
            self._finish(results)
        return results

    def validate_rule(self, rule_id: str) -> RuleResult:
        """Run a single registered rule, enabled or not.

        Raises KeyError if the rule is not registered.
        """
        with self._single_flight():
            rules = self._start([self._registry.get(rule_id)])
            results = self._executor.run(rules)
            self._finish(results)
        return results[0]

    async def validate_rule_async(self, rule_id: str) -> RuleResult:
        with self._single_flight():
            rules = self._start([self._registry.get(rule_id)])
            results = await self._executor.run_async(rules)
            self._finish(results)
        return results[0]

    def _start(self, rules: list[Rule]) -> list[Rule]:
        self._log.info("Starting validation of %d rules", len(rules))
        return rules

    def _finish(self, results: list[RuleResult]) -> None:
        self._results = tuple(results)
        if self._retain_history:
            self._history.append(self._results)
        passed = sum(1 for r in results if r.passed)
        self._log.info(
            "Validation completed: %d rules, %d passed, %d failed",
            len(results),
            passed,
            len(results) - passed,
        )

    # ── Inspection ──────────────────────────────────────────────────

    @property
    def results(self) -> list[RuleResult]:
        """Results of the most recent run."""
        return list(self._results)

    @property
    def history(self) -> list[list[RuleResult]]:
        """Completed runs, oldest first. Empty unless ``retain_history``."""
        return [list(run) for run in self._history]

    def _aggregator(self) -> ResultAggregator:
        return ResultAggregator(self._results)

    def get_summary(self) -> ValidationSummary:
        return self._aggregator().summary()

    def get_failed_results(self) -> list[RuleResult]:
        return self._aggregator().failed()

    def get_passed_results(self) -> list[RuleResult]:
        return self._aggregator().passed()

    def get_results_by_severity(self, severity: Severity | str) -> list[RuleResult]:
        return self._aggregator().by_severity(severity)

    def get_results_by_category(self, category: RuleCategory | str) -> list[RuleResult]:
        return self._aggregator().by_category(category)

    def clear_results(self) -> None:
        """Drop the last run's results. Rules and history are kept."""
        self._results = ()
        self._log.info("Validation results cleared")

    # ── Export ──────────────────────────────────────────────────────

    def export_results(self) -> dict[str, Any]:
        """Plain-data snapshot of the last run for external reporters."""
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": self.get_summary().to_dict(),
            "results": [r.to_dict() for r in self._results],
            "rules": [r.to_dict() for r in self._registry.list()],
        }

    def export_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.export_results(), indent=indent, default=str)
