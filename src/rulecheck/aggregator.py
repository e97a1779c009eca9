"""Result aggregation: summary counts and filtered views over one run."""

from __future__ import annotations

from collections.abc import Iterable

from rulecheck.models import RuleCategory, RuleResult, Severity, ValidationSummary


class ResultAggregator:
    """Read-only derivations over a list of rule results.

    Nothing here is cached; ``summary()`` recomputes from the stored results
    and yields equal output for equal input.
    """

    def __init__(self, results: Iterable[RuleResult]) -> None:
        self._results = tuple(results)

    @property
    def results(self) -> list[RuleResult]:
        return list(self._results)

    def summary(self) -> ValidationSummary:
        """Compute pass/fail counts, severity breakdown and timing.

        ``by_severity`` counts failed checks by their severity.  A rule that
        failed without evaluating any check (retrieval error) counts once
        under the rule's own severity.
        """
        results = self._results
        all_checks = [c for r in results for c in r.checks]

        by_severity = {s: 0 for s in Severity}
        for check in all_checks:
            if not check.passed:
                by_severity[check.severity] += 1
        for result in results:
            if not result.passed and not result.checks:
                by_severity[result.severity] += 1

        total_time = sum(r.execution_time_ms for r in results)
        passed_rules = sum(1 for r in results if r.passed)
        passed_checks = sum(1 for c in all_checks if c.passed)

        return ValidationSummary(
            total_rules=len(results),
            passed_rules=passed_rules,
            failed_rules=len(results) - passed_rules,
            total_checks=len(all_checks),
            passed_checks=passed_checks,
            failed_checks=len(all_checks) - passed_checks,
            by_severity=by_severity,
            average_execution_time_ms=total_time / len(results) if results else 0.0,
            total_execution_time_ms=total_time,
        )

    def failed(self) -> list[RuleResult]:
        return [r for r in self._results if not r.passed]

    def passed(self) -> list[RuleResult]:
        return [r for r in self._results if r.passed]

    def by_severity(self, severity: Severity | str) -> list[RuleResult]:
        """Results containing at least one failed check of the given severity.

        Rules that failed before any check ran are not listed here; they
        still count under their own severity in ``summary().by_severity``.
        """
        wanted = Severity(severity)
        return [r for r in self._results if r.has_failure(wanted)]

    def by_category(self, category: RuleCategory | str) -> list[RuleResult]:
        wanted = RuleCategory(category)
        return [r for r in self._results if r.category == wanted]

    def sorted_by_severity(self) -> list[RuleResult]:
        """Failed results first, worst severity first; run order breaks ties."""

        def _key(item: tuple[int, RuleResult]) -> tuple[int, int, int]:
            index, result = item
            if result.passed:
                return (1, len(Severity), index)
            worst = min(
                (c.severity.rank for c in result.failed_checks),
                default=result.severity.rank,
            )
            return (0, worst, index)

        return [r for _, r in sorted(enumerate(self._results), key=_key)]
