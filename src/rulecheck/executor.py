"""Rule executor: retrieval plus check evaluation, one isolated task per rule.

Rules are independent, so ``run_async`` evaluates them concurrently up to
``max_workers``.  Each rule's retrieval and checks run as one task, the
retrieval is bounded by ``timeout_seconds``, and ``asyncio.gather`` collects
results in input order.  Any exception raised while a rule runs becomes a
failed ``RuleResult`` for that rule alone.

Synchronous adapters run on a thread pool owned by each call.  The pool is
shut down without waiting, so an adapter still running past its timeout does
not hold up the call that abandoned it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from rulecheck.adapters import RetrievalAdapter, is_async_adapter
from rulecheck.evaluator import evaluate
from rulecheck.exceptions import RetrievalError
from rulecheck.models import CheckResult, Rule, RuleResult

log = logging.getLogger(__name__)


class RuleExecutor:
    """Runs rules against values obtained from an injected retrieval adapter."""

    def __init__(
        self,
        retrieve: RetrievalAdapter,
        *,
        max_workers: int = 4,
        timeout_seconds: float | None = 30.0,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self._retrieve = retrieve
        self._max_workers = max_workers
        self._timeout = timeout_seconds
        self._log = logger or log
        self._clock = clock

    # ── Single rule ─────────────────────────────────────────────────

    def validate_rule(self, rule: Rule) -> RuleResult:
        """Synchronous wrapper around ``validate_rule_async``.

        Must not be called from inside a running event loop.
        """
        return asyncio.run(self.validate_rule_async(rule))

    async def validate_rule_async(self, rule: Rule) -> RuleResult:
        """Retrieve the rule's value and evaluate every check against it.

        A retrieval error or timeout yields a failed result with no checks;
        the checks are never evaluated against an absent value.
        """
        pool = self._thread_pool(1)
        try:
            return await self._validate(rule, pool)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    async def _validate(self, rule: Rule, pool: ThreadPoolExecutor) -> RuleResult:
        started = self._clock()
        try:
            value = await self._fetch(rule, pool)
        except Exception as exc:
            self._log.warning("Retrieval failed for rule %s: %s", rule.rule_id, exc)
            return self._failure(rule, f"Retrieval failed: {exc}", exc, started)

        checks = [evaluate(check, value, clock=self._clock) for check in rule.checks]
        return self._assemble(rule, checks, started)

    @staticmethod
    def _thread_pool(size: int) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=max(1, size), thread_name_prefix="rulecheck-retrieval")

    async def _call_adapter(self, rule: Rule, pool: ThreadPoolExecutor) -> Any:
        # Adapter exceptions surface as RetrievalError; only wait_for raises TimeoutError.
        try:
            if is_async_adapter(self._retrieve):
                return await self._retrieve(rule)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(pool, self._retrieve, rule)
        except Exception as exc:
            raise RetrievalError(str(exc) or type(exc).__name__) from exc

    async def _fetch(self, rule: Rule, pool: ThreadPoolExecutor) -> Any:
        """Call the adapter under the timeout and unpack ``(value, error)``."""
        try:
            outcome = await asyncio.wait_for(self._call_adapter(rule, pool), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise RetrievalError(f"timed out after {self._timeout}s") from exc

        if not isinstance(outcome, tuple) or len(outcome) != 2:
            raise RetrievalError(
                f"adapter returned {type(outcome).__name__}, expected (value, error)"
            )
        value, error = outcome
        if error is not None:
            if isinstance(error, BaseException):
                raise RetrievalError(str(error) or type(error).__name__) from error
            raise RetrievalError(str(error))
        return value

    # ── Batches ─────────────────────────────────────────────────────

    def run(self, rules: Sequence[Rule]) -> list[RuleResult]:
        """Synchronous wrapper around ``run_async``."""
        return asyncio.run(self.run_async(rules))

    async def run_async(self, rules: Sequence[Rule]) -> list[RuleResult]:
        """Run every rule given, returning one result per rule in input order."""
        sem = asyncio.Semaphore(self._max_workers)
        # A thread per rule; the semaphore bounds how many rules run at once.
        pool = self._thread_pool(len(rules))

        async def _guarded(rule: Rule) -> RuleResult:
            async with sem:
                started = self._clock()
                try:
                    result = await self._validate(rule, pool)
                except Exception as exc:
                    self._log.exception("Rule execution failed: %s", rule.rule_id)
                    return self._failure(rule, f"Rule execution failed: {exc}", exc, started)
            if result.passed:
                self._log.debug("Rule passed: %s", rule.name)
            else:
                self._log.warning("Rule failed: %s (%d errors)", rule.name, len(result.errors))
            return result

        try:
            return list(await asyncio.gather(*(_guarded(r) for r in rules)))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    # ── Result assembly ─────────────────────────────────────────────

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock() - started) * 1000

    def _assemble(self, rule: Rule, checks: list[CheckResult], started: float) -> RuleResult:
        errors: list[str] = []
        warnings: list[str] = []
        for check in checks:
            if check.passed:
                continue
            if check.severity.is_error:
                errors.append(check.message)
            else:
                warnings.append(check.message)

        return RuleResult(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            category=rule.category,
            severity=rule.severity,
            passed=all(c.passed for c in checks),
            checks=tuple(checks),
            errors=tuple(errors),
            warnings=tuple(warnings),
            execution_time_ms=self._elapsed_ms(started),
            metadata={"target": rule.target} if rule.target is not None else {},
        )

    def _failure(self, rule: Rule, message: str, exc: BaseException, started: float) -> RuleResult:
        cause = exc.__cause__ if isinstance(exc, RetrievalError) and exc.__cause__ else exc
        return RuleResult(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            category=rule.category,
            severity=rule.severity,
            passed=False,
            checks=(),
            errors=(message,),
            execution_time_ms=self._elapsed_ms(started),
            metadata={"error": str(exc), "error_type": type(cause).__name__},
        )
