"""Retrieval adapters: how the engine obtains the value a rule is checked against.

The contract is ``retrieve(rule) -> (value, error)``.  ``error`` is ``None``
on success, otherwise an exception or message.  Adapters may also raise, and
may be coroutine functions; the executor treats all of these alike.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, Union

from rulecheck.exceptions import RetrievalError
from rulecheck.models import Rule

RetrievalOutcome = tuple[Any, Union[BaseException, str, None]]


class RetrievalAdapter(Protocol):
    """Fetches the observable described by ``rule.target``."""

    def __call__(self, rule: Rule) -> RetrievalOutcome | Awaitable[RetrievalOutcome]:
        ...


def is_async_adapter(adapter: Callable[..., Any]) -> bool:
    """True if calling the adapter returns a coroutine."""
    if inspect.iscoroutinefunction(adapter):
        return True
    call = getattr(adapter, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


class StaticRetrieval:
    """Serves pre-recorded values keyed by rule target (or rule id).

    Useful for replaying captured responses and for tests.  A rule whose key
    is not present yields a ``RetrievalError``.
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def __call__(self, rule: Rule) -> RetrievalOutcome:
        key = rule.target if isinstance(rule.target, str) and rule.target else rule.rule_id
        if key not in self._values:
            return None, RetrievalError(f"No observed value for {key!r}")
        return self._values[key], None


def from_callable(fetch: Callable[[Rule], Any]) -> Callable[[Rule], Any]:
    """Adapt a raise-on-failure fetcher to the ``(value, error)`` contract.

    Works for plain and coroutine functions.
    """
    if is_async_adapter(fetch):

        @functools.wraps(fetch)
        async def _async_adapter(rule: Rule) -> RetrievalOutcome:
            try:
                return await fetch(rule), None
            except Exception as exc:
                return None, exc

        return _async_adapter

    @functools.wraps(fetch)
    def _adapter(rule: Rule) -> RetrievalOutcome:
        try:
            return fetch(rule), None
        except Exception as exc:
            return None, exc

    return _adapter


__all__ = [
    "RetrievalAdapter",
    "RetrievalOutcome",
    "StaticRetrieval",
    "from_callable",
    "is_async_adapter",
]
