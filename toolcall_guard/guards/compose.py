"""Guard layer — Composition helpers.

Small combinators for building custom pipelines out of guards::

    guard = pipe(
        NamespaceGuard(rules, default_action="deny"),
        when(lambda c: c.operation.startswith("db:"), ParameterGuard(schemas)),
        safe(my_flaky_guard, "Policy service unavailable"),
    )
"""

from __future__ import annotations

from typing import Callable

from toolcall_guard.guards.base import Guard
from toolcall_guard.models import Call, Decision
from toolcall_guard.pipeline import Pipeline

Predicate = Callable[[Call], bool]


def pipe(*guards: Guard) -> Pipeline:
    """Run *guards* in order with short-circuit and sanitization propagation."""
    return Pipeline(guards)


class _Conditional(Guard):
    def __init__(self, predicate: Predicate, guard: Guard, *, negate: bool) -> None:
        self._predicate = predicate
        self._guard = guard
        self._negate = negate
        self.name = guard.name

    async def evaluate(self, call: Call) -> Decision:
        if bool(self._predicate(call)) is self._negate:
            return Decision.allow()
        return await self._guard.evaluate(call)


def when(predicate: Predicate, guard: Guard) -> Guard:
    """Apply *guard* only to calls for which *predicate* is true."""
    return _Conditional(predicate, guard, negate=False)


def unless(predicate: Predicate, guard: Guard) -> Guard:
    """Apply *guard* only to calls for which *predicate* is false."""
    return _Conditional(predicate, guard, negate=True)


class _WithCall(Guard):
    def __init__(self, transform: Callable[[Call], Call], guard: Guard) -> None:
        self._transform = transform
        self._guard = guard
        self.name = guard.name

    async def evaluate(self, call: Call) -> Decision:
        return await self._guard.evaluate(self._transform(call))


def with_call(transform: Callable[[Call], Call], guard: Guard) -> Guard:
    """Show *guard* a transformed view of the call."""
    return _WithCall(transform, guard)


class _Constant(Guard):
    def __init__(self, decision: Decision, name: str) -> None:
        self._decision = decision
        self.name = name

    async def evaluate(self, call: Call) -> Decision:
        return self._decision


ALLOW_ALL: Guard = _Constant(Decision.allow(), "allow_all")


def deny_all(reason: str) -> Guard:
    return _Constant(Decision.deny(reason, guard="deny_all"), "deny_all")


class _Safe(Guard):
    def __init__(self, guard: Guard, fallback_reason: str) -> None:
        self._guard = guard
        self._fallback_reason = fallback_reason
        self.name = guard.name

    async def evaluate(self, call: Call) -> Decision:
        try:
            return await self._guard.evaluate(call)
        except Exception as exc:
            return Decision.deny(f"{self._fallback_reason}: {exc}", guard=self.name)


def safe(guard: Guard, fallback_reason: str = "Guard error") -> Guard:
    """Turn exceptions raised by *guard* into a denial with *fallback_reason*."""
    return _Safe(guard, fallback_reason)
