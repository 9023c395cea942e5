"""Core layer — Ordered guard pipeline.

Runs guards strictly in order against a "current call":

  - the first denial is returned immediately and later guards never run;
  - sanitized arguments returned by an allowing guard replace the current
    call's arguments, so every later guard sees the rewritten call;
  - an exception escaping a guard becomes a denial naming that guard.

When every guard allows, the result carries the cumulative sanitized
arguments if any guard rewrote them, and ``None`` otherwise.  An empty
pipeline allows everything.

A ``Pipeline`` is itself a :class:`~toolcall_guard.guards.base.Guard`, so
pipelines nest.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from toolcall_guard.guards.base import Guard
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision

log = get_logger(__name__)


class Pipeline(Guard):
    name = "pipeline"

    def __init__(self, guards: Iterable[Guard] = (), *, name: str | None = None) -> None:
        self._guards: tuple[Guard, ...] = tuple(guards)
        if name is not None:
            self.name = name

    @property
    def guards(self) -> tuple[Guard, ...]:
        return self._guards

    def __len__(self) -> int:
        return len(self._guards)

    async def evaluate(self, call: Call) -> Decision:
        current = call
        rewritten = False

        for guard in self._guards:
            try:
                decision = await guard.evaluate(current)
                if not isinstance(decision, Decision):
                    raise TypeError(f"expected Decision, got {type(decision).__name__}")
            except Exception as exc:
                log.error(
                    "guard_fault",
                    guard=guard.name,
                    operation=call.operation,
                    error=str(exc),
                    exc_info=True,
                )
                return Decision.deny(f"Guard '{guard.name}' failed: {exc}", guard=guard.name)

            if not decision.allowed:
                log.debug(
                    "guard_denied",
                    guard=decision.guard or guard.name,
                    operation=call.operation,
                    reason=decision.reason,
                )
                if decision.guard is None:
                    return replace(decision, guard=guard.name)
                return decision

            if decision.sanitized_arguments is not None:
                current = current.with_arguments(decision.sanitized_arguments)
                rewritten = True

        return Decision.allow(
            sanitized_arguments=dict(current.arguments) if rewritten else None
        )
