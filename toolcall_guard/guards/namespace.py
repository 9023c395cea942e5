"""Guard layer — Namespace (static) access control.

An ordered list of :class:`~toolcall_guard.models.Rule` entries is scanned
top to bottom and the *first* rule whose pattern matches the operation
decides.  There is no specificity ordering: put narrow rules first.

Usage::

    guard = NamespaceGuard(
        rules=[
            Rule(pattern="fs:read*", action="allow"),
            Rule(pattern="fs:*", action="deny"),
        ],
        default_action="deny",
    )
"""

from __future__ import annotations

from typing import Iterable, Sequence

from toolcall_guard.guards.base import Guard
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision, Rule, RuleAction
from toolcall_guard.patterns import match_pattern

log = get_logger(__name__)


class NamespaceGuard(Guard):
    """First-match-wins rule evaluation with an explicit default action."""

    name = "namespace"

    def __init__(
        self,
        rules: Sequence[Rule | dict],
        default_action: RuleAction | str,
    ) -> None:
        self._rules: tuple[Rule, ...] = tuple(
            r if isinstance(r, Rule) else Rule.model_validate(r) for r in rules
        )
        self._default_action = RuleAction(default_action)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def default_action(self) -> RuleAction:
        return self._default_action

    def decide(self, operation: str) -> Decision:
        """Synchronous core of :meth:`evaluate`."""
        for rule in self._rules:
            if not match_pattern(rule.pattern, operation):
                continue
            if rule.action is RuleAction.ALLOW:
                return Decision.allow(guard=self.name)
            reason = rule.description or (
                f'Operation "{operation}" blocked by rule: {rule.pattern}'
            )
            log.debug("namespace_rule_denied", operation=operation, pattern=rule.pattern)
            return Decision.deny(reason, guard=self.name)

        if self._default_action is RuleAction.ALLOW:
            return Decision.allow(guard=self.name)
        return Decision.deny(
            f'Operation "{operation}" not permitted (no matching rule)',
            guard=self.name,
        )

    async def evaluate(self, call: Call) -> Decision:
        return self.decide(call.operation)


def allow_list(patterns: Iterable[str]) -> NamespaceGuard:
    """Permit only the listed patterns; everything else is denied."""
    return NamespaceGuard(
        [Rule(pattern=p, action=RuleAction.ALLOW) for p in patterns],
        default_action=RuleAction.DENY,
    )


def deny_list(patterns: Iterable[str]) -> NamespaceGuard:
    """Block the listed patterns; everything else is allowed."""
    return NamespaceGuard(
        [Rule(pattern=p, action=RuleAction.DENY) for p in patterns],
        default_action=RuleAction.ALLOW,
    )
