"""Core layer — Value objects exchanged with the evaluator.

``Call`` describes one requested tool invocation, ``Decision`` is the
verdict returned for it and ``Rule`` is a single namespace policy entry.
All three are immutable: a guard that rewrites arguments produces a new
``Call`` via :meth:`Call.with_arguments`.

Usage::

    call = Call("fs:readFile", {"path": "notes.txt"}, originating_request="show my notes")
    decision = await evaluator.evaluate(call)
    if decision.allowed:
        run_tool(call.operation, decision.arguments_for(call))
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


class RuleAction(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class TimeoutDisposition(str, Enum):
    """What the approval layer does when no answer arrives in time."""

    DENY = "deny"
    ALLOW = "allow"


@dataclass(frozen=True)
class Call:
    """A single tool invocation awaiting authorization."""

    operation: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    originating_request: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    call_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def with_arguments(self, arguments: Mapping[str, Any]) -> Call:
        """Return a copy of this call carrying *arguments*."""
        return replace(self, arguments=dict(arguments))


def format_arguments(arguments: Mapping[str, Any]) -> str:
    """Render call arguments as indented JSON for prompts and approval requests.

    Keys are sorted when they are mutually comparable.  Mixed key types fall
    back to insertion order, and keys JSON cannot represent are skipped.
    """
    try:
        return json.dumps(dict(arguments), indent=2, sort_keys=True, default=str)
    except TypeError:
        return json.dumps(dict(arguments), indent=2, default=str, skipkeys=True)


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating a :class:`Call`.

    A denial always carries a non-empty ``reason`` and never carries
    ``sanitized_arguments``.  ``guard`` names the layer that decided, for
    diagnostics only.
    """

    allowed: bool
    reason: str | None = None
    sanitized_arguments: Mapping[str, Any] | None = None
    guard: str | None = None

    def __post_init__(self) -> None:
        if not self.allowed:
            if not self.reason:
                raise ValueError("A denied Decision requires a reason")
            if self.sanitized_arguments is not None:
                raise ValueError("A denied Decision cannot carry sanitized arguments")

    @classmethod
    def allow(
        cls,
        sanitized_arguments: Mapping[str, Any] | None = None,
        *,
        guard: str | None = None,
    ) -> Decision:
        return cls(allowed=True, sanitized_arguments=sanitized_arguments, guard=guard)

    @classmethod
    def deny(cls, reason: str, *, guard: str | None = None) -> Decision:
        return cls(allowed=False, reason=reason, guard=guard)

    def arguments_for(self, call: Call) -> Mapping[str, Any]:
        """Arguments the caller should actually run *call* with."""
        if self.sanitized_arguments is not None:
            return self.sanitized_arguments
        return call.arguments


class Rule(BaseModel):
    """Namespace policy entry: the first rule whose pattern matches decides."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(min_length=1, description="Operation name or glob with '*'.")
    action: RuleAction
    description: str | None = Field(
        default=None,
        description="Human-readable text used as the denial reason.",
    )
