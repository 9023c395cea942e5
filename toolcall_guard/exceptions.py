"""toolcall-guard — Exception hierarchy.

Evaluation itself never raises: policy outcomes are returned as a
``Decision``.  The exceptions below cover the edges of the system:
construction-time configuration faults, the host adapter surfacing a
denial, and collaborator failures that the guards convert into denials.

Hierarchy:
    ToolGuardError
    ├── ConfigurationError
    ├── GuardDeniedError
    ├── IntentVerificationError
    └── RateLimitExceededError
"""

from __future__ import annotations

from typing import Any


class ToolGuardError(Exception):
    """Base exception for all toolcall-guard errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class ConfigurationError(ToolGuardError):
    """A guard or evaluator was constructed with an invalid configuration."""


class GuardDeniedError(ToolGuardError):
    """A guarded tool call was denied.

    Raised by the host integration adapter, never by the evaluator itself.
    """

    def __init__(self, guard: str | None, operation: str, reason: str) -> None:
        super().__init__(
            reason,
            context={"guard": guard, "operation": operation, "reason": reason},
        )
        self.guard = guard
        self.operation = operation
        self.reason = reason


class IntentVerificationError(ToolGuardError):
    """The intent verifier could not reach a verdict."""

    def __init__(self, reason: str, model: str | None = None) -> None:
        super().__init__(reason, context={"reason": reason, "model": model})
        self.reason = reason
        self.model = model


class RateLimitExceededError(ToolGuardError):
    """An operation has exceeded its configured call budget."""

    def __init__(self, operation: str, limit: int, window: str = "minute") -> None:
        super().__init__(
            f"Rate limit exceeded for '{operation}': max {limit} per {window}",
            context={"operation": operation, "limit": limit, "window": window},
        )
        self.operation = operation
        self.limit = limit
        self.window = window
