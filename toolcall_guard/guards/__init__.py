"""Guard layer — Namespace rules, parameter scrubbing, intent verification, approval.

Composition helpers live in :mod:`toolcall_guard.guards.compose`.
"""

from toolcall_guard.guards.approval import ApprovalGuard, Approver
from toolcall_guard.guards.base import FunctionGuard, Guard
from toolcall_guard.guards.injection import InjectionScanner, PatternRule
from toolcall_guard.guards.intent import (
    DEFAULT_PROMPT_TEMPLATE,
    IntentGuard,
    IntentVerifier,
    SelectiveIntentGuard,
)
from toolcall_guard.guards.namespace import NamespaceGuard, allow_list, deny_list
from toolcall_guard.guards.parameters import ParameterGuard
from toolcall_guard.guards.rate_limit import RateLimitGuard, SlidingWindowLimiter
from toolcall_guard.guards.schemas import FieldError, PydanticSchema, Schema, ValidationOutcome

__all__ = [
    "DEFAULT_PROMPT_TEMPLATE",
    "ApprovalGuard",
    "Approver",
    "FieldError",
    "FunctionGuard",
    "Guard",
    "InjectionScanner",
    "IntentGuard",
    "IntentVerifier",
    "NamespaceGuard",
    "ParameterGuard",
    "PatternRule",
    "PydanticSchema",
    "RateLimitGuard",
    "Schema",
    "SelectiveIntentGuard",
    "SlidingWindowLimiter",
    "ValidationOutcome",
    "allow_list",
    "deny_list",
]
