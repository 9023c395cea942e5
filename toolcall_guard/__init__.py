"""toolcall-guard — Layered authorization for agent tool calls.

Every tool invocation an agent requests is turned into a ``Call`` and run
through an ordered pipeline of guards before the tool executes:

    1. Namespace   — first-match glob rules with an explicit default action
    2. Rate limit  — sliding-window budgets per operation pattern
    3. Parameters  — injection heuristics plus schema validation/sanitization
    4. Intent      — an external verifier checks the call against the user's request
    5. Approval    — a human approves critical operations, raced against a timeout

The pipeline stops at the first denial, passes sanitized arguments forward,
and turns any internal failure into a denial.
"""

__version__ = "0.1.0"

from toolcall_guard.evaluator import Evaluator
from toolcall_guard.exceptions import ConfigurationError, GuardDeniedError, ToolGuardError
from toolcall_guard.models import Call, Decision, Rule, RuleAction, TimeoutDisposition
from toolcall_guard.pipeline import Pipeline

__all__ = [
    "__version__",
    "Call",
    "ConfigurationError",
    "Decision",
    "Evaluator",
    "GuardDeniedError",
    "Pipeline",
    "Rule",
    "RuleAction",
    "TimeoutDisposition",
    "ToolGuardError",
]
