"""Guard layer — Semantic intent verification.

Asks an external verifier whether a call is consistent with the end user's
originating request.  The verifier sees a rendered prompt and answers
``True`` (aligned) or ``False`` (suspicious).  Any failure of the verifier
is a denial: this layer fails closed.

Usage::

    guard = IntentGuard(
        verifier=LLMIntentVerifier(client),
        skip_operations=["status:ping"],
    )
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, Protocol, Union

from toolcall_guard.guards.base import Guard, invoke_capability, resolve_capability
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision, format_arguments
from toolcall_guard.patterns import matches_any_pattern

log = get_logger(__name__)

DEFAULT_PROMPT_TEMPLATE = """\
You are a security reviewer for an AI agent. Decide whether the tool call \
below is consistent with what the user actually asked for.

Answer with exactly one word, ALIGNED or SUSPICIOUS, optionally followed by \
a short justification on the same line.

User request:
{originating_request}

Operation: {operation}

Arguments:
{arguments}

Consider whether the operation fits the request, whether the arguments are \
the ones the user would expect, and whether the call could serve a goal the \
user did not state.

Verdict:"""


class IntentVerifier(Protocol):
    """Judges whether a rendered prompt describes an aligned call.

    Return ``True`` when aligned and ``False`` when not.  Raising is allowed
    and always results in a denial.  Plain callables (sync or async) with the
    same signature are accepted wherever an ``IntentVerifier`` is.
    """

    def verify(self, prompt: str) -> Union[bool, Awaitable[bool]]: ...


VerifierLike = Union[IntentVerifier, Callable[[str], Any]]


def render_prompt(template: str, call: Call) -> str:
    return (
        template.replace("{operation}", call.operation)
        .replace("{arguments}", format_arguments(call.arguments))
        .replace("{originating_request}", call.originating_request or "")
    )


class IntentGuard(Guard):
    """Delegates the alignment decision to an external verifier."""

    name = "intent"

    def __init__(
        self,
        verifier: VerifierLike,
        *,
        skip_operations: Iterable[str] = (),
        prompt_template: str | None = None,
        allow_without_context: bool = True,
    ) -> None:
        self._verify = resolve_capability(verifier, "verify")
        self._skip = frozenset(skip_operations)
        self._template = prompt_template or DEFAULT_PROMPT_TEMPLATE
        self._allow_without_context = allow_without_context

    async def evaluate(self, call: Call) -> Decision:
        if call.operation in self._skip:
            return Decision.allow(guard=self.name)

        if not call.originating_request:
            if self._allow_without_context:
                return Decision.allow(guard=self.name)
            return Decision.deny(
                f'Intent verification requires originating request context for "{call.operation}"',
                guard=self.name,
            )

        try:
            prompt = render_prompt(self._template, call)
            aligned = await invoke_capability(self._verify, prompt)
        except Exception as exc:
            log.warning("intent_verifier_failed", operation=call.operation, error=str(exc))
            return Decision.deny(f"Intent verification failed: {exc}", guard=self.name)

        if aligned is True:
            return Decision.allow(guard=self.name)
        log.info("intent_misaligned", operation=call.operation)
        return Decision.deny(
            f'Operation "{call.operation}" does not align with the originating request intent',
            guard=self.name,
        )


class SelectiveIntentGuard(IntentGuard):
    """Only verifies operations matching one of ``inspect_patterns``."""

    def __init__(
        self,
        verifier: VerifierLike,
        inspect_patterns: Iterable[str],
        **kwargs: Any,
    ) -> None:
        super().__init__(verifier, **kwargs)
        self._inspect = tuple(inspect_patterns)

    async def evaluate(self, call: Call) -> Decision:
        if not matches_any_pattern(self._inspect, call.operation):
            return Decision.allow(guard=self.name)
        return await super().evaluate(call)
