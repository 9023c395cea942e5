"""Host integration — middleware and decorator adapters.

Agent frameworks usually route tool invocations through a middleware chain
of the form ``await middleware(request, call_next)``.  ``GuardMiddleware``
plugs the evaluator into such a chain:

  - non-tool requests pass straight through;
  - the end user's prompt is read from ``request.meta["user_prompt"]``;
  - a denial raises :class:`~toolcall_guard.exceptions.GuardDeniedError`;
  - sanitized arguments replace ``request.arguments`` once, after evaluation.

For plain async tool functions use :func:`guarded` instead::

    @guarded(evaluator, "fs:readFile")
    async def read_file(path: str, limit: int = 100) -> str: ...
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from toolcall_guard.evaluator import Evaluator
from toolcall_guard.exceptions import GuardDeniedError
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call

log = get_logger(__name__)

T = TypeVar("T")

USER_PROMPT_KEY = "user_prompt"


@dataclass
class ToolRequest:
    """Mutable request travelling through a host middleware chain."""

    kind: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)


class GuardMiddleware:
    def __init__(self, evaluator: Evaluator, *, guarded_kinds: tuple[str, ...] = ("tool",)) -> None:
        self._evaluator = evaluator
        self._kinds = guarded_kinds

    async def __call__(
        self,
        request: ToolRequest,
        call_next: Callable[[ToolRequest], Awaitable[T]],
    ) -> T:
        if request.kind not in self._kinds:
            return await call_next(request)

        prompt = request.meta.get(USER_PROMPT_KEY)
        call = Call(
            operation=request.name,
            arguments=dict(request.arguments),
            originating_request=prompt if isinstance(prompt, str) else None,
            metadata=dict(request.meta),
        )
        decision = await self._evaluator.evaluate(call)
        if not decision.allowed:
            raise GuardDeniedError(decision.guard, request.name, decision.reason or "Denied")

        if decision.sanitized_arguments is not None:
            request.arguments.clear()
            request.arguments.update(decision.sanitized_arguments)
        return await call_next(request)


def guarded(
    evaluator: Evaluator,
    operation: str,
    *,
    originating_request: Callable[[], str | None] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Guard an async tool function called with keyword arguments.

    ``originating_request`` is an optional zero-argument callable returning
    the current user prompt (e.g. read from a context variable).
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(**kwargs: Any) -> T:
            call = Call(
                operation=operation,
                arguments=kwargs,
                originating_request=originating_request() if originating_request else None,
            )
            decision = await evaluator.evaluate(call)
            if not decision.allowed:
                raise GuardDeniedError(decision.guard, operation, decision.reason or "Denied")
            return await fn(**dict(decision.arguments_for(call)))

        return wrapper

    return decorator
