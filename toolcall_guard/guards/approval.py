"""Guard layer — Human-in-the-loop approval.

Calls whose operation matches a critical pattern are held until an external
approver answers or the timeout expires, whichever comes first.  Exactly one
outcome is applied per call:

  - approver answers True  → allowed
  - approver answers False → denied
  - approver raises        → denied ("Approval process failed: ...")
  - timeout                → denied or allowed according to ``on_timeout``

On timeout the approver task is cancelled, so a coroutine approver (such as
``ApprovalGate``) withdraws its pending request.  A synchronous approver keeps
running on its daemon thread; whatever it answers later is dropped.

Usage::

    guard = ApprovalGuard(
        critical_patterns=["payments:*", "fs:delete*"],
        approver=gate,                 # anything with approve(call) or a callable
        timeout=60,
        on_timeout="deny",
    )
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

from toolcall_guard.exceptions import ConfigurationError
from toolcall_guard.guards.base import Guard, invoke_capability, resolve_capability
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision, TimeoutDisposition
from toolcall_guard.patterns import matches_any_pattern

log = get_logger(__name__)

DEFAULT_APPROVAL_TIMEOUT = 300.0


class Approver(Protocol):
    """Asks a human (or a delegate) whether *call* may run.

    Return ``True`` to approve and ``False`` to reject.  Slow and blocking
    implementations are fine; synchronous ones run in a worker thread.
    Raising results in a denial.
    """

    def approve(self, call: Call) -> Union[bool, Awaitable[bool]]: ...


ApproverLike = Union[Approver, Callable[[Call], Any]]
RequestedHook = Callable[[Call], Any]
ReceivedHook = Callable[[Call, bool], Any]


class ApprovalGuard(Guard):
    """Races an external approval against a timer for critical operations."""

    name = "approval"

    def __init__(
        self,
        critical_patterns: Iterable[str],
        approver: ApproverLike,
        *,
        timeout: float = DEFAULT_APPROVAL_TIMEOUT,
        on_timeout: TimeoutDisposition | str = TimeoutDisposition.DENY,
        on_approval_requested: Optional[RequestedHook] = None,
        on_approval_received: Optional[ReceivedHook] = None,
    ) -> None:
        if timeout <= 0:
            raise ConfigurationError(
                f"Approval timeout must be positive, got {timeout!r}",
                context={"timeout": timeout},
            )
        self._patterns = tuple(critical_patterns)
        self._approve = resolve_capability(approver, "approve")
        self._timeout = float(timeout)
        self._on_timeout = TimeoutDisposition(on_timeout)
        self._on_requested = on_approval_requested
        self._on_received = on_approval_received

    @property
    def critical_patterns(self) -> tuple[str, ...]:
        return self._patterns

    def is_critical(self, operation: str) -> bool:
        return matches_any_pattern(self._patterns, operation)

    async def evaluate(self, call: Call) -> Decision:
        if not self.is_critical(call.operation):
            return Decision.allow(guard=self.name)

        log.info("approval_requested", operation=call.operation, timeout=self._timeout)
        await self._notify(self._on_requested, call)

        task = asyncio.ensure_future(invoke_capability(self._approve, call))
        try:
            done, _ = await asyncio.wait({task}, timeout=self._timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.add_done_callback(_discard_late_result)
            task.cancel()
            await self._notify(self._on_received, call, False)
            log.warning(
                "approval_timed_out",
                operation=call.operation,
                timeout=self._timeout,
                disposition=self._on_timeout.value,
            )
            if self._on_timeout is TimeoutDisposition.ALLOW:
                return Decision.allow(guard=self.name)
            return Decision.deny(
                f'Approval timed out for operation "{call.operation}" after {self._timeout:g}s',
                guard=self.name,
            )

        try:
            approved = task.result() is True
        except Exception as exc:
            log.error("approval_failed", operation=call.operation, error=str(exc))
            await self._notify(self._on_received, call, False)
            return Decision.deny(f"Approval process failed: {exc}", guard=self.name)

        await self._notify(self._on_received, call, approved)
        if approved:
            log.info("approval_granted", operation=call.operation)
            return Decision.allow(guard=self.name)
        log.info("approval_rejected", operation=call.operation)
        return Decision.deny(
            f'Approval denied for operation "{call.operation}"',
            guard=self.name,
        )

    async def _notify(self, hook: Optional[Callable[..., Any]], *args: Any) -> None:
        if hook is None:
            return
        try:
            result = hook(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            log.warning("approval_hook_failed", hook=getattr(hook, "__name__", repr(hook)), error=str(exc))


def _discard_late_result(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug("late_approval_failed", error=str(exc))
    else:
        log.debug("late_approval_ignored", approved=task.result())
