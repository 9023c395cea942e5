"""Approvers — Implementations of the approval capability.

``ApprovalGate`` parks each approval request until another component (a web
handler, a chat bot, an operator console) calls ``submit_decision()``::

    gate = ApprovalGate()
    guard = ApprovalGuard(["payments:*"], approver=gate, timeout=120)

    # elsewhere, once a human has answered:
    for call in gate.get_pending():
        gate.submit_decision(call.call_id, approved=True)

``ConsoleApprover`` prints the request and always rejects.  It exists so a
development setup has a safe approver without any UI.
"""

from __future__ import annotations

import asyncio

from rich.console import Console

from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, format_arguments

log = get_logger(__name__)

_RULE = "=" * 51


def format_approval_request(call: Call) -> str:
    """Render *call* as a human-readable approval prompt."""
    lines = [
        _RULE,
        "APPROVAL REQUIRED",
        _RULE,
        "",
        f"Operation: {call.operation}",
        "",
        "Arguments:",
        format_arguments(call.arguments),
    ]
    if call.originating_request:
        lines += ["", "Original request:", call.originating_request]
    lines += ["", _RULE, "Approve this call? (yes/no)", _RULE]
    return "\n".join(lines)


class ConsoleApprover:
    """Prints each request and rejects it."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def approve(self, call: Call) -> bool:
        self._console.print(format_approval_request(call), markup=False, highlight=False)
        self._console.print("[yellow]Console approver: request auto-denied[/yellow]")
        return False


class _PendingEntry:
    """Internal tracking for a single parked request."""

    __slots__ = ("call", "event", "approved")

    def __init__(self, call: Call) -> None:
        self.call = call
        self.event = asyncio.Event()
        self.approved = False


class ApprovalGate:
    """Coordinates approval decisions between the guard and a human-facing UI.

    Single event loop only: all methods must be called from the loop that
    runs the guard.

    Args:
        ttl: Seconds after which a parked request is dropped and rejected.
             None = no expiry.  A request is also withdrawn as soon as the
             waiting ``approve()`` is cancelled, e.g. by a guard timeout.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._ttl = ttl
        self._pending: dict[str, _PendingEntry] = {}

    async def approve(self, call: Call) -> bool:
        entry = _PendingEntry(call)
        self._pending[call.call_id] = entry
        log.debug("approval_parked", call_id=call.call_id, operation=call.operation)
        try:
            await asyncio.wait_for(entry.event.wait(), timeout=self._ttl)
        except asyncio.TimeoutError:
            log.info("approval_expired", call_id=call.call_id, operation=call.operation)
            return False
        finally:
            self._pending.pop(call.call_id, None)
        return entry.approved

    def submit_decision(self, call_id: str, approved: bool) -> bool:
        """Resolve a parked request.

        Returns:
            True if a matching request was pending, False otherwise (unknown
            id, already decided or already expired).
        """
        entry = self._pending.get(call_id)
        if entry is None or entry.event.is_set():
            return False
        entry.approved = approved
        entry.event.set()
        return True

    def get_pending(self) -> list[Call]:
        return [e.call for e in self._pending.values()]

    @property
    def pending_count(self) -> int:
        return len(self._pending)
