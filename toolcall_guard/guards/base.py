"""Guard layer — Base class and capability helpers.

A guard inspects a single :class:`~toolcall_guard.models.Call` and returns a
:class:`~toolcall_guard.models.Decision`.  Guards hold configuration only;
they keep no state between calls.

External capabilities (intent verifiers, approvers, custom validators) can be
plain callables, coroutine functions, or objects exposing a named method.
``resolve_capability`` and ``invoke_capability`` normalise all of these so
the guards only ever ``await`` a result.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import threading
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Union

from toolcall_guard.exceptions import ConfigurationError
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision

log = get_logger(__name__)

DecisionFn = Callable[[Call], Union[Decision, Awaitable[Decision]]]


class Guard(ABC):
    """Abstract authorization layer."""

    name: str = "guard"

    @abstractmethod
    async def evaluate(self, call: Call) -> Decision:
        """Return the decision for *call*.

        Implementations report failures of their collaborators as denials.
        Anything that still escapes is turned into a denial by the pipeline.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class FunctionGuard(Guard):
    """Adapts a plain ``Call -> Decision`` function (sync or async) to a Guard."""

    def __init__(self, fn: DecisionFn, name: str | None = None) -> None:
        self._fn = fn
        self.name = name or getattr(fn, "__name__", "function")

    async def evaluate(self, call: Call) -> Decision:
        result = self._fn(call)
        if inspect.isawaitable(result):
            result = await result
        return result


# ---------------------------------------------------------------------------
# Capability helpers
# ---------------------------------------------------------------------------


def resolve_capability(capability: Any, method: str) -> Callable[..., Any]:
    """Return the callable behind *capability*.

    Callables are used as-is; otherwise the object must expose *method*.
    """
    if callable(capability):
        return capability
    fn = getattr(capability, method, None)
    if fn is None or not callable(fn):
        raise ConfigurationError(
            f"{type(capability).__name__} is neither callable nor provides '{method}()'",
            context={"method": method},
        )
    return fn


async def invoke_capability(fn: Callable[..., Any], *args: Any) -> Any:
    """Call *fn* without blocking the event loop.

    Coroutine functions are awaited directly.  Synchronous callables run on a
    daemon thread so slow or blocking implementations (a terminal prompt,
    a blocking HTTP client) can neither stall timers running on the loop nor
    hold up interpreter or ``asyncio.run()`` shutdown once abandoned.
    """
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    ):
        return await fn(*args)
    result = await _run_on_daemon_thread(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _run_on_daemon_thread(fn: Callable[..., Any], *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    ctx = contextvars.copy_context()

    def deliver(setter: Callable[[Any], None], value: Any) -> None:
        if not future.done():
            setter(value)

    def worker() -> None:
        try:
            outcome: tuple[Callable[[Any], None], Any] = (future.set_result, ctx.run(fn, *args))
        except Exception as exc:
            outcome = (future.set_exception, exc)
        try:
            loop.call_soon_threadsafe(deliver, *outcome)
        except RuntimeError:
            # Loop already closed: the caller gave up on this answer.
            log.debug("capability_result_dropped", capability=getattr(fn, "__name__", repr(fn)))

    threading.Thread(target=worker, name="toolguard-capability", daemon=True).start()
    return await future
