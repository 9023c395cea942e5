"""Provider layer — Vendor-neutral chat client interface.

The intent verifier only needs "send a few messages, get text back".  Any
backend that implements :class:`LLMClient` can serve it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMMessage:
    role: str  # "system", "user" or "assistant"
    content: str


@dataclass
class LLMResponse:
    content: str
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict)


class LLMClient(ABC):
    """Async chat-completion client."""

    @abstractmethod
    async def chat(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float = 0.0,
        max_tokens: int = 256,
        timeout: float = 30.0,
    ) -> LLMResponse:
        """Send *messages* and return the model's reply.

        Transport and HTTP errors propagate to the caller.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release held resources (HTTP connections, etc.)."""
