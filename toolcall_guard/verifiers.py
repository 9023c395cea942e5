"""Intent verifiers — LLM-backed implementation of the verifier capability.

``LLMIntentVerifier`` sends the rendered intent prompt to an
:class:`~toolcall_guard.providers.LLMClient` and reads the first word of the
reply: ``ALIGNED`` means True, ``SUSPICIOUS`` means False.  Any other reply,
and any transport failure, raises :class:`IntentVerificationError` so the
intent guard fails closed.

Verdicts are cached in a bounded LRU keyed by a hash of the prompt; entries
expire after ``cache_ttl`` seconds.

Usage::

    verifier = LLMIntentVerifier(OpenAILLMClient(api_key="sk-..."))
    guard = IntentGuard(verifier)
"""

from __future__ import annotations

import hashlib
import re
import time
from collections import OrderedDict

from toolcall_guard.exceptions import IntentVerificationError
from toolcall_guard.logging import get_logger
from toolcall_guard.providers.client import LLMClient, LLMMessage

log = get_logger(__name__)

SYSTEM_PROMPT = (
    "You review tool calls made by an AI agent on a user's behalf. "
    "Reply with ALIGNED or SUSPICIOUS as the first word."
)

_VERDICT_RE = re.compile(r"^[\s`*_\"'>#:-]*(ALIGNED|SUSPICIOUS)\b", re.IGNORECASE)


def parse_verdict(content: str) -> bool | None:
    """Return True/False for a recognised verdict, None otherwise."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`").removeprefix("text").strip()
    match = _VERDICT_RE.match(text)
    if match is None:
        return None
    return match.group(1).upper() == "ALIGNED"


class LLMIntentVerifier:
    """Implements ``verify(prompt) -> bool`` on top of a chat model."""

    def __init__(
        self,
        client: LLMClient,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        timeout: float = 30.0,
        max_tokens: int = 64,
        cache_size: int = 256,
        cache_ttl: float = 300.0,
    ) -> None:
        self._client = client
        self._system_prompt = system_prompt
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._cache: OrderedDict[str, tuple[bool, float]] = OrderedDict()
        self._cache_size = cache_size
        self._cache_ttl = cache_ttl  # seconds, 0 = no TTL

    async def verify(self, prompt: str) -> bool:
        key = hashlib.sha256(prompt.encode()).hexdigest()
        cached = self._check_cache(key)
        if cached is not None:
            return cached

        messages = [
            LLMMessage(role="system", content=self._system_prompt),
            LLMMessage(role="user", content=prompt),
        ]
        try:
            response = await self._client.chat(
                messages,
                temperature=0.0,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as exc:
            raise IntentVerificationError(f"LLM request failed: {exc}") from exc

        verdict = parse_verdict(response.content)
        if verdict is None:
            raise IntentVerificationError(
                f"Unrecognised verdict from model: {response.content[:80]!r}",
                model=response.model,
            )

        log.debug(
            "intent_verdict",
            aligned=verdict,
            model=response.model,
            latency_ms=response.latency_ms,
        )
        self._store_cache(key, verdict)
        return verdict

    def clear_cache(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        await self._client.close()

    def _check_cache(self, key: str) -> bool | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        verdict, created_at = entry
        if self._cache_ttl > 0 and (time.monotonic() - created_at) > self._cache_ttl:
            del self._cache[key]
            return None
        self._cache.move_to_end(key)
        return verdict

    def _store_cache(self, key: str, verdict: bool) -> None:
        if self._cache_size <= 0:
            return
        self._cache[key] = (verdict, time.monotonic())
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
