"""Provider layer — httpx-based chat clients.

``BaseHTTPLLMClient`` owns the ``httpx.AsyncClient`` and the retry loop
(exponential backoff on 429/5xx and transport errors).  The concrete
clients only describe their endpoint, headers and response shape:

  - ``OpenAILLMClient``    — ``/chat/completions`` (OpenAI, Azure, compatible proxies)
  - ``AnthropicLLMClient`` — ``/messages``
  - ``OllamaLLMClient``    — ``/api/chat`` on a local Ollama daemon

Usage::

    client = OpenAILLMClient(api_key="sk-...", model="gpt-4o-mini")
    reply = await client.chat([LLMMessage(role="user", content="ping")])
    await client.close()
"""

from __future__ import annotations

import asyncio
import time
from abc import abstractmethod
from typing import Any

import httpx

from toolcall_guard.logging import get_logger
from toolcall_guard.providers.client import LLMClient, LLMMessage, LLMResponse

log = get_logger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
_MAX_BACKOFF = 30.0


def backoff_delay(attempt: int) -> float:
    """1s, 2s, 4s, ... capped at 30s."""
    return min(2.0**attempt, _MAX_BACKOFF)


class BaseHTTPLLMClient(LLMClient):
    """Shared HTTP plumbing for the concrete providers.

    Args:
        api_key:      Credential, sent the way the provider expects.
        api_base_url: Endpoint root; each subclass has its own default.
        model:        Model identifier.
        timeout:      Default HTTP timeout in seconds.
        max_retries:  Extra attempts after a retryable failure (0 = none).
    """

    default_base_url: str = ""
    default_model: str = ""

    def __init__(
        self,
        *,
        api_key: str = "",
        api_base_url: str = "",
        model: str = "",
        timeout: float = 30.0,
        max_retries: int = 2,
    ) -> None:
        self._api_key = api_key
        self._base_url = (api_base_url or self.default_base_url).rstrip("/")
        self._model = model or self.default_model
        self._timeout = timeout
        self._max_retries = max_retries
        self._http: httpx.AsyncClient | None = None

    @property
    def model(self) -> str:
        return self._model

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self._timeout, headers=self._headers())
        return self._http

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _request(
        self, messages: list[LLMMessage], *, temperature: float, max_tokens: int
    ) -> tuple[str, dict[str, Any]]:
        """Return ``(url, json_body)`` for one completion request."""

    @abstractmethod
    def _response(self, data: dict[str, Any]) -> LLMResponse: ...

    async def chat(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float = 0.0,
        max_tokens: int = 256,
        timeout: float = 30.0,
    ) -> LLMResponse:
        url, body = self._request(messages, temperature=temperature, max_tokens=max_tokens)
        http = self._client()
        started = time.monotonic()
        last_exc: Exception | None = None

        for attempt in range(self._max_retries + 1):
            retry_left = attempt < self._max_retries
            try:
                resp = await http.post(url, json=body, timeout=timeout)
            except httpx.TransportError as exc:
                last_exc = exc
                if not retry_left:
                    break
                delay = backoff_delay(attempt)
                log.warning("llm_transport_retry", error=str(exc), attempt=attempt + 1, delay=delay)
                await asyncio.sleep(delay)
                continue

            if resp.status_code in _RETRYABLE_STATUS_CODES and retry_left:
                delay = backoff_delay(attempt)
                log.warning("llm_status_retry", status=resp.status_code, attempt=attempt + 1, delay=delay)
                await asyncio.sleep(delay)
                continue

            resp.raise_for_status()
            data = resp.json()
            result = self._response(data)
            result.latency_ms = round((time.monotonic() - started) * 1000, 1)
            result.raw = data
            return result

        raise last_exc or RuntimeError("LLM request failed after retries")

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None


def _openai_style_messages(messages: list[LLMMessage]) -> list[dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


class OpenAILLMClient(BaseHTTPLLMClient):
    default_base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _request(
        self, messages: list[LLMMessage], *, temperature: float, max_tokens: int
    ) -> tuple[str, dict[str, Any]]:
        return f"{self._base_url}/chat/completions", {
            "model": self._model,
            "messages": _openai_style_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _response(self, data: dict[str, Any]) -> LLMResponse:
        choices = data.get("choices") or [{}]
        usage = data.get("usage", {})
        return LLMResponse(
            content=choices[0].get("message", {}).get("content") or "",
            model=data.get("model", self._model),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
        )


class AnthropicLLMClient(BaseHTTPLLMClient):
    """Claude Messages API: the system prompt is a top-level field."""

    default_base_url = "https://api.anthropic.com/v1"
    default_model = "claude-3-5-haiku-latest"
    api_version = "2023-06-01"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "anthropic-version": self.api_version}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _request(
        self, messages: list[LLMMessage], *, temperature: float, max_tokens: int
    ) -> tuple[str, dict[str, Any]]:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        body: dict[str, Any] = {
            "model": self._model,
            "messages": _openai_style_messages([m for m in messages if m.role != "system"]),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system:
            body["system"] = system
        return f"{self._base_url}/messages", body

    def _response(self, data: dict[str, Any]) -> LLMResponse:
        text = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type", "text") == "text"
        )
        usage = data.get("usage", {})
        return LLMResponse(
            content=text,
            model=data.get("model", self._model),
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
        )


class OllamaLLMClient(BaseHTTPLLMClient):
    """Local Ollama daemon; no authentication."""

    default_base_url = "http://localhost:11434"
    default_model = "llama3.2"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _request(
        self, messages: list[LLMMessage], *, temperature: float, max_tokens: int
    ) -> tuple[str, dict[str, Any]]:
        return f"{self._base_url}/api/chat", {
            "model": self._model,
            "messages": _openai_style_messages(messages),
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

    def _response(self, data: dict[str, Any]) -> LLMResponse:
        return LLMResponse(
            content=data.get("message", {}).get("content", ""),
            model=data.get("model", self._model),
            prompt_tokens=data.get("prompt_eval_count", 0),
            completion_tokens=data.get("eval_count", 0),
        )
