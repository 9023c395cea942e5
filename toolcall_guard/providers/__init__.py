"""Provider layer — LLM backends for intent verification.

``build_provider()`` turns an :class:`~toolcall_guard.config.IntentConfig`
into a client:

  - ``none``      — no client; the caller must supply its own verifier
  - ``openai``    — OpenAI / Azure OpenAI / compatible proxies
  - ``anthropic`` — Anthropic Claude
  - ``ollama``    — local Ollama daemon
  - ``custom``    — any ``LLMClient`` subclass, loaded by dotted path
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from toolcall_guard.exceptions import ConfigurationError
from toolcall_guard.providers.client import LLMClient, LLMMessage, LLMResponse
from toolcall_guard.providers.http import (
    AnthropicLLMClient,
    BaseHTTPLLMClient,
    OllamaLLMClient,
    OpenAILLMClient,
)

if TYPE_CHECKING:
    from toolcall_guard.config import IntentConfig

__all__ = [
    "AnthropicLLMClient",
    "BaseHTTPLLMClient",
    "LLMClient",
    "LLMMessage",
    "LLMResponse",
    "OllamaLLMClient",
    "OpenAILLMClient",
    "build_provider",
]

_BUILTIN: dict[str, type[BaseHTTPLLMClient]] = {
    "openai": OpenAILLMClient,
    "anthropic": AnthropicLLMClient,
    "ollama": OllamaLLMClient,
}


def build_provider(cfg: IntentConfig) -> LLMClient | None:
    """Build the client configured in *cfg*, or None for ``provider='none'``.

    Raises:
        ConfigurationError: Unknown provider or unusable custom class.
    """
    if cfg.provider == "none":
        return None

    kwargs: dict[str, Any] = {
        "api_key": cfg.api_key or "",
        "api_base_url": cfg.api_base_url or "",
        "model": cfg.model,
        "timeout": cfg.timeout_seconds,
        "max_retries": cfg.max_retries,
    }

    if cfg.provider in _BUILTIN:
        return _BUILTIN[cfg.provider](**kwargs)
    if cfg.provider == "custom":
        return _load_custom(cfg.custom_provider_class, kwargs)
    raise ConfigurationError(f"Unknown intent provider: {cfg.provider!r}")


def _load_custom(class_path: str | None, kwargs: dict[str, Any]) -> LLMClient:
    if not class_path:
        raise ConfigurationError("provider='custom' requires 'custom_provider_class'")

    module_path, _, class_name = class_path.rpartition(".")
    if not module_path:
        raise ConfigurationError(
            f"Invalid custom_provider_class {class_path!r}; expected 'package.module.ClassName'"
        )
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import {module_path!r}: {exc}") from exc

    cls = getattr(module, class_name, None)
    if not (isinstance(cls, type) and issubclass(cls, LLMClient)):
        raise ConfigurationError(f"{class_path!r} is not an LLMClient subclass")
    return cls(**kwargs)
