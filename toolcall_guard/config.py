"""toolcall-guard — Guard configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. Environment variables prefixed with TOOLGUARD_
       (nested keys use ``__``, e.g. ``TOOLGUARD_APPROVAL__TIMEOUT_SECONDS=30``)
    3. System config: /etc/toolcall-guard/config.yaml
    4. User config:   ~/.toolcall-guard/config.yaml
    5. An explicit file passed to ``GuardSettings.load()``

A top-level section in a later file replaces the same section from an
earlier file.  File values are merged key by key over the environment.

Settings are validated once, at load time.  An invalid file raises
``pydantic.ValidationError`` before any call is evaluated.

Example ``config.yaml``::

    namespace:
      default_action: deny
      rules:
        - {pattern: "fs:read*", action: allow}
        - {pattern: "fs:*", action: deny, description: "Writes are disabled"}
    approval:
      critical_patterns: ["payments:*"]
      timeout_seconds: 60
      on_timeout: deny
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolcall_guard.models import Rule, RuleAction, TimeoutDisposition


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class NamespaceConfig(BaseModel):
    rules: list[Rule] = Field(
        default_factory=list,
        description="Ordered rules; the first matching pattern decides.",
    )
    default_action: RuleAction = Field(
        default=RuleAction.DENY,
        description="Action applied when no rule matches.",
    )


class InjectionPatternConfig(BaseModel):
    id: str = Field(min_length=1)
    pattern: str = Field(min_length=1, description="Python regular expression.")
    description: str = ""

    @field_validator("pattern")
    @classmethod
    def _must_compile(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid regular expression: {exc}") from exc
        return v


class ParameterConfig(BaseModel):
    enabled: bool = Field(
        default=False,
        description=(
            "Run the parameter layer even when no schemas are supplied "
            "(injection scanning only)."
        ),
    )
    strict_mode: bool = Field(
        default=False,
        description="Deny operations that have no validation schema.",
    )
    strip_unknown: bool = Field(
        default=True,
        description="Drop argument keys a pydantic schema does not declare.",
    )
    max_scan_depth: Annotated[int, Field(ge=1, le=64)] = Field(
        default=10,
        description="Nesting depth beyond which the injection scan stops.",
    )
    disabled_patterns: list[str] = Field(
        default_factory=list,
        description="Ids of built-in injection patterns to disable.",
    )
    extra_patterns: list[InjectionPatternConfig] = Field(default_factory=list)


class IntentConfig(BaseModel):
    """LLM-backed check that a call matches what the user actually asked for."""

    enabled: bool = False
    skip_operations: list[str] = Field(
        default_factory=list,
        description="Operations never sent to the verifier (exact names).",
    )
    inspect_patterns: list[str] = Field(
        default_factory=list,
        description="When set, only operations matching these patterns are verified.",
    )
    allow_without_context: bool = Field(
        default=True,
        description="Allow calls that carry no originating request.",
    )
    prompt_template: str | None = Field(
        default=None,
        description="Overrides the built-in template ({operation}, {arguments}, {originating_request}).",
    )
    provider: Literal["none", "openai", "anthropic", "ollama", "custom"] = "none"
    model: str = ""
    api_key: str | None = Field(
        default=None,
        description="Also settable via TOOLGUARD_INTENT__API_KEY.",
    )
    api_base_url: str | None = None
    timeout_seconds: Annotated[float, Field(ge=1.0, le=120.0)] = 30.0
    max_retries: Annotated[int, Field(ge=0, le=5)] = 2
    cache_size: Annotated[int, Field(ge=0, le=10000)] = Field(
        default=256,
        description="Number of verdicts to cache (LRU). 0 = no caching.",
    )
    cache_ttl_seconds: Annotated[float, Field(ge=0, le=3600)] = Field(
        default=300.0,
        description="TTL for cached verdicts in seconds. 0 = no TTL.",
    )
    custom_provider_class: str | None = Field(
        default=None,
        description="Dotted path of an LLMClient subclass when provider='custom'.",
    )


class ApprovalConfig(BaseModel):
    critical_patterns: list[str] = Field(
        default_factory=list,
        description="Operations requiring human approval.",
    )
    timeout_seconds: Annotated[float, Field(gt=0, le=86400)] = Field(
        default=300.0,
        description="Seconds to wait for an approver before applying on_timeout.",
    )
    on_timeout: TimeoutDisposition = TimeoutDisposition.DENY


class ToolPolicy(BaseModel):
    tier: Literal["low", "medium", "high", "critical"] = "medium"
    requires_approval: bool = False


class RateLimitConfig(BaseModel):
    per_minute: dict[str, Annotated[int, Field(ge=1)]] = Field(
        default_factory=dict,
        description="Operation pattern -> max calls per rolling minute.",
    )
    per_hour: dict[str, Annotated[int, Field(ge=1)]] = Field(
        default_factory=dict,
        description="Operation pattern -> max calls per rolling hour.",
    )

    @property
    def active(self) -> bool:
        return bool(self.per_minute or self.per_hour)


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


class AuditConfig(BaseModel):
    file: Path | None = Field(
        default=None,
        description="NDJSON audit trail. Disabled when unset.",
    )


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class GuardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOOLGUARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    namespace: NamespaceConfig = Field(default_factory=NamespaceConfig)
    parameters: ParameterConfig = Field(default_factory=ParameterConfig)
    intent: IntentConfig = Field(default_factory=IntentConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    tools: dict[str, ToolPolicy] = Field(default_factory=dict)
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @field_validator("audit", mode="before")
    @classmethod
    def expand_audit_path(cls, v: object) -> object:
        if isinstance(v, dict) and isinstance(v.get("file"), str):
            v["file"] = Path(v["file"]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> GuardSettings:
        """Load settings from YAML files + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/toolcall-guard/config.yaml"),
            Path.home() / ".toolcall-guard" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy: only needed when a file exists

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)

    def critical_patterns(self) -> list[str]:
        """Approval patterns plus every tool flagged critical or approval-only."""
        patterns = list(self.approval.critical_patterns)
        for name, policy in self.tools.items():
            if (policy.requires_approval or policy.tier == "critical") and name not in patterns:
                patterns.append(name)
        return patterns
