"""Evaluator — Builds the guard pipeline from settings and evaluates calls.

Layers are added in a fixed order, each only when configured:

    namespace → rate limit → parameters → intent → (extra guards) → approval

Human approval comes last so a person is only asked about calls every
automated layer already accepted.  With an empty configuration the pipeline
is empty and every call is allowed unchanged.

Usage::

    evaluator = Evaluator.from_config_file(
        Path("guard.yaml"),
        schemas={"fs:readFile": ReadFileArgs},
        approver=ApprovalGate(ttl=120),
    )
    decision = await evaluator.evaluate(Call("fs:readFile", {"path": "a.txt"}))
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterable, Mapping

from structlog.contextvars import bound_contextvars

from toolcall_guard.audit import AuditEvent, AuditLogger
from toolcall_guard.config import GuardSettings
from toolcall_guard.exceptions import ConfigurationError
from toolcall_guard.guards.approval import ApprovalGuard, ApproverLike
from toolcall_guard.guards.base import Guard
from toolcall_guard.guards.injection import InjectionScanner, PatternRule
from toolcall_guard.guards.intent import IntentGuard, SelectiveIntentGuard, VerifierLike
from toolcall_guard.guards.namespace import NamespaceGuard
from toolcall_guard.guards.parameters import CustomValidator, ParameterGuard
from toolcall_guard.guards.rate_limit import RateLimitGuard
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision
from toolcall_guard.pipeline import Pipeline
from toolcall_guard.providers import LLMClient, build_provider
from toolcall_guard.verifiers import LLMIntentVerifier

log = get_logger(__name__)


class Evaluator:
    """Single entry point: ``await evaluator.evaluate(call) -> Decision``.

    Args:
        settings:          Guard settings; defaults to ``GuardSettings()``.
        schemas:           Operation -> schema for the parameter layer.
        custom_validators: Operation -> extra argument check.
        verifier:          Intent verifier; built from ``settings.intent``
                           when omitted and a provider is configured.
        approver:          Required when any operation is critical.
        extra_guards:      Custom guards run before the approval layer.
        audit:             Audit logger; built from ``settings.audit`` when omitted.

    Raises:
        ConfigurationError: An enabled layer is missing its capability, or a
            schema is unusable.
    """

    def __init__(
        self,
        settings: GuardSettings | None = None,
        *,
        schemas: Mapping[str, Any] | None = None,
        custom_validators: Mapping[str, CustomValidator] | None = None,
        verifier: VerifierLike | None = None,
        approver: ApproverLike | None = None,
        extra_guards: Iterable[Guard] = (),
        audit: AuditLogger | None = None,
    ) -> None:
        self._settings = settings or GuardSettings()
        self._audit = audit or AuditLogger(audit_file=self._settings.audit.file)
        self._owned_client: LLMClient | None = None

        guards: list[Guard] = []
        guards.extend(self._namespace_layer())
        guards.extend(self._rate_limit_layer())
        guards.extend(self._parameter_layer(schemas, custom_validators))
        guards.extend(self._intent_layer(verifier))
        guards.extend(extra_guards)
        guards.extend(self._approval_layer(approver))
        self._pipeline = Pipeline(guards, name="evaluator")

        log.debug("evaluator_ready", layers=[g.name for g in guards])

    @classmethod
    def from_config_file(cls, config_file: Path | None = None, **kwargs: Any) -> Evaluator:
        return cls(GuardSettings.load(config_file), **kwargs)

    @property
    def settings(self) -> GuardSettings:
        return self._settings

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    @property
    def layers(self) -> list[str]:
        return [g.name for g in self._pipeline.guards]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, call: Call) -> Decision:
        context = {"call_id": call.call_id, "operation": call.operation}
        if (session_id := call.metadata.get("session_id")) is not None:
            context["session_id"] = str(session_id)
        with bound_contextvars(**context):
            decision = await self._pipeline.evaluate(call)
            if decision.allowed:
                log.info("call_allowed", sanitized=decision.sanitized_arguments is not None)
                await self._record(
                    AuditEvent.CALL_ALLOWED,
                    call,
                    sanitized=decision.sanitized_arguments is not None,
                )
            else:
                log.warning("call_denied", guard=decision.guard, reason=decision.reason)
                await self._record(
                    AuditEvent.CALL_DENIED,
                    call,
                    guard=decision.guard,
                    reason=decision.reason,
                )
            return decision

    async def close(self) -> None:
        """Release the LLM client this evaluator created, if any."""
        if self._owned_client is not None:
            await self._owned_client.close()
            self._owned_client = None

    async def _record(self, event: AuditEvent, call: Call, **data: Any) -> None:
        try:
            await self._audit.log(event, call_id=call.call_id, operation=call.operation, **data)
        except Exception as exc:
            log.error("audit_record_failed", audit_event=event.value, error=str(exc))

    async def _approval_requested(self, call: Call) -> None:
        await self._record(AuditEvent.APPROVAL_REQUESTED, call)

    async def _approval_received(self, call: Call, approved: bool) -> None:
        event = AuditEvent.APPROVAL_GRANTED if approved else AuditEvent.APPROVAL_REJECTED
        await self._record(event, call)

    # ------------------------------------------------------------------
    # Layer construction
    # ------------------------------------------------------------------

    def _namespace_layer(self) -> list[Guard]:
        cfg = self._settings.namespace
        if not cfg.rules:
            return []
        return [NamespaceGuard(cfg.rules, default_action=cfg.default_action)]

    def _rate_limit_layer(self) -> list[Guard]:
        cfg = self._settings.rate_limits
        if not cfg.active:
            return []
        return [RateLimitGuard(per_minute=cfg.per_minute, per_hour=cfg.per_hour)]

    def _parameter_layer(
        self,
        schemas: Mapping[str, Any] | None,
        custom_validators: Mapping[str, CustomValidator] | None,
    ) -> list[Guard]:
        cfg = self._settings.parameters
        if not (schemas or custom_validators or cfg.enabled):
            return []
        scanner = InjectionScanner(
            max_depth=cfg.max_scan_depth,
            disabled=cfg.disabled_patterns,
            extra=[
                PatternRule(id=p.id, pattern=re.compile(p.pattern), description=p.description)
                for p in cfg.extra_patterns
            ],
        )
        return [
            ParameterGuard(
                schemas,
                strict_mode=cfg.strict_mode,
                scanner=scanner,
                custom_validators=custom_validators,
                strip_unknown=cfg.strip_unknown,
            )
        ]

    def _intent_layer(self, verifier: VerifierLike | None) -> list[Guard]:
        cfg = self._settings.intent
        if not cfg.enabled:
            return []
        if verifier is None:
            client = build_provider(cfg)
            if client is None:
                raise ConfigurationError(
                    "Intent verification is enabled but no verifier or provider is configured",
                    context={"provider": cfg.provider},
                )
            self._owned_client = client
            verifier = LLMIntentVerifier(
                client,
                timeout=cfg.timeout_seconds,
                cache_size=cfg.cache_size,
                cache_ttl=cfg.cache_ttl_seconds,
            )
        options: dict[str, Any] = {
            "skip_operations": cfg.skip_operations,
            "prompt_template": cfg.prompt_template,
            "allow_without_context": cfg.allow_without_context,
        }
        if cfg.inspect_patterns:
            return [SelectiveIntentGuard(verifier, cfg.inspect_patterns, **options)]
        return [IntentGuard(verifier, **options)]

    def _approval_layer(self, approver: ApproverLike | None) -> list[Guard]:
        patterns = self._settings.critical_patterns()
        if not patterns:
            return []
        if approver is None:
            raise ConfigurationError(
                "Critical operations are configured but no approver was supplied",
                context={"critical_patterns": patterns},
            )
        cfg = self._settings.approval
        return [
            ApprovalGuard(
                patterns,
                approver,
                timeout=cfg.timeout_seconds,
                on_timeout=cfg.on_timeout,
                on_approval_requested=self._approval_requested,
                on_approval_received=self._approval_received,
            )
        ]
