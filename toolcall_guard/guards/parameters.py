"""Guard layer — Parameter scrubbing.

Three checks run in order for every call:

  1. Injection heuristic over all string arguments (always, with or
     without a schema).
  2. Schema lookup: operations without a schema pass in normal mode and are
     denied in strict mode.
  3. Schema validation: violations are listed in the denial; on success the
     validated output becomes the call's sanitized arguments.

Optional per-operation custom validators run last and receive the sanitized
arguments.  They return ``True`` to pass or an error string to deny.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Union

from toolcall_guard.guards.base import Guard
from toolcall_guard.guards.injection import InjectionScanner
from toolcall_guard.guards.schemas import FieldError, as_schema
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision

log = get_logger(__name__)

CustomValidator = Callable[[Mapping[str, Any]], Union[bool, str]]

INJECTION_REASON = "Potential injection pattern detected in arguments"


def format_field_errors(errors: tuple[FieldError, ...]) -> str:
    return "; ".join(
        f'"{e.path}": {e.message}' if e.path else f"value: {e.message}" for e in errors
    )


class ParameterGuard(Guard):
    """Validates and sanitizes call arguments.

    Args:
        schemas:           Operation name -> schema (a ``Schema``, pydantic
                           model class or ``TypeAdapter``).
        strict_mode:       Deny operations that have no schema.
        scanner:           Injection scanner; the default rule set when omitted.
        custom_validators: Operation name -> extra check run after the schema.
        strip_unknown:     Applied when wrapping plain pydantic models.

    Raises:
        ConfigurationError: If a schema object is not supported.
    """

    name = "parameters"

    def __init__(
        self,
        schemas: Mapping[str, Any] | None = None,
        *,
        strict_mode: bool = False,
        scanner: InjectionScanner | None = None,
        custom_validators: Mapping[str, CustomValidator] | None = None,
        strip_unknown: bool = True,
    ) -> None:
        self._schemas = {
            operation: as_schema(schema, strip_unknown=strip_unknown)
            for operation, schema in (schemas or {}).items()
        }
        self._strict_mode = strict_mode
        self._scanner = scanner or InjectionScanner()
        self._validators = dict(custom_validators or {})

    @property
    def operations(self) -> list[str]:
        return list(self._schemas)

    async def evaluate(self, call: Call) -> Decision:
        return self.check(call)

    def check(self, call: Call) -> Decision:
        """Synchronous core of :meth:`evaluate`."""
        hit = self._scanner.scan(call.arguments)
        if hit is not None:
            log.warning(
                "injection_pattern_detected",
                operation=call.operation,
                rule=hit.rule.id,
                path=hit.path,
            )
            return Decision.deny(INJECTION_REASON, guard=self.name)

        sanitized: Mapping[str, Any] | None = None
        schema = self._schemas.get(call.operation)
        if schema is None:
            if self._strict_mode:
                return Decision.deny(
                    f'No validation schema defined for operation "{call.operation}"',
                    guard=self.name,
                )
        else:
            try:
                outcome = schema.validate(dict(call.arguments))
            except Exception as exc:
                log.error("schema_engine_error", operation=call.operation, error=str(exc))
                return Decision.deny(f"Validation error: {exc}", guard=self.name)
            if not outcome.ok:
                return Decision.deny(
                    f"Validation failed: {format_field_errors(outcome.errors)}",
                    guard=self.name,
                )
            sanitized = outcome.value

        validator = self._validators.get(call.operation)
        if validator is not None:
            target = sanitized if sanitized is not None else call.arguments
            try:
                result = validator(target)
            except Exception as exc:
                return Decision.deny(f"Validation error: {exc}", guard=self.name)
            if result is not True:
                reason = result if isinstance(result, str) and result else "Custom validation failed"
                return Decision.deny(reason, guard=self.name)

        return Decision.allow(sanitized_arguments=sanitized, guard=self.name)
