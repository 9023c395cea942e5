"""Guard layer — Schema seam for parameter validation.

The parameter guard only depends on the one-method :class:`Schema`
protocol.  :class:`PydanticSchema` adapts pydantic models and
``TypeAdapter`` instances, which is what most callers pass::

    class ReadFile(BaseModel):
        path: str
        limit: int = 100

    schemas = {"fs:readFile": ReadFile}                       # strips unknown keys
    schemas = {"fs:readFile": PydanticSchema(ReadFile, strip_unknown=False)}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from toolcall_guard.exceptions import ConfigurationError


@dataclass(frozen=True)
class FieldError:
    path: str
    message: str


@dataclass(frozen=True)
class ValidationOutcome:
    ok: bool
    value: Any = None
    errors: tuple[FieldError, ...] = ()

    @classmethod
    def success(cls, value: Any) -> ValidationOutcome:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: Iterable[FieldError]) -> ValidationOutcome:
        return cls(ok=False, errors=tuple(errors))


@runtime_checkable
class Schema(Protocol):
    """Validates and normalises the arguments of one operation.

    ``validate`` reports violations through the returned outcome.  Raising
    is treated as an internal fault of the validation engine.
    """

    def validate(self, value: Any) -> ValidationOutcome: ...


class PydanticSchema:
    """Schema backed by a pydantic model class or ``TypeAdapter``.

    Args:
        model:         A ``BaseModel`` subclass or a ``TypeAdapter``.
        strip_unknown: Drop top-level keys the model does not declare.  When
                       False they are passed through unchanged next to the
                       validated fields.
    """

    def __init__(
        self,
        model: type[BaseModel] | TypeAdapter[Any],
        *,
        strip_unknown: bool = True,
    ) -> None:
        self._adapter: TypeAdapter[Any] = (
            model if isinstance(model, TypeAdapter) else TypeAdapter(model)
        )
        self._strip_unknown = strip_unknown

    def validate(self, value: Any) -> ValidationOutcome:
        try:
            parsed = self._adapter.validate_python(value)
        except ValidationError as exc:
            return ValidationOutcome.failure(
                FieldError(".".join(str(p) for p in err["loc"]), err["msg"])
                for err in exc.errors()
            )

        output = self._adapter.dump_python(parsed)
        if not self._strip_unknown and isinstance(value, Mapping) and isinstance(output, dict):
            passthrough = {k: v for k, v in value.items() if k not in output}
            output = {**passthrough, **output}
        return ValidationOutcome.success(output)


def as_schema(obj: Any, *, strip_unknown: bool = True) -> Schema:
    """Coerce *obj* into a :class:`Schema` or raise ``ConfigurationError``."""
    if isinstance(obj, type) and issubclass(obj, BaseModel):
        return PydanticSchema(obj, strip_unknown=strip_unknown)
    if isinstance(obj, TypeAdapter):
        return PydanticSchema(obj, strip_unknown=strip_unknown)
    if not isinstance(obj, (type, BaseModel)) and isinstance(obj, Schema):
        return obj
    raise ConfigurationError(
        f"Unsupported schema object: {obj!r}",
        context={"type": type(obj).__name__},
    )
