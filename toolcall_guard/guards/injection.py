"""Guard layer — Heuristic injection scanner for call arguments.

Regex-based, zero I/O.  Every string reachable from the arguments (through
mappings and sequences) is checked against a small set of rules for shell
chaining, subshells, variable expansion, path traversal, template markers
and control characters.  Mapping keys are not scanned.

Rules can be disabled by id or extended at construction time::

    scanner = InjectionScanner(
        disabled=["command_chaining"],
        extra=[PatternRule(id="sql_comment", pattern=re.compile(r"--\\s*$"))],
    )
    hit = scanner.scan({"path": "../../etc/passwd"})
    # hit.rule.id == "path_traversal", hit.path == "path"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

DEFAULT_MAX_DEPTH = 10


@dataclass(frozen=True)
class PatternRule:
    """A single detection rule.

    Attributes:
        id:          Unique identifier (e.g. ``"path_traversal"``).
        pattern:     Compiled regex searched anywhere in a string value.
        description: Human-readable description.
    """

    id: str
    pattern: re.Pattern[str]
    description: str = ""


@dataclass(frozen=True)
class InjectionHit:
    rule: PatternRule
    path: str
    value: str


DEFAULT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        id="command_chaining",
        pattern=re.compile(r"[;|&]\s*\w+"),
        description="Shell command chaining (; | &)",
    ),
    PatternRule(
        id="subshell",
        pattern=re.compile(r"\$\([^)]+\)"),
        description="$(...) command substitution",
    ),
    PatternRule(
        id="backtick_execution",
        pattern=re.compile(r"`[^`]+`"),
        description="Backtick command substitution",
    ),
    PatternRule(
        id="variable_expansion",
        pattern=re.compile(r"\$\{[^}]+\}"),
        description="${...} variable expansion",
    ),
    PatternRule(
        id="path_traversal",
        pattern=re.compile(r"\.\.[/\\]"),
        description="Parent directory traversal",
    ),
    PatternRule(
        id="null_byte",
        pattern=re.compile(r"\x00"),
        description="NUL byte",
    ),
    PatternRule(
        id="template_injection",
        pattern=re.compile(r"\{\{.*\}\}", re.DOTALL),
        description="{{ ... }} template marker",
    ),
    PatternRule(
        id="control_characters",
        pattern=re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]"),
        description="Non-printable control character",
    ),
)


class InjectionScanner:
    """Depth-bounded recursive scan of call arguments."""

    def __init__(
        self,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        disabled: Iterable[str] = (),
        extra: Iterable[PatternRule] = (),
    ) -> None:
        disabled_ids = set(disabled)
        self._rules: tuple[PatternRule, ...] = tuple(
            r for r in (*DEFAULT_RULES, *extra) if r.id not in disabled_ids
        )
        self._max_depth = max_depth

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    def scan(self, arguments: Mapping[str, Any]) -> InjectionHit | None:
        """Return the first suspicious string found, or None."""
        return self._scan(arguments, 0, "")

    def is_suspicious(self, arguments: Mapping[str, Any]) -> bool:
        return self.scan(arguments) is not None

    def _scan(self, value: Any, depth: int, path: str) -> InjectionHit | None:
        # Branches deeper than the cap are not inspected.
        if depth > self._max_depth:
            return None

        if isinstance(value, str):
            for rule in self._rules:
                if rule.pattern.search(value):
                    return InjectionHit(rule=rule, path=path, value=value)
            return None

        if isinstance(value, Mapping):
            for key, item in value.items():
                hit = self._scan(item, depth + 1, _join(path, str(key)))
                if hit is not None:
                    return hit
            return None

        if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
            for index, item in enumerate(value):
                hit = self._scan(item, depth + 1, _join(path, str(index)))
                if hit is not None:
                    return hit
        return None


def _join(path: str, part: str) -> str:
    return f"{path}.{part}" if path else part
