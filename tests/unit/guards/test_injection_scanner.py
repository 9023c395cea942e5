"""Unit tests — heuristic injection scanner."""

from __future__ import annotations

import re
from typing import Any

import pytest

from toolcall_guard.guards.injection import InjectionScanner, PatternRule

pytestmark = pytest.mark.unit


@pytest.fixture
def scanner() -> InjectionScanner:
    return InjectionScanner()


class TestDetection:
    @pytest.mark.parametrize(
        "value,rule_id",
        [
            ("; rm -rf /", "command_chaining"),
            ("ls | grep secret", "command_chaining"),
            ("a && whoami", "command_chaining"),
            ("$(whoami)", "subshell"),
            ("`cat /etc/passwd`", "backtick_execution"),
            ("${HOME}", "variable_expansion"),
            ("../../etc/passwd", "path_traversal"),
            ("..\\windows\\system32", "path_traversal"),
            ("file\x00.txt", "null_byte"),
            ("{{ 7*7 }}", "template_injection"),
            ("bell\x07", "control_characters"),
        ],
    )
    def test_flags_suspicious_strings(
        self, scanner: InjectionScanner, value: str, rule_id: str
    ) -> None:
        hit = scanner.scan({"value": value})
        assert hit is not None
        assert hit.rule.id == rule_id
        assert hit.path == "value"

    @pytest.mark.parametrize(
        "value",
        ["notes.txt", "/home/user/report.pdf", "hello world", "line1\nline2\ttabbed\r", "price: $5"],
    )
    def test_benign_strings_pass(self, scanner: InjectionScanner, value: str) -> None:
        assert scanner.scan({"value": value}) is None

    def test_non_string_values_ignored(self, scanner: InjectionScanner) -> None:
        assert scanner.scan({"n": 3, "f": 1.5, "b": True, "none": None}) is None

    def test_keys_are_not_scanned(self, scanner: InjectionScanner) -> None:
        assert scanner.scan({"$(whoami)": "fine"}) is None


class TestNesting:
    def test_nested_in_list(self, scanner: InjectionScanner) -> None:
        hit = scanner.scan({"files": ["a.txt", "../../etc/passwd"]})
        assert hit is not None
        assert hit.path == "files.1"

    def test_nested_in_mapping(self, scanner: InjectionScanner) -> None:
        hit = scanner.scan({"opts": {"cmd": {"shell": "$(whoami)"}}})
        assert hit is not None
        assert hit.path == "opts.cmd.shell"

    def test_mixed_nesting(self, scanner: InjectionScanner) -> None:
        hit = scanner.scan({"batch": [{"args": ["ok", "{{ 7*7 }}"]}]})
        assert hit is not None
        assert hit.rule.id == "template_injection"

    @staticmethod
    def _nest(value: Any, levels: int) -> Any:
        for _ in range(levels):
            value = [value]
        return value

    def test_within_depth_cap_is_scanned(self, scanner: InjectionScanner) -> None:
        # mapping value is depth 1, each list adds one level
        args = {"deep": self._nest("; rm -rf /", 9)}
        assert scanner.scan(args) is not None

    def test_beyond_depth_cap_is_not_scanned(self, scanner: InjectionScanner) -> None:
        args = {"deep": self._nest("; rm -rf /", 10)}
        assert scanner.scan(args) is None

    def test_custom_depth(self) -> None:
        shallow = InjectionScanner(max_depth=1)
        assert shallow.scan({"a": "$(x)"}) is not None
        assert shallow.scan({"a": ["$(x)"]}) is None


class TestConfiguration:
    def test_disable_rule(self) -> None:
        scanner = InjectionScanner(disabled=["command_chaining"])
        assert scanner.scan({"q": "Tom & Jerry"}) is None
        assert scanner.scan({"q": "$(id)"}) is not None

    def test_extra_rule(self) -> None:
        scanner = InjectionScanner(
            extra=[PatternRule(id="sql_drop", pattern=re.compile(r"drop\s+table", re.I))]
        )
        hit = scanner.scan({"sql": "DROP TABLE users"})
        assert hit is not None
        assert hit.rule.id == "sql_drop"

    def test_default_rule_ids(self, scanner: InjectionScanner) -> None:
        assert {r.id for r in scanner.rules} == {
            "command_chaining",
            "subshell",
            "backtick_execution",
            "variable_expansion",
            "path_traversal",
            "null_byte",
            "template_injection",
            "control_characters",
        }
