"""Core layer — Glob-style operation matching.

Only ``*`` is special: it matches zero or more characters and the match is
anchored at both ends.  Every other character, including ``.``, ``?``,
``[`` and ``]``, is literal.

    match_pattern("*", "")                   -> True
    match_pattern("fs:*", "fs:read")         -> True
    match_pattern("fs:*", "myfs:read")       -> False
    match_pattern("fs:read", "fs:readFile")  -> False
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

NAMESPACE_SEPARATOR = ":"


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(re.escape(pattern).replace(r"\*", ".*"), re.DOTALL)


def match_pattern(pattern: str, operation: str) -> bool:
    if pattern == "*":
        return True
    if "*" not in pattern:
        return pattern == operation
    return _compile(pattern).fullmatch(operation) is not None


def matches_any_pattern(patterns: Iterable[str], operation: str) -> bool:
    return any(match_pattern(p, operation) for p in patterns)


def extract_namespace(operation: str) -> str:
    """Return the part of *operation* before the first separator."""
    namespace, _, _ = operation.partition(NAMESPACE_SEPARATOR)
    return namespace
