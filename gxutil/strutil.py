"""Small string helpers: regex splitting, wildcard matching, byte views."""

from __future__ import annotations

import re
from typing import Any

__all__ = ["is_nil", "reg_split", "is_match_pattern", "to_bytes"]


def is_nil(value: Any) -> bool:
    """Return whether *value* is ``None``."""
    return value is None


def reg_split(text: str, pattern: str) -> list[str]:
    """Split *text* on every match of the regular expression *pattern*."""
    regex = re.compile(pattern)
    parts: list[str] = []
    last_end = 0
    for match in regex.finditer(text):
        start, end = match.span()
        parts.append(text[last_end:start])
        last_end = end
    parts.append(text[last_end:])
    return parts


def is_match_pattern(pattern: str, value: str) -> bool:
    """Match *value* against *pattern*, which may hold one ``*`` wildcard.

    Only the last ``*`` in the pattern acts as a wildcard; a lone ``*``
    matches everything.
    """
    if pattern == "*":
        return True
    if not pattern and not value:
        return True
    if not pattern or not value:
        return False

    star = pattern.rfind("*")
    if star == -1:
        return value == pattern
    if star == len(pattern) - 1:
        return value.startswith(pattern[:star])
    if star == 0:
        return value.endswith(pattern[1:])
    prefix, suffix = pattern[:star], pattern[star + 1:]
    return value.startswith(prefix) and value.endswith(suffix)


def to_bytes(text: str) -> bytes:
    """Return the UTF-8 bytes of *text*."""
    return text.encode("utf-8")