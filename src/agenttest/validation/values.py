"""
Value Helpers

Operations on the JSON-like values agents return: type-strict deep equality,
dotted-path field resolution and text coercion.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(-?\d+)\]")

MISSING = object()
"""Sentinel returned by `resolve_path` when the target does not exist."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality over JSON-like values.

    Strings, numbers and booleans never compare equal across types
    ("5" != 5, True != 1). Integers and floats are one number type.
    Sequences compare element-wise in order; mappings compare keys and values.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) or _is_number(b):
        return _is_number(a) and _is_number(b) and a == b
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if isinstance(a, Mapping) or isinstance(b, Mapping):
        if not (isinstance(a, Mapping) and isinstance(b, Mapping)):
            return False
        if set(a.keys()) != set(b.keys()):
            return False
        return all(deep_equal(a[key], b[key]) for key in a)
    if _is_sequence(a) or _is_sequence(b):
        if not (_is_sequence(a) and _is_sequence(b)):
            return False
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b, strict=True))
    return a == b


def parse_path(path: str) -> list[str | int]:
    """
    Split a dotted field path into keys and list indices.

    Examples:
        "response" -> ["response"]
        "items[0].name" -> ["items", 0, "name"]

    Raises:
        ValueError: If the path is empty or contains unparseable characters
    """
    path = path.strip()
    if not path:
        raise ValueError("empty path")

    tokens: list[str | int] = []
    position = 0
    while position < len(path):
        if path[position] == ".":
            position += 1
            continue
        match = _PATH_TOKEN.match(path, position)
        if match is None:
            raise ValueError(f"unexpected character at position {position} in '{path}'")
        key, index = match.groups()
        tokens.append(int(index) if index is not None else key)
        position = match.end()

    if not tokens:
        raise ValueError(f"path '{path}' has no segments")
    return tokens


def resolve_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted field path inside `data`.

    Returns:
        The addressed value, or MISSING when any segment does not exist
    """
    try:
        tokens = parse_path(path)
    except ValueError:
        return MISSING

    current = data
    for token in tokens:
        if isinstance(token, int):
            if not _is_sequence(current):
                return MISSING
            try:
                current = current[token]
            except IndexError:
                return MISSING
        else:
            if not isinstance(current, Mapping) or token not in current:
                return MISSING
            current = current[token]
    return current


def to_text(value: Any) -> str:
    """Strings verbatim; everything else as compact JSON."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(value)


def preview(value: Any, limit: int = 80) -> str:
    """Short printable form of a value for failure messages."""
    text = to_text(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text
