"""
JSONPath Subset

A small JSONPath evaluator covering the expressions test authors use:

    $                 root
    .name  ['name']   child member
    [n]               list index (negative counts from the end)
    [*]  .*           every child
    ..name  ..*       recursive descent

Filters, slices and script expressions are not supported.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

_NAME = re.compile(r"[^.\[\]\s]+")


class JsonPathError(ValueError):
    """Raised when a JSONPath expression cannot be parsed."""


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _children(node: Any) -> list[Any]:
    if isinstance(node, Mapping):
        return list(node.values())
    if _is_sequence(node):
        return list(node)
    return []


def _walk(node: Any) -> Iterator[Any]:
    yield node
    for child in _children(node):
        yield from _walk(child)


class JsonPath:
    """A parsed JSONPath expression."""

    def __init__(self, expression: str, segments: list[tuple[str, Any]]):
        self.expression = expression
        self.segments = segments

    def __repr__(self) -> str:
        return f"JsonPath({self.expression!r})"

    def find(self, data: Any) -> list[Any]:
        """Return every value the expression matches, in document order."""
        nodes = [data]
        for kind, arg in self.segments:
            matched: list[Any] = []
            for node in nodes:
                if kind == "key":
                    if isinstance(node, Mapping) and arg in node:
                        matched.append(node[arg])
                elif kind == "index":
                    if _is_sequence(node) and -len(node) <= arg < len(node):
                        matched.append(node[arg])
                elif kind == "wildcard":
                    matched.extend(_children(node))
                elif kind == "descend":
                    for descendant in _walk(node):
                        if arg is None:
                            matched.extend(_children(descendant))
                        elif isinstance(descendant, Mapping) and arg in descendant:
                            matched.append(descendant[arg])
            nodes = matched
        return nodes


def _read_name(expression: str, position: int) -> tuple[str, int]:
    match = _NAME.match(expression, position)
    if match is None:
        raise JsonPathError(f"expected a member name at position {position} in '{expression}'")
    return match.group(0), match.end()


def parse_json_path(expression: str) -> JsonPath:
    """
    Parse a JSONPath expression.

    An expression without a leading `$` is taken relative to the root,
    so `data.items[0]` is equivalent to `$.data.items[0]`.

    Raises:
        JsonPathError: If the expression is empty or malformed
    """
    original = expression
    expression = expression.strip()
    if not expression:
        raise JsonPathError("empty JSONPath expression")
    if not expression.startswith("$"):
        expression = ("$" if expression.startswith("[") else "$.") + expression

    segments: list[tuple[str, Any]] = []
    position = 1
    while position < len(expression):
        if expression.startswith("..", position):
            position += 2
            if expression.startswith("*", position):
                segments.append(("descend", None))
                position += 1
            else:
                name, position = _read_name(expression, position)
                segments.append(("descend", name))
        elif expression[position] == ".":
            position += 1
            if expression.startswith("*", position):
                segments.append(("wildcard", None))
                position += 1
            else:
                name, position = _read_name(expression, position)
                segments.append(("key", name))
        elif expression[position] == "[":
            end = expression.find("]", position)
            if end == -1:
                raise JsonPathError(f"unclosed '[' in '{original}'")
            inner = expression[position + 1 : end].strip()
            if inner == "*":
                segments.append(("wildcard", None))
            elif len(inner) >= 2 and inner[0] in "'\"" and inner[-1] == inner[0]:
                segments.append(("key", inner[1:-1]))
            else:
                try:
                    segments.append(("index", int(inner)))
                except ValueError:
                    raise JsonPathError(
                        f"unsupported selector '[{inner}]' in '{original}'"
                    ) from None
            position = end + 1
        else:
            raise JsonPathError(
                f"unexpected character '{expression[position]}' in '{original}'"
            )

    return JsonPath(original, segments)
