"""
Custom Rule Predicates

Named predicates backing `custom` validation rules. A rule selects its
predicate with `options["predicate"]` (or a string `value`); the predicate
receives the resolved target value, the rule, and the full validation
context.

Usage:
    registry = PredicateRegistry.with_builtins()

    @registry.register("is_polite")
    def is_polite(value, rule, context):
        return "please" in str(value).lower()
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from src.agenttest.contracts.core import ValidationRule
from src.agenttest.contracts.results import ValidationOutcome
from src.agenttest.validation.values import deep_equal, to_text

Predicate = Callable[[Any, ValidationRule, Mapping[str, Any]], "bool | ValidationOutcome"]
OptionsCheck = Callable[[ValidationRule], None]


def predicate_name(rule: ValidationRule) -> str | None:
    """Name of the predicate a custom rule refers to."""
    name = rule.options.get("predicate")
    if isinstance(name, str) and name:
        return name
    if isinstance(rule.value, str) and rule.value:
        return rule.value
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _bound(rule: ValidationRule, key: str) -> float:
    bound = _number(rule.options.get(key))
    if bound is None:
        bound = _number(rule.value)
    if bound is None:
        raise ValueError(f"rule needs a numeric '{key}' option")
    return bound


# =============================================================================
# Built-in predicates
# =============================================================================


def non_empty(value: Any, rule: ValidationRule, context: Mapping[str, Any]) -> bool:
    """Value is present and, for strings and collections, has at least one element."""
    if value is None:
        return False
    if isinstance(value, (str, Sequence, Mapping)):
        return len(value) > 0
    return True


def max_value(value: Any, rule: ValidationRule, context: Mapping[str, Any]) -> bool:
    """Numeric value is at most `options["max"]` (or a numeric `value`)."""
    number = _number(value)
    return number is not None and number <= _bound(rule, "max")


def min_value(value: Any, rule: ValidationRule, context: Mapping[str, Any]) -> bool:
    """Numeric value is at least `options["min"]` (or a numeric `value`)."""
    number = _number(value)
    return number is not None and number >= _bound(rule, "min")


def _check_max(rule: ValidationRule) -> None:
    _bound(rule, "max")


def _check_min(rule: ValidationRule) -> None:
    _bound(rule, "min")


def not_contains(
    value: Any, rule: ValidationRule, context: Mapping[str, Any]
) -> ValidationOutcome:
    """Target does not contain `options["value"]`."""
    forbidden = rule.options.get("value")
    if isinstance(value, str):
        found = to_text(forbidden) in value
    elif isinstance(value, Sequence):
        found = any(deep_equal(item, forbidden) for item in value)
    else:
        found = False
    return ValidationOutcome(
        rule=rule,
        passed=not found,
        message=None if not found else f"'{rule.target}' contains forbidden value",
    )


def tool_called(value: Any, rule: ValidationRule, context: Mapping[str, Any]) -> bool:
    """
    A list of tool calls includes `options["tool"]`.

    Entries may be tool names or mappings with a `name` or `tool` key.
    """
    tool = rule.options.get("tool")
    if not tool or not isinstance(value, Sequence) or isinstance(value, str):
        return False
    for call in value:
        if isinstance(call, str) and call == tool:
            return True
        if isinstance(call, Mapping) and tool in (call.get("name"), call.get("tool")):
            return True
    return False


# =============================================================================
# Registry
# =============================================================================


class PredicateRegistry:
    """Registry of named custom-rule predicates."""

    def __init__(self) -> None:
        self._predicates: dict[str, Predicate] = {}
        self._checks: dict[str, OptionsCheck] = {}

    @classmethod
    def with_builtins(cls) -> PredicateRegistry:
        registry = cls()
        registry.add("non_empty", non_empty)
        registry.add("max_value", max_value, check=_check_max)
        registry.add("min_value", min_value, check=_check_min)
        registry.add("not_contains", not_contains)
        registry.add("tool_called", tool_called)
        return registry

    def add(self, name: str, predicate: Predicate, check: OptionsCheck | None = None) -> None:
        """
        Register a predicate.

        `check` validates a rule's options before any evaluation and raises
        ValueError when they are unusable.
        """
        self._predicates[name] = predicate
        if check is None:
            self._checks.pop(name, None)
        else:
            self._checks[name] = check

    def register(self, name: str) -> Callable[[Predicate], Predicate]:
        """Decorator form of `add`."""

        def decorator(predicate: Predicate) -> Predicate:
            self.add(name, predicate)
            return predicate

        return decorator

    def get(self, name: str) -> Predicate | None:
        return self._predicates.get(name)

    def check(self, name: str, rule: ValidationRule) -> None:
        """Run the predicate's options check, if it has one."""
        check = self._checks.get(name)
        if check is not None:
            check(rule)

    def names(self) -> list[str]:
        return sorted(self._predicates)

    def __contains__(self, name: object) -> bool:
        return name in self._predicates


_default_registry: PredicateRegistry | None = None


def get_default_registry() -> PredicateRegistry:
    """Global registry with the built-in predicates."""
    global _default_registry
    if _default_registry is None:
        _default_registry = PredicateRegistry.with_builtins()
    return _default_registry
