"""
Validation Engine

Evaluates validation rules against an agent's actual outputs, and checks
test case configuration (rules and parameters) before execution.

`evaluate` is pure and never raises: a missing target, a type mismatch or a
predicate that blows up all become failed outcomes. Configuration problems
that make a rule impossible to evaluate are reported by `check_rule`, which
the executor runs before invoking the agent.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from src.agenttest.contracts.core import (
    ParameterType,
    TestCase,
    ValidationRule,
    ValidationRuleType,
)
from src.agenttest.contracts.results import ValidationOutcome
from src.agenttest.exceptions import (
    InvalidParameterError,
    MissingParameterError,
    RuleConfigurationError,
)
from src.agenttest.validation.json_path import JsonPathError, parse_json_path
from src.agenttest.validation.predicates import (
    PredicateRegistry,
    get_default_registry,
    predicate_name,
)
from src.agenttest.validation.values import (
    MISSING,
    deep_equal,
    parse_path,
    preview,
    resolve_path,
    to_text,
)

logger = logging.getLogger(__name__)


def _outcome(
    rule: ValidationRule,
    passed: bool,
    reason: str | None = None,
    **details: Any,
) -> ValidationOutcome:
    """Build an outcome; a rule's own message replaces the default failure reason."""
    message = None
    if not passed:
        message = rule.message or reason
        if rule.message and reason:
            details.setdefault("reason", reason)
    return ValidationOutcome(
        rule=rule,
        passed=passed,
        message=message,
        details=details or None,
    )


def _not_found(rule: ValidationRule) -> ValidationOutcome:
    return _outcome(rule, False, f"Target '{rule.target}' not found in outputs")


# =============================================================================
# Rule evaluators
# =============================================================================


def _evaluate_exact_match(
    rule: ValidationRule, outputs: Mapping[str, Any], registry: PredicateRegistry
) -> ValidationOutcome:
    actual = resolve_path(outputs, rule.target)
    if actual is MISSING:
        return _not_found(rule)
    if deep_equal(actual, rule.value):
        return _outcome(rule, True)
    return _outcome(
        rule,
        False,
        f"Expected '{rule.target}' to equal {preview(rule.value)}, got {preview(actual)}",
        expected=rule.value,
        actual=actual,
    )


def _evaluate_contains(
    rule: ValidationRule, outputs: Mapping[str, Any], registry: PredicateRegistry
) -> ValidationOutcome:
    actual = resolve_path(outputs, rule.target)
    if actual is MISSING:
        return _not_found(rule)

    if isinstance(actual, str):
        needle = to_text(rule.value)
        if needle in actual:
            return _outcome(rule, True)
        return _outcome(
            rule,
            False,
            f"Expected '{rule.target}' to contain {preview(needle)}",
            expected=needle,
            actual=actual,
        )

    if isinstance(actual, Sequence):
        if any(deep_equal(item, rule.value) for item in actual):
            return _outcome(rule, True)
        return _outcome(
            rule,
            False,
            f"Expected '{rule.target}' to contain element {preview(rule.value)}",
            expected=rule.value,
            actual=actual,
        )

    return _outcome(
        rule,
        False,
        f"Target '{rule.target}' is {type(actual).__name__}, not a string or list",
        actual=actual,
    )


def _evaluate_regex(
    rule: ValidationRule, outputs: Mapping[str, Any], registry: PredicateRegistry
) -> ValidationOutcome:
    actual = resolve_path(outputs, rule.target)
    if actual is MISSING:
        return _not_found(rule)
    try:
        pattern = re.compile(rule.value)
    except (re.error, TypeError) as e:
        return _outcome(rule, False, f"Invalid pattern {preview(rule.value)}: {e}")

    text = to_text(actual)
    if pattern.search(text):
        return _outcome(rule, True)
    return _outcome(
        rule,
        False,
        f"'{rule.target}' does not match /{pattern.pattern}/",
        pattern=pattern.pattern,
        actual=text,
    )


def _evaluate_json_path(
    rule: ValidationRule, outputs: Mapping[str, Any], registry: PredicateRegistry
) -> ValidationOutcome:
    try:
        path = parse_json_path(rule.target)
    except JsonPathError as e:
        return _outcome(rule, False, f"Invalid JSONPath: {e}")

    matches = path.find(outputs)
    if not matches:
        return _outcome(rule, False, f"JSONPath '{rule.target}' matched nothing")

    actual = matches[0] if len(matches) == 1 else matches
    if deep_equal(actual, rule.value):
        return _outcome(rule, True)
    return _outcome(
        rule,
        False,
        f"Expected JSONPath '{rule.target}' to equal {preview(rule.value)}, got {preview(actual)}",
        expected=rule.value,
        actual=actual,
        match_count=len(matches),
    )


def _evaluate_custom(
    rule: ValidationRule, outputs: Mapping[str, Any], registry: PredicateRegistry
) -> ValidationOutcome:
    name = predicate_name(rule)
    predicate = registry.get(name) if name else None
    if predicate is None:
        return _outcome(rule, False, f"Unknown custom predicate: {name!r}")

    actual = resolve_path(outputs, rule.target)
    if actual is MISSING:
        return _not_found(rule)

    try:
        verdict = predicate(actual, rule, outputs)
    except Exception as e:
        logger.warning(f"Custom predicate '{name}' raised on '{rule.target}': {e}")
        return _outcome(
            rule,
            False,
            f"Predicate '{name}' raised {type(e).__name__}: {e}",
            predicate=name,
        )

    if isinstance(verdict, ValidationOutcome):
        return verdict
    if verdict:
        return _outcome(rule, True)
    return _outcome(
        rule,
        False,
        f"Predicate '{name}' rejected '{rule.target}' = {preview(actual)}",
        predicate=name,
        actual=actual,
    )


_EVALUATORS: dict[
    ValidationRuleType,
    Callable[[ValidationRule, Mapping[str, Any], PredicateRegistry], ValidationOutcome],
] = {
    ValidationRuleType.EXACT_MATCH: _evaluate_exact_match,
    ValidationRuleType.CONTAINS: _evaluate_contains,
    ValidationRuleType.REGEX: _evaluate_regex,
    ValidationRuleType.JSON_PATH: _evaluate_json_path,
    ValidationRuleType.CUSTOM: _evaluate_custom,
}


def evaluate(
    rule: ValidationRule,
    actual_outputs: Mapping[str, Any],
    registry: PredicateRegistry | None = None,
) -> ValidationOutcome:
    """
    Evaluate one rule against the actual outputs.

    Args:
        rule: Rule to apply
        actual_outputs: Agent outputs (plus any context the caller adds)
        registry: Custom predicate registry (defaults to the built-ins)

    Returns:
        ValidationOutcome; never raises
    """
    evaluator = _EVALUATORS.get(rule.type)
    if evaluator is None:
        return _outcome(rule, False, f"Unsupported rule type: {rule.type}")
    return evaluator(rule, actual_outputs, registry or get_default_registry())


def evaluate_all(
    rules: Sequence[ValidationRule],
    actual_outputs: Mapping[str, Any],
    registry: PredicateRegistry | None = None,
) -> tuple[bool, list[ValidationOutcome]]:
    """
    Evaluate every rule (no short-circuit).

    Returns:
        (all_passed, outcomes). An empty rule list passes.
    """
    outcomes = [evaluate(rule, actual_outputs, registry) for rule in rules]
    return all(o.passed for o in outcomes), outcomes


# =============================================================================
# Configuration checks
# =============================================================================


def check_rule(rule: ValidationRule, registry: PredicateRegistry | None = None) -> None:
    """
    Verify a rule can be evaluated.

    Raises:
        RuleConfigurationError: For a blank or unparseable target, an
            uncompilable regex, an unregistered custom predicate, or
            predicate options the predicate rejects
    """
    rule_type = getattr(rule.type, "value", str(rule.type))
    if not rule.target or not rule.target.strip():
        raise RuleConfigurationError(rule_type, rule.target, "target must not be blank")
    if rule.type not in _EVALUATORS:
        raise RuleConfigurationError(rule_type, rule.target, "unsupported rule type")

    if rule.type == ValidationRuleType.JSON_PATH:
        try:
            parse_json_path(rule.target)
        except JsonPathError as e:
            raise RuleConfigurationError(rule_type, rule.target, str(e)) from e
        return

    try:
        parse_path(rule.target)
    except ValueError as e:
        raise RuleConfigurationError(rule_type, rule.target, f"invalid field path: {e}") from e

    if rule.type == ValidationRuleType.REGEX:
        if not isinstance(rule.value, str):
            raise RuleConfigurationError(rule_type, rule.target, "pattern must be a string")
        try:
            re.compile(rule.value)
        except re.error as e:
            raise RuleConfigurationError(
                rule_type, rule.target, f"invalid pattern: {e}"
            ) from e

    elif rule.type == ValidationRuleType.CUSTOM:
        registry = registry or get_default_registry()
        name = predicate_name(rule)
        if name is None:
            raise RuleConfigurationError(
                rule_type, rule.target, "custom rule must name a predicate"
            )
        if name not in registry:
            raise RuleConfigurationError(
                rule_type, rule.target, f"unknown predicate '{name}'"
            )
        try:
            registry.check(name, rule)
        except ValueError as e:
            raise RuleConfigurationError(rule_type, rule.target, str(e)) from e


def check_test_case(test_case: TestCase, registry: PredicateRegistry | None = None) -> None:
    """Check every rule of a test case. Raises on the first misconfigured rule."""
    for rule in test_case.validation_rules:
        check_rule(rule, registry)


# =============================================================================
# Parameters
# =============================================================================


def _matches_type(value: Any, expected: ParameterType) -> bool:
    if expected == ParameterType.STRING:
        return isinstance(value, str)
    if expected == ParameterType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if expected == ParameterType.ARRAY:
        return isinstance(value, (list, tuple))
    if expected == ParameterType.OBJECT:
        return isinstance(value, Mapping)
    return True


def resolve_inputs(
    test_case: TestCase,
    overrides: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Merge parameter defaults, test case inputs and caller overrides.

    Later sources win: defaults < inputs < overrides.

    Raises:
        MissingParameterError: A required parameter has no value
        InvalidParameterError: A supplied value has the wrong declared type
    """
    inputs: dict[str, Any] = {}
    for param in test_case.parameters:
        if param.default_value is not None:
            inputs[param.name] = param.default_value
    inputs.update(test_case.inputs)
    if overrides:
        inputs.update(overrides)

    for param in test_case.parameters:
        value = inputs.get(param.name)
        if value is None:
            if param.required:
                raise MissingParameterError(test_case.id, param.name)
            continue
        if not _matches_type(value, param.type):
            raise InvalidParameterError(
                test_case.id,
                param.name,
                expected=param.type.value,
                actual=type(value).__name__,
            )
    return inputs
