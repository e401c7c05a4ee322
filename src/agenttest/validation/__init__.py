"""
Validation Engine

Rule evaluation, configuration checks and parameter resolution.
"""

from src.agenttest.validation.engine import (
    check_rule,
    check_test_case,
    evaluate,
    evaluate_all,
    resolve_inputs,
)
from src.agenttest.validation.json_path import JsonPath, JsonPathError, parse_json_path
from src.agenttest.validation.predicates import (
    PredicateRegistry,
    get_default_registry,
    predicate_name,
)
from src.agenttest.validation.values import MISSING, deep_equal, resolve_path, to_text

__all__ = [
    "MISSING",
    "JsonPath",
    "JsonPathError",
    "PredicateRegistry",
    "check_rule",
    "check_test_case",
    "deep_equal",
    "evaluate",
    "evaluate_all",
    "get_default_registry",
    "parse_json_path",
    "predicate_name",
    "resolve_inputs",
    "resolve_path",
    "to_text",
]
