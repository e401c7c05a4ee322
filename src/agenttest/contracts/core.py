"""
Core Data Models

Fundamental types used throughout the agent test harness:
enumerations, validation rules, parameters, test cases and test suites.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now_utc() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _generate_id() -> str:
    """Generate a unique identifier."""
    return str(uuid4())


# =============================================================================
# Enumerations
# =============================================================================


class TestCaseType(str, Enum):
    """What aspect of the agent a test case exercises."""

    __test__ = False

    FUNCTIONAL = "functional"
    PERFORMANCE = "performance"
    SECURITY = "security"
    INTEGRATION = "integration"
    PROMPT = "prompt"
    CUSTOM = "custom"


class TestCasePriority(str, Enum):
    """Priority of a test case."""

    __test__ = False

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ValidationRuleType(str, Enum):
    """Kinds of validation rule understood by the validation engine."""

    EXACT_MATCH = "exact_match"
    CONTAINS = "contains"
    REGEX = "regex"
    JSON_PATH = "json_path"
    CUSTOM = "custom"


class ParameterType(str, Enum):
    """Declared type of a test parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


# =============================================================================
# Validation Rules & Parameters
# =============================================================================


class ValidationRule(BaseModel):
    """
    A declarative check applied to an agent's actual outputs.

    `target` addresses a field inside the outputs (dotted path, or a JSONPath
    expression for json_path rules). The shape of `value` depends on `type`.
    """

    model_config = ConfigDict(frozen=True)

    type: ValidationRuleType
    target: str = Field(
        ...,
        min_length=1,
        description="Field path (or JSONPath for json_path) into the actual outputs",
    )
    value: Any = Field(
        default=None,
        description="Expected value or pattern",
    )
    message: str | None = Field(
        default=None,
        description="Custom failure message",
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional options (e.g. the predicate name for custom rules)",
    )

    @field_validator("target")
    @classmethod
    def _target_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("target must not be blank")
        return v


class TestParameter(BaseModel):
    """A named input a test case expects, optionally overridable at execution time."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: ParameterType = ParameterType.STRING
    required: bool = False
    description: str | None = None
    default_value: Any = Field(
        default=None,
        description="Value used when neither the test case nor the caller supplies one",
    )


# =============================================================================
# Test Case
# =============================================================================


class TestCase(BaseModel):
    """
    A single test to run against an agent.

    Authored by a human; never mutated by the executor. A test case with no
    validation rules passes whenever the agent responds without an execution
    error.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    # Identity
    id: str = Field(
        default_factory=_generate_id,
        description="Unique identifier (UUID4)",
    )
    name: str = Field(..., min_length=1)
    description: str | None = None

    # Classification
    type: TestCaseType = TestCaseType.FUNCTIONAL
    priority: TestCasePriority = TestCasePriority.MEDIUM
    tags: tuple[str, ...] = Field(default_factory=tuple)

    # Test definition
    inputs: dict[str, Any] = Field(default_factory=dict)
    expected_outputs: dict[str, Any] = Field(default_factory=dict)
    validation_rules: tuple[ValidationRule, ...] = Field(default_factory=tuple)
    parameters: tuple[TestParameter, ...] = Field(default_factory=tuple)

    # Execution policy
    timeout_ms: int = Field(
        default=10000,
        gt=0,
        description="Per-attempt invocation timeout in milliseconds",
    )
    retry_count: int = Field(
        default=1,
        ge=0,
        description="Additional attempts after an execution error",
    )

    # Templates
    is_template: bool = False
    template_id: str | None = Field(
        default=None,
        description="Template this test case was derived from",
    )

    # Audit
    created_at: datetime = Field(default_factory=_now_utc)
    updated_at: datetime = Field(default_factory=_now_utc)
    created_by: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, (list, tuple, set, frozenset)):
            seen: dict[str, None] = {}
            for tag in v:
                seen.setdefault(tag, None)
            return tuple(seen)
        return v

    @property
    def has_validation_rules(self) -> bool:
        return bool(self.validation_rules)


# =============================================================================
# Test Suite
# =============================================================================


class SuiteConfig(BaseModel):
    """Execution settings attached to a test suite."""

    model_config = ConfigDict(frozen=True)

    parallel_execution: bool = Field(
        default=False,
        description="Run test cases through a bounded worker pool instead of sequentially",
    )
    stop_on_failure: bool = Field(
        default=False,
        description="Skip remaining test cases after the first failed/errored result",
    )
    default_timeout_ms: int | None = Field(
        default=None,
        gt=0,
        description="Timeout applied to every test case (overrides the test case)",
    )
    max_retries: int | None = Field(
        default=None,
        ge=0,
        description="Retry count applied to every test case (overrides the test case)",
    )
    retry_delay_ms: int | None = Field(
        default=None,
        ge=0,
        description="Delay between retry attempts (defaults to the executor config)",
    )


class TestSuite(BaseModel):
    """An ordered collection of test case ids. Repeated ids are run once per position."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_generate_id)
    name: str = Field(..., min_length=1)
    description: str | None = None
    test_case_ids: tuple[str, ...] = Field(default_factory=tuple)
    tags: tuple[str, ...] = Field(default_factory=tuple)
    category: str | None = None
    is_public: bool = False
    config: SuiteConfig = Field(default_factory=SuiteConfig)

    created_at: datetime = Field(default_factory=_now_utc)
    updated_at: datetime = Field(default_factory=_now_utc)
    created_by: str | None = None
