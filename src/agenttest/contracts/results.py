"""
Execution Result Models

Models produced by the executor and suite runner: per-rule validation
outcomes, performance metrics, test results and test runs.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.agenttest.contracts.core import (
    TestCaseType,
    ValidationRule,
    _generate_id,
    _now_utc,
)

# =============================================================================
# Enumerations
# =============================================================================


class TestResultStatus(str, Enum):
    """Outcome of a single test execution."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class TestRunStatus(str, Enum):
    """Lifecycle status of a suite (or ad-hoc batch) run."""

    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# =============================================================================
# Validation & Metrics
# =============================================================================


class ValidationOutcome(BaseModel):
    """Result of evaluating one validation rule against the actual outputs."""

    model_config = ConfigDict(frozen=True)

    rule: ValidationRule
    passed: bool
    message: str | None = None
    details: dict[str, Any] | None = None


class PerformanceMetrics(BaseModel):
    """Measurements captured for a successful agent invocation."""

    model_config = ConfigDict(frozen=True)

    response_time_ms: float = Field(..., ge=0.0, description="Wall-clock invocation time")
    token_count: int | None = Field(default=None, ge=0)
    memory_usage_mb: float | None = Field(default=None, ge=0.0)
    cpu_usage_pct: float | None = Field(default=None, ge=0.0)
    cost_estimate_usd: float | None = Field(default=None, ge=0.0)

    def as_output_view(self) -> dict[str, Any]:
        """camelCase view exposed to validation rules as `performanceMetrics`."""
        view: dict[str, Any] = {"responseTime": self.response_time_ms}
        if self.token_count is not None:
            view["tokenCount"] = self.token_count
        if self.memory_usage_mb is not None:
            view["memoryUsage"] = self.memory_usage_mb
        if self.cpu_usage_pct is not None:
            view["cpuUsage"] = self.cpu_usage_pct
        if self.cost_estimate_usd is not None:
            view["costEstimate"] = self.cost_estimate_usd
        return view


# =============================================================================
# Test Result
# =============================================================================


class TestResult(BaseModel):
    """
    Outcome of one (agent, test case) execution.

    Immutable once created; results form an append-only history.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_generate_id)
    test_case_id: str
    agent_id: str
    status: TestResultStatus

    # Snapshot of the test case at execution time (used by analytics)
    test_case_name: str | None = None
    test_case_type: TestCaseType | None = None

    # Timing
    start_time: datetime
    end_time: datetime
    duration_ms: float = Field(default=0.0, ge=0.0)

    # Outcome
    actual_outputs: dict[str, Any] = Field(default_factory=dict)
    validation_results: tuple[ValidationOutcome, ...] = Field(default_factory=tuple)
    performance_metrics: PerformanceMetrics | None = Field(
        default=None,
        description="Present when the agent responded",
    )
    error: str | None = None
    error_type: str | None = None
    attempts: int = Field(default=1, ge=0)

    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now_utc)

    @property
    def is_failure(self) -> bool:
        """True for failed and errored results."""
        return self.status in (TestResultStatus.FAILED, TestResultStatus.ERROR)


# =============================================================================
# Test Run
# =============================================================================


class RunSummary(BaseModel):
    """Aggregate counts for a test run."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    passed: int = 0
    failed: int = 0
    error: int = 0
    skipped: int = 0
    avg_response_time_ms: float | None = None
    total_cost_usd: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        """Percentage of passed results (0 when the run is empty)."""
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100

    @classmethod
    def from_results(cls, results: list[TestResult]) -> RunSummary:
        """Summarise results, one entry per executed position."""
        counts = {status: 0 for status in TestResultStatus}
        for result in results:
            counts[result.status] += 1

        response_times = [
            r.performance_metrics.response_time_ms for r in results if r.performance_metrics
        ]
        costs = [
            r.performance_metrics.cost_estimate_usd
            for r in results
            if r.performance_metrics and r.performance_metrics.cost_estimate_usd is not None
        ]

        return cls(
            total=len(results),
            passed=counts[TestResultStatus.PASSED],
            failed=counts[TestResultStatus.FAILED],
            error=counts[TestResultStatus.ERROR],
            skipped=counts[TestResultStatus.SKIPPED],
            avg_response_time_ms=(
                sum(response_times) / len(response_times) if response_times else None
            ),
            total_cost_usd=sum(costs) if costs else None,
        )


class TestRun(BaseModel):
    """Execution of a test suite (or an ad-hoc batch of test cases) against an agent."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_generate_id)
    agent_id: str
    test_suite_id: str | None = None
    name: str | None = None
    test_case_ids: tuple[str, ...] = Field(default_factory=tuple)

    status: TestRunStatus = TestRunStatus.PENDING
    start_time: datetime = Field(default_factory=_now_utc)
    end_time: datetime | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)

    results: dict[str, TestResult] = Field(
        default_factory=dict,
        description="Latest result per test case id (last write wins)",
    )
    executions: tuple[TestResult, ...] = Field(
        default_factory=tuple,
        description="Result of every suite position, in suite order",
    )
    summary: RunSummary = Field(default_factory=RunSummary)

    created_at: datetime = Field(default_factory=_now_utc)
    created_by: str | None = None
    scheduled_by: str | None = Field(
        default=None,
        description="Schedule id when the run was started by the scheduler",
    )
