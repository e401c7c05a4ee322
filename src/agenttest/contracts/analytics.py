"""
Analytics Models

Derived views over persisted test results. Never stored as primary records;
recomputed for every query window.
"""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class MetricStats(BaseModel):
    """Distribution summary of a numeric metric. All zeros for an empty sample."""

    model_config = ConfigDict(frozen=True)

    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    p90: float = 0.0


class PerformanceSummary(BaseModel):
    """Response time and (when reported) token count distributions."""

    model_config = ConfigDict(frozen=True)

    response_time: MetricStats = Field(default_factory=MetricStats)
    token_count: MetricStats | None = None


class AnalyticsSummary(BaseModel):
    """Headline counts for the analysis window."""

    model_config = ConfigDict(frozen=True)

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    error_tests: int = 0
    skipped_tests: int = 0
    success_rate: float = 0.0
    avg_response_time_ms: float | None = None
    avg_token_count: float | None = None
    total_cost_usd: float | None = None


class TypeBreakdown(BaseModel):
    """Pass/fail counts for one test case type. `failed` includes errored results."""

    model_config = ConfigDict(frozen=True)

    type: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    success_rate: float = 0.0


class TrendPoint(BaseModel):
    """Counts for one UTC calendar day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    success_rate: float = 0.0


class FailedTestStat(BaseModel):
    """A frequently failing test case."""

    model_config = ConfigDict(frozen=True)

    test_case_id: str
    test_case_name: str
    failure_count: int
    last_run: dt.datetime


class TestAnalytics(BaseModel):
    """Analytics for one agent over a window of days."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    agent_id: str
    window_days: int
    generated_at: dt.datetime
    summary: AnalyticsSummary = Field(default_factory=AnalyticsSummary)
    type_breakdown: tuple[TypeBreakdown, ...] = Field(default_factory=tuple)
    trends: tuple[TrendPoint, ...] = Field(default_factory=tuple)
    most_failed_tests: tuple[FailedTestStat, ...] = Field(default_factory=tuple)
    performance_metrics: PerformanceSummary = Field(default_factory=PerformanceSummary)


class ResultTrendEntry(BaseModel):
    """One execution of a test case, for per-case trend charts."""

    model_config = ConfigDict(frozen=True)

    start_time: dt.datetime
    status: str
    response_time_ms: float | None = None


class TestCaseAnalytics(BaseModel):
    """History of a single test case over a window of days."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_case_id: str
    total_runs: int = 0
    pass_rate: float = 0.0
    avg_response_time_ms: float | None = None
    trends: tuple[ResultTrendEntry, ...] = Field(default_factory=tuple)


class TestCasePassRate(BaseModel):
    """Pass rate of one test case across the runs of a suite."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_case_id: str
    test_case_name: str
    pass_rate: float


class TestSuiteAnalytics(BaseModel):
    """History of a test suite's runs over a window of days."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_suite_id: str
    total_runs: int = 0
    avg_pass_rate: float = 0.0
    avg_duration_ms: float | None = None
    test_case_performance: tuple[TestCasePassRate, ...] = Field(default_factory=tuple)
