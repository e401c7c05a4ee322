"""
Analytics Aggregator

Read-only aggregation over persisted test results and runs. Results are
immutable once stored, so aggregation can run alongside live executions.

Trends are bucketed by UTC calendar day.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict

from pydantic import BaseModel, ConfigDict, Field

from src.agenttest.analytics.stats import mean, metric_stats, rate
from src.agenttest.contracts import (
    AnalyticsSummary,
    FailedTestStat,
    PerformanceSummary,
    ResultTrendEntry,
    TestAnalytics,
    TestCaseAnalytics,
    TestCasePassRate,
    TestResult,
    TestResultStatus,
    TestSuiteAnalytics,
    TrendPoint,
    TypeBreakdown,
    _now_utc,
)
from src.agenttest.exceptions import InvalidConfigError
from src.agenttest.storage import TestResultRepository, TestRunRepository

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = "unknown"
UNKNOWN_TEST_NAME = "Unknown Test"


class AnalyticsConfig(BaseModel):
    """Settings for analytics aggregation."""

    model_config = ConfigDict(frozen=True)

    default_window_days: int = Field(default=30, ge=1)
    top_failed_limit: int = Field(
        default=10,
        ge=1,
        description="How many test cases to keep in most_failed_tests",
    )


def _utc_day(value: dt.datetime) -> dt.date:
    return value.astimezone(dt.UTC).date()


def _window(window_days: int, now: dt.datetime | None) -> tuple[dt.datetime, dt.datetime]:
    if window_days < 1:
        raise InvalidConfigError("window_days", str(window_days), "Must be at least 1")
    now = now or _now_utc()
    return now - dt.timedelta(days=window_days), now


def summarize(results: list[TestResult]) -> AnalyticsSummary:
    """Headline counts and metric aggregates. Missing metrics are excluded, not zero."""
    counts = {status: 0 for status in TestResultStatus}
    for result in results:
        counts[result.status] += 1

    metrics = [r.performance_metrics for r in results if r.performance_metrics]
    response_times = [m.response_time_ms for m in metrics]
    token_counts = [float(m.token_count) for m in metrics if m.token_count is not None]
    costs = [m.cost_estimate_usd for m in metrics if m.cost_estimate_usd is not None]

    return AnalyticsSummary(
        total_tests=len(results),
        passed_tests=counts[TestResultStatus.PASSED],
        failed_tests=counts[TestResultStatus.FAILED],
        error_tests=counts[TestResultStatus.ERROR],
        skipped_tests=counts[TestResultStatus.SKIPPED],
        success_rate=rate(counts[TestResultStatus.PASSED], len(results)),
        avg_response_time_ms=mean(response_times),
        avg_token_count=mean(token_counts),
        total_cost_usd=sum(costs) if costs else None,
    )


def type_breakdown(results: list[TestResult]) -> list[TypeBreakdown]:
    """Per test case type counts; `failed` includes errored results."""
    groups: dict[str, list[TestResult]] = defaultdict(list)
    for result in results:
        key = result.test_case_type.value if result.test_case_type else UNKNOWN_TYPE
        groups[key].append(result)

    breakdown = []
    for type_name in sorted(groups):
        group = groups[type_name]
        passed = sum(1 for r in group if r.status == TestResultStatus.PASSED)
        breakdown.append(
            TypeBreakdown(
                type=type_name,
                total=len(group),
                passed=passed,
                failed=sum(1 for r in group if r.is_failure),
                success_rate=rate(passed, len(group)),
            )
        )
    return breakdown


def daily_trends(
    results: list[TestResult],
    window_days: int,
    now: dt.datetime,
) -> list[TrendPoint]:
    """
    One point per UTC day for the last `window_days` days ending today.

    Days without results are present with zero counts. A result falling on
    the partial day at the start of the window adds that day too.
    """
    today = _utc_day(now)
    buckets: dict[dt.date, list[TestResult]] = {
        today - dt.timedelta(days=offset): [] for offset in range(window_days)
    }
    for result in results:
        buckets.setdefault(_utc_day(result.start_time), []).append(result)

    points = []
    for day in sorted(buckets):
        group = buckets[day]
        passed = sum(1 for r in group if r.status == TestResultStatus.PASSED)
        points.append(
            TrendPoint(
                date=day,
                total_tests=len(group),
                passed_tests=passed,
                failed_tests=sum(1 for r in group if r.is_failure),
                success_rate=rate(passed, len(group)),
            )
        )
    return points


def most_failed(results: list[TestResult], limit: int) -> list[FailedTestStat]:
    """Failed/errored results grouped by test case, most failures first."""
    counts: dict[str, int] = defaultdict(int)
    last_run: dict[str, dt.datetime] = {}
    names: dict[str, str] = {}

    for result in results:
        if not result.is_failure:
            continue
        counts[result.test_case_id] += 1
        previous = last_run.get(result.test_case_id)
        if previous is None or result.start_time > previous:
            last_run[result.test_case_id] = result.start_time
        if result.test_case_name and result.test_case_id not in names:
            names[result.test_case_id] = result.test_case_name

    stats = [
        FailedTestStat(
            test_case_id=test_case_id,
            test_case_name=names.get(test_case_id, UNKNOWN_TEST_NAME),
            failure_count=count,
            last_run=last_run[test_case_id],
        )
        for test_case_id, count in counts.items()
    ]
    stats.sort(key=lambda s: (s.failure_count, s.last_run), reverse=True)
    return stats[:limit]


def performance_summary(results: list[TestResult]) -> PerformanceSummary:
    metrics = [r.performance_metrics for r in results if r.performance_metrics]
    token_counts = [float(m.token_count) for m in metrics if m.token_count is not None]
    return PerformanceSummary(
        response_time=metric_stats([m.response_time_ms for m in metrics]),
        token_count=metric_stats(token_counts) if token_counts else None,
    )


class AnalyticsAggregator:
    """Computes analytics views from the result and run repositories."""

    def __init__(
        self,
        result_repo: TestResultRepository,
        run_repo: TestRunRepository | None = None,
        config: AnalyticsConfig | None = None,
    ):
        self.result_repo = result_repo
        self.run_repo = run_repo
        self.config = config or AnalyticsConfig()

    async def aggregate(
        self,
        agent_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestAnalytics:
        """
        Analytics for an agent over `[now - window_days, now]`.

        Args:
            agent_id: Agent under test
            window_days: Window size (defaults to config)
            now: End of the window (defaults to the current time)
        """
        if window_days is None:
            window_days = self.config.default_window_days
        start, end = _window(window_days, now)
        results = await self.result_repo.list_by_agent(agent_id, start=start, end=end)
        logger.debug(f"Aggregating {len(results)} results for agent {agent_id}")

        return TestAnalytics(
            agent_id=agent_id,
            window_days=window_days,
            generated_at=end,
            summary=summarize(results),
            type_breakdown=tuple(type_breakdown(results)),
            trends=tuple(daily_trends(results, window_days, end)),
            most_failed_tests=tuple(most_failed(results, self.config.top_failed_limit)),
            performance_metrics=performance_summary(results),
        )

    async def test_case_analytics(
        self,
        test_case_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestCaseAnalytics:
        """History of one test case across all agents."""
        if window_days is None:
            window_days = self.config.default_window_days
        start, end = _window(window_days, now)
        results = await self.result_repo.list_by_test_case(test_case_id, start=start, end=end)
        results.sort(key=lambda r: r.start_time)

        passed = sum(1 for r in results if r.status == TestResultStatus.PASSED)
        response_times = [
            r.performance_metrics.response_time_ms for r in results if r.performance_metrics
        ]
        return TestCaseAnalytics(
            test_case_id=test_case_id,
            total_runs=len(results),
            pass_rate=rate(passed, len(results)),
            avg_response_time_ms=mean(response_times),
            trends=tuple(
                ResultTrendEntry(
                    start_time=r.start_time,
                    status=r.status.value,
                    response_time_ms=(
                        r.performance_metrics.response_time_ms if r.performance_metrics else None
                    ),
                )
                for r in results
            ),
        )

    async def test_suite_analytics(
        self,
        test_suite_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestSuiteAnalytics:
        """Run history of a suite; per-test-case pass rates sorted ascending."""
        if self.run_repo is None:
            raise InvalidConfigError("run_repo", "None", "Suite analytics need a run repository")

        if window_days is None:
            window_days = self.config.default_window_days
        start, end = _window(window_days, now)
        runs = await self.run_repo.list_by_suite(test_suite_id, start=start, end=end)

        pass_rates = [run.summary.success_rate for run in runs]
        durations = [run.duration_ms for run in runs if run.end_time is not None]

        per_case: dict[str, list[TestResult]] = defaultdict(list)
        for run in runs:
            for result in run.executions:
                per_case[result.test_case_id].append(result)

        performance = []
        for test_case_id, results in per_case.items():
            passed = sum(1 for r in results if r.status == TestResultStatus.PASSED)
            name = next((r.test_case_name for r in results if r.test_case_name), None)
            performance.append(
                TestCasePassRate(
                    test_case_id=test_case_id,
                    test_case_name=name or UNKNOWN_TEST_NAME,
                    pass_rate=rate(passed, len(results)),
                )
            )
        performance.sort(key=lambda p: (p.pass_rate, p.test_case_id))

        return TestSuiteAnalytics(
            test_suite_id=test_suite_id,
            total_runs=len(runs),
            avg_pass_rate=mean(pass_rates) or 0.0,
            avg_duration_ms=mean(durations),
            test_case_performance=tuple(performance),
        )
