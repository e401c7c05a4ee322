"""
Agent Test Harness Contracts

Data contracts for the harness, split into focused modules:

- core: Enumerations, validation rules, parameters, test cases and suites
- results: Validation outcomes, performance metrics, test results and runs
- schedule: Scheduled tests and their state machine
- analytics: Derived analytics views
- agent: Agent invocation and notification collaborators

All models can be imported from this package:
    from src.agenttest.contracts import TestCase, TestResult, TestRun
"""

from src.agenttest.contracts.agent import (
    AgentInvoker,
    AgentResponse,
    Notification,
    NotificationSeverity,
    Notifier,
)
from src.agenttest.contracts.analytics import (
    AnalyticsSummary,
    FailedTestStat,
    MetricStats,
    PerformanceSummary,
    ResultTrendEntry,
    TestAnalytics,
    TestCaseAnalytics,
    TestCasePassRate,
    TestSuiteAnalytics,
    TrendPoint,
    TypeBreakdown,
)
from src.agenttest.contracts.core import (
    ParameterType,
    SuiteConfig,
    TestCase,
    TestCasePriority,
    TestCaseType,
    TestParameter,
    TestSuite,
    ValidationRule,
    ValidationRuleType,
    _generate_id,
    _now_utc,
)
from src.agenttest.contracts.results import (
    PerformanceMetrics,
    RunSummary,
    TestResult,
    TestResultStatus,
    TestRun,
    TestRunStatus,
    ValidationOutcome,
)
from src.agenttest.contracts.schedule import (
    ScheduledTest,
    ScheduleFrequency,
    ScheduleItemType,
    ScheduleStatus,
)

__all__ = [
    # Core
    "ParameterType",
    "SuiteConfig",
    "TestCase",
    "TestCasePriority",
    "TestCaseType",
    "TestParameter",
    "TestSuite",
    "ValidationRule",
    "ValidationRuleType",
    "_generate_id",
    "_now_utc",
    # Results
    "PerformanceMetrics",
    "RunSummary",
    "TestResult",
    "TestResultStatus",
    "TestRun",
    "TestRunStatus",
    "ValidationOutcome",
    # Schedule
    "ScheduledTest",
    "ScheduleFrequency",
    "ScheduleItemType",
    "ScheduleStatus",
    # Analytics
    "AnalyticsSummary",
    "FailedTestStat",
    "MetricStats",
    "PerformanceSummary",
    "ResultTrendEntry",
    "TestAnalytics",
    "TestCaseAnalytics",
    "TestCasePassRate",
    "TestSuiteAnalytics",
    "TrendPoint",
    "TypeBreakdown",
    # Collaborators
    "AgentInvoker",
    "AgentResponse",
    "Notification",
    "NotificationSeverity",
    "Notifier",
]
