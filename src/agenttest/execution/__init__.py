"""
Test Execution

Single test case execution and suite runs.

Usage:
    from src.agenttest.execution import SuiteRunner, TestExecutor

    executor = TestExecutor(invoker)
    result = await executor.execute("agent-1", test_case)
"""

from src.agenttest.execution.config import ExecutionOptions, ExecutorConfig, SuiteRunnerConfig
from src.agenttest.execution.executor import NO_RULES_WARNING, TestExecutor, error_type_of
from src.agenttest.execution.suite_runner import RunCancellation, SuiteRunner, skipped_result

__all__ = [
    "NO_RULES_WARNING",
    "ExecutionOptions",
    "ExecutorConfig",
    "RunCancellation",
    "SuiteRunner",
    "SuiteRunnerConfig",
    "TestExecutor",
    "error_type_of",
    "skipped_result",
]
