"""
Harness Metrics

Pre-defined OpenTelemetry instruments for test executions, suite runs and
schedule firings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.agenttest.common.telemetry.setup import get_meter, is_telemetry_enabled

if TYPE_CHECKING:
    from src.agenttest.contracts import TestResult, TestRun

logger = logging.getLogger(__name__)


class HarnessMetrics:
    """
    Metrics for the test harness.

    Tracks:
    - Test executions by agent, status and test type
    - Execution duration and attempts
    - Suite run completions by status
    - Schedule firings by outcome
    """

    def __init__(self, meter_name: str = "agenttest"):
        self._meter = get_meter(meter_name)
        self._enabled = is_telemetry_enabled()

        self._executions_total = self._meter.create_counter(
            name="agenttest_executions_total",
            description="Total test case executions",
            unit="1",
        )
        self._execution_duration = self._meter.create_histogram(
            name="agenttest_execution_duration_ms",
            description="Test case execution duration",
            unit="ms",
        )
        self._execution_attempts = self._meter.create_histogram(
            name="agenttest_execution_attempts",
            description="Invocation attempts per execution",
            unit="1",
        )
        self._runs_total = self._meter.create_counter(
            name="agenttest_runs_total",
            description="Completed test suite runs",
            unit="1",
        )
        self._firings_total = self._meter.create_counter(
            name="agenttest_schedule_firings_total",
            description="Scheduled test firings",
            unit="1",
        )

    def record_result(self, result: TestResult) -> None:
        """Record a finished test case execution."""
        if not self._enabled:
            return

        try:
            attrs = {
                "agent_id": result.agent_id,
                "status": result.status.value,
                "test_type": result.test_case_type.value if result.test_case_type else "unknown",
            }
            if result.error_type:
                attrs["error_type"] = result.error_type

            self._executions_total.add(1, attrs)
            self._execution_duration.record(result.duration_ms, attrs)
            self._execution_attempts.record(result.attempts, attrs)
        except Exception as e:
            logger.warning(f"Failed to record result metrics: {e}")

    def record_run(self, run: TestRun) -> None:
        """Record a finished suite run."""
        if not self._enabled:
            return

        try:
            self._runs_total.add(1, {"agent_id": run.agent_id, "status": run.status.value})
        except Exception as e:
            logger.warning(f"Failed to record run metrics: {e}")

    def record_firing(self, agent_id: str, item_type: str, outcome: str) -> None:
        """Record a schedule firing (outcome: passed, failed, error)."""
        if not self._enabled:
            return

        try:
            self._firings_total.add(
                1, {"agent_id": agent_id, "item_type": item_type, "outcome": outcome}
            )
        except Exception as e:
            logger.warning(f"Failed to record firing metrics: {e}")


_harness_metrics: HarnessMetrics | None = None


def get_harness_metrics() -> HarnessMetrics:
    """Get the global harness metrics instance."""
    global _harness_metrics
    if _harness_metrics is None:
        _harness_metrics = HarnessMetrics()
    return _harness_metrics
