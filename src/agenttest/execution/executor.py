"""
Test Executor

Runs one test case against one agent: preflight checks, invocation with
timeout and retries, validation, and result assembly.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from src.agenttest.common.resilience import RetryConfig, retry_with_backoff
from src.agenttest.common.telemetry import get_harness_metrics, get_tracer
from src.agenttest.contracts import (
    AgentInvoker,
    AgentResponse,
    PerformanceMetrics,
    TestCase,
    TestResult,
    TestResultStatus,
    _now_utc,
)
from src.agenttest.exceptions import (
    AgentTimeoutError,
    ExecutionError,
    HarnessError,
    MalformedResponseError,
)
from src.agenttest.execution.config import ExecutionOptions, ExecutorConfig
from src.agenttest.validation import (
    PredicateRegistry,
    check_test_case,
    evaluate_all,
    resolve_inputs,
)

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

NO_RULES_WARNING = "Test case has no validation rules; it passes whenever the agent responds"


def error_type_of(error: BaseException) -> str:
    """Classification recorded in TestResult.error_type."""
    if isinstance(error, ExecutionError):
        return error.error_type
    return type(error).__name__


def _error_message(error: BaseException) -> str:
    if isinstance(error, HarnessError):
        return error.message
    return str(error) or type(error).__name__


class TestExecutor:
    """
    Executes test cases against agents.

    Execution errors (timeouts, invocation failures, malformed responses)
    become results with status `error`. Configuration errors are raised
    before the agent is invoked.
    """

    __test__ = False

    def __init__(
        self,
        invoker: AgentInvoker,
        config: ExecutorConfig | None = None,
        registry: PredicateRegistry | None = None,
    ):
        self.invoker = invoker
        self.config = config or ExecutorConfig()
        self.registry = registry
        self._metrics = get_harness_metrics()

    def preflight(
        self,
        test_case: TestCase,
        options: ExecutionOptions | None = None,
    ) -> dict[str, Any]:
        """
        Check a test case can run and resolve its inputs.

        Raises:
            TestConfigurationError: Misconfigured rule or parameter
        """
        check_test_case(test_case, self.registry)
        return resolve_inputs(test_case, options.overrides if options else None)

    async def execute(
        self,
        agent_id: str,
        test_case: TestCase,
        options: ExecutionOptions | None = None,
    ) -> TestResult:
        """
        Execute a test case.

        Args:
            agent_id: Agent under test
            test_case: Test case to run (never mutated)
            options: Timeout/retry/input overrides

        Returns:
            TestResult with status passed, failed or error

        Raises:
            TestConfigurationError: Before invocation, for a misconfigured test case
            asyncio.CancelledError: If the surrounding run is cancelled
        """
        options = options or ExecutionOptions()
        inputs = self.preflight(test_case, options)

        timeout_ms = options.timeout_ms or test_case.timeout_ms
        retry_count = (
            options.retry_count if options.retry_count is not None else test_case.retry_count
        )
        retry_delay_ms = (
            options.retry_delay_ms
            if options.retry_delay_ms is not None
            else self.config.retry_delay_ms
        )

        with tracer.start_as_current_span("agenttest.execute_test") as span:
            span.set_attribute("agent.id", agent_id)
            span.set_attribute("test_case.id", test_case.id)
            span.set_attribute("test_case.type", test_case.type.value)

            start_time = _now_utc()
            attempts = 0

            async def attempt() -> tuple[AgentResponse, float]:
                nonlocal attempts
                attempts += 1
                return await self._invoke_once(agent_id, inputs, timeout_ms)

            def on_retry(attempt_number: int, error: Exception, delay: float) -> None:
                logger.info(
                    f"Test {test_case.id} attempt {attempt_number} on agent {agent_id} "
                    f"failed ({error_type_of(error)}), retrying"
                )

            retry_config = RetryConfig(
                max_attempts=retry_count + 1,
                base_delay=retry_delay_ms / 1000,
                max_delay=self.config.max_retry_delay_ms / 1000,
                exponential_base=self.config.retry_backoff_multiplier,
                jitter=False,
                retryable_exceptions=(Exception,),
            )

            try:
                response, response_time_ms = await retry_with_backoff(
                    attempt, config=retry_config, on_retry=on_retry
                )
            except Exception as e:
                end_time = _now_utc()
                logger.warning(
                    f"Test {test_case.id} errored on agent {agent_id} after "
                    f"{attempts} attempt(s): {_error_message(e)}"
                )
                result = TestResult(
                    test_case_id=test_case.id,
                    agent_id=agent_id,
                    status=TestResultStatus.ERROR,
                    test_case_name=test_case.name,
                    test_case_type=test_case.type,
                    start_time=start_time,
                    end_time=end_time,
                    duration_ms=(end_time - start_time).total_seconds() * 1000,
                    error=_error_message(e),
                    error_type=error_type_of(e),
                    attempts=attempts,
                )
            else:
                result = self._validated_result(
                    agent_id, test_case, response, response_time_ms, start_time, attempts
                )

            span.set_attribute("result.status", result.status.value)
            span.set_attribute("result.attempts", result.attempts)

        self._metrics.record_result(result)
        logger.debug(
            f"Test {test_case.id} on agent {agent_id}: {result.status.value} "
            f"in {result.duration_ms:.0f}ms"
        )
        return result

    async def _invoke_once(
        self,
        agent_id: str,
        inputs: Mapping[str, Any],
        timeout_ms: int,
    ) -> tuple[AgentResponse, float]:
        """One attempt with its own timeout window. Returns (response, elapsed ms)."""
        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                self.invoker.invoke(agent_id, dict(inputs), timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            raise AgentTimeoutError(agent_id, timeout_ms) from None
        elapsed_ms = (time.perf_counter() - started) * 1000
        return self._coerce_response(agent_id, raw), elapsed_ms

    @staticmethod
    def _coerce_response(agent_id: str, raw: Any) -> AgentResponse:
        if isinstance(raw, AgentResponse):
            return raw
        if isinstance(raw, Mapping):
            return AgentResponse(outputs=dict(raw))
        raise MalformedResponseError(
            agent_id, f"expected structured outputs, got {type(raw).__name__}"
        )

    def _validated_result(
        self,
        agent_id: str,
        test_case: TestCase,
        response: AgentResponse,
        response_time_ms: float,
        start_time: datetime,
        attempts: int,
    ) -> TestResult:
        metrics = PerformanceMetrics(
            response_time_ms=response_time_ms,
            token_count=response.token_count,
            memory_usage_mb=response.memory_usage_mb,
            cpu_usage_pct=response.cpu_usage_pct,
            cost_estimate_usd=response.cost_estimate_usd,
        )

        context = dict(response.outputs)
        if self.config.expose_performance_metrics and "performanceMetrics" not in context:
            context["performanceMetrics"] = metrics.as_output_view()

        passed, outcomes = evaluate_all(test_case.validation_rules, context, self.registry)

        metadata: dict[str, Any] = {}
        if not test_case.has_validation_rules:
            logger.warning(f"Test case {test_case.id} ({test_case.name}) has no validation rules")
            metadata["warnings"] = [NO_RULES_WARNING]

        end_time = _now_utc()
        return TestResult(
            test_case_id=test_case.id,
            agent_id=agent_id,
            status=TestResultStatus.PASSED if passed else TestResultStatus.FAILED,
            test_case_name=test_case.name,
            test_case_type=test_case.type,
            start_time=start_time,
            end_time=end_time,
            duration_ms=(end_time - start_time).total_seconds() * 1000,
            actual_outputs=dict(response.outputs),
            validation_results=tuple(outcomes),
            performance_metrics=metrics,
            attempts=attempts,
            metadata=metadata,
        )
