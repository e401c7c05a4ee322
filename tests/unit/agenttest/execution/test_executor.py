"""Tests for single test case execution."""

from __future__ import annotations

import asyncio

import pytest

from src.agenttest.agents import CallableAgentInvoker
from src.agenttest.contracts import (
    AgentResponse,
    TestCase,
    TestParameter,
    TestResultStatus,
    ValidationRule,
    ValidationRuleType,
)
from src.agenttest.exceptions import (
    AgentInvocationError,
    MissingParameterError,
    RuleConfigurationError,
)
from src.agenttest.execution import (
    NO_RULES_WARNING,
    ExecutionOptions,
    ExecutorConfig,
    TestExecutor,
    error_type_of,
)


def contains(target: str, value, message: str | None = None) -> ValidationRule:
    return ValidationRule(
        type=ValidationRuleType.CONTAINS, target=target, value=value, message=message
    )


@pytest.fixture
def greeting_case() -> TestCase:
    return TestCase(
        id="tc-greet",
        name="Greets the user",
        inputs={"prompt": "Hello"},
        validation_rules=(contains("response", "help"),),
        timeout_ms=1000,
        retry_count=0,
    )


class TestExecuteOutcomes:
    """Tests for passed and failed results."""

    @pytest.mark.asyncio
    async def test_passes_when_rules_hold(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = {"response": "How can I help?"}

        result = await executor.execute("agent-1", greeting_case)

        assert result.status == TestResultStatus.PASSED
        assert result.agent_id == "agent-1"
        assert result.test_case_id == "tc-greet"
        assert result.test_case_name == "Greets the user"
        assert result.actual_outputs == {"response": "How can I help?"}
        assert result.attempts == 1
        assert result.error is None
        assert result.performance_metrics is not None
        assert result.end_time >= result.start_time

    @pytest.mark.asyncio
    async def test_fails_when_a_rule_fails(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = {"response": "Go away"}

        result = await executor.execute("agent-1", greeting_case)

        assert result.status == TestResultStatus.FAILED
        assert len(result.validation_results) == 1
        assert not result.validation_results[0].passed
        assert result.error is None

    @pytest.mark.asyncio
    async def test_empty_rules_pass_with_warning(self, executor):
        test_case = TestCase(name="No rules", inputs={"prompt": "x"})

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.PASSED
        assert result.validation_results == ()
        assert result.metadata["warnings"] == [NO_RULES_WARNING]

    @pytest.mark.asyncio
    async def test_agent_metrics_recorded(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = AgentResponse(
            outputs={"response": "help"}, token_count=42, cost_estimate_usd=0.01
        )

        result = await executor.execute("agent-1", greeting_case)

        assert result.performance_metrics.token_count == 42
        assert result.performance_metrics.cost_estimate_usd == 0.01
        assert result.performance_metrics.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_rules_see_performance_metrics(self, invoker, executor):
        invoker.responses["Hello"] = AgentResponse(outputs={"response": "hi"}, token_count=150)
        test_case = TestCase(
            name="Token budget",
            inputs={"prompt": "Hello"},
            validation_rules=(
                ValidationRule(
                    type=ValidationRuleType.CUSTOM,
                    target="performanceMetrics.tokenCount",
                    value=200,
                    options={"predicate": "max_value"},
                ),
            ),
        )

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.PASSED
        assert "performanceMetrics" not in result.actual_outputs

    @pytest.mark.asyncio
    async def test_metrics_hidden_when_disabled(self, invoker):
        executor = TestExecutor(invoker, ExecutorConfig(expose_performance_metrics=False))
        test_case = TestCase(
            name="Needs metrics",
            inputs={"prompt": "Hello"},
            validation_rules=(contains("performanceMetrics", "x"),),
        )

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.FAILED
        assert "not found" in result.validation_results[0].message


class TestExecuteErrors:
    """Tests for execution errors and retries."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = {"response": "help"}
        invoker.failures["Hello"] = [AgentInvocationError("agent-1", "connection reset")]
        test_case = greeting_case.model_copy(update={"retry_count": 1})

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.PASSED
        assert result.attempts == 2
        assert len(invoker.calls) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = AgentInvocationError("agent-1", "HTTP 503")
        test_case = greeting_case.model_copy(update={"retry_count": 2})

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.ERROR
        assert result.error_type == "invocation_error"
        assert "HTTP 503" in result.error
        assert result.attempts == 3
        assert result.validation_results == ()
        assert result.performance_metrics is None

    @pytest.mark.asyncio
    async def test_timeout(self, invoker, executor, greeting_case):
        invoker.delay = 1.0
        test_case = greeting_case.model_copy(update={"timeout_ms": 20})

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.ERROR
        assert result.error_type == "timeout"
        assert "20ms" in result.error

    @pytest.mark.asyncio
    async def test_each_attempt_gets_a_fresh_timeout(self, greeting_case):
        calls = 0

        async def slow_then_fast(agent_id, inputs):
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(1.0)
            return {"response": "happy to help"}

        executor = TestExecutor(CallableAgentInvoker(slow_then_fast))
        test_case = greeting_case.model_copy(update={"timeout_ms": 50, "retry_count": 1})

        result = await executor.execute("agent-1", test_case)

        assert result.status == TestResultStatus.PASSED
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_malformed_response(self, greeting_case):
        async def returns_text(agent_id, inputs):
            return "not structured"

        executor = TestExecutor(CallableAgentInvoker(returns_text))

        result = await executor.execute("agent-1", greeting_case)

        assert result.status == TestResultStatus.ERROR
        assert result.error_type == "malformed_response"

    @pytest.mark.asyncio
    async def test_raw_mapping_accepted(self, greeting_case):
        class RawInvoker:
            async def invoke(self, agent_id, inputs, timeout_ms):
                return {"response": "help is here"}

        result = await TestExecutor(RawInvoker()).execute("agent-1", greeting_case)

        assert result.status == TestResultStatus.PASSED

    @pytest.mark.asyncio
    async def test_unexpected_exception_classified_by_name(self, invoker, executor, greeting_case):
        invoker.responses["Hello"] = RuntimeError("kaboom")

        result = await executor.execute("agent-1", greeting_case)

        assert result.status == TestResultStatus.ERROR
        assert result.error_type == "RuntimeError"
        assert result.error == "kaboom"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, invoker, executor, greeting_case):
        invoker.delay = 5.0
        task = asyncio.create_task(executor.execute("agent-1", greeting_case))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestPreflight:
    """Tests for checks that run before the agent is invoked."""

    @pytest.mark.asyncio
    async def test_misconfigured_rule_raises_without_invoking(self, invoker, executor):
        test_case = TestCase(
            name="Bad regex",
            validation_rules=(
                ValidationRule(type=ValidationRuleType.REGEX, target="response", value="(x"),
            ),
        )

        with pytest.raises(RuleConfigurationError):
            await executor.execute("agent-1", test_case)
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_missing_parameter_raises(self, invoker, executor):
        test_case = TestCase(
            name="Needs user",
            parameters=(TestParameter(name="user_id", required=True),),
        )

        with pytest.raises(MissingParameterError):
            await executor.execute("agent-1", test_case)
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_options_override_inputs_and_timeout(self, invoker, executor, greeting_case):
        invoker.delay = 0.2
        options = ExecutionOptions(timeout_ms=10, overrides={"prompt": "Hi", "lang": "fr"})

        result = await executor.execute("agent-1", greeting_case, options)

        assert invoker.calls[0][1] == {"prompt": "Hi", "lang": "fr"}
        assert result.error_type == "timeout"


class TestErrorTypeOf:
    """Tests for error classification."""

    def test_execution_errors_use_their_type(self):
        assert error_type_of(AgentInvocationError("a", "b")) == "invocation_error"

    def test_other_errors_use_class_name(self):
        assert error_type_of(ValueError("x")) == "ValueError"
