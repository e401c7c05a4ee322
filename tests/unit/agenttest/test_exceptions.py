"""Tests for the harness exception hierarchy."""

import pytest

from src.agenttest.exceptions import (
    AgentInvocationError,
    AgentTimeoutError,
    ConfigurationError,
    EntityNotFoundError,
    ExecutionError,
    HarnessError,
    InvalidConfigError,
    MalformedResponseError,
    MissingConfigError,
    MissingParameterError,
    RuleConfigurationError,
    StorageError,
    TestConfigurationError,
)


class TestHarnessError:
    def test_str_includes_code(self):
        assert str(HarnessError("boom", code="X")) == "[X] boom"
        assert str(HarnessError("boom")) == "boom"

    @pytest.mark.parametrize(
        "error, base",
        [
            (InvalidConfigError("window_days", "0", "Must be at least 1"), ConfigurationError),
            (MissingConfigError("agent_base_url"), ConfigurationError),
            (MissingParameterError("tc-1", "city"), TestConfigurationError),
            (RuleConfigurationError("regex", "response", "bad"), TestConfigurationError),
            (EntityNotFoundError("TestCase", "tc-1"), StorageError),
            (AgentTimeoutError("agent-1", 100), ExecutionError),
        ],
    )
    def test_hierarchy(self, error, base):
        assert isinstance(error, base)
        assert isinstance(error, HarnessError)

    def test_attributes(self):
        error = InvalidConfigError("window_days", "0", "Must be at least 1")

        assert error.field == "window_days"
        assert error.code == "CONFIG_INVALID"
        assert "window_days" in str(error)

    def test_missing_config_hint(self):
        error = MissingConfigError("webhook_url", hint="Set AGENTTEST_WEBHOOK_URL")

        assert error.message.endswith("Set AGENTTEST_WEBHOOK_URL")


class TestExecutionErrorTypes:
    def test_error_types(self):
        assert AgentTimeoutError("a", 1).error_type == "timeout"
        assert MalformedResponseError("a", "x").error_type == "malformed_response"
        assert AgentInvocationError("a", "x").error_type == "invocation_error"
        assert ExecutionError("x").error_type == "execution_error"
