"""
Agent Test Harness Exception Hierarchy

Provides structured exception types for the test harness.
All harness-specific exceptions inherit from HarnessError.

Execution errors (agent unreachable, timeout, malformed response) are caught
by the executor and recorded as TestResult(status=error). Configuration errors
propagate to the caller before the agent is ever invoked.

Usage:
    from src.agenttest.exceptions import EntityNotFoundError, TestConfigurationError

    try:
        result = await service.execute_test(agent_id, test_case_id)
    except TestConfigurationError as e:
        logger.error(f"Test case is misconfigured: {e}")
"""

from __future__ import annotations


class HarnessError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message: Human-readable error description
        code: Optional machine-readable error code for programmatic handling
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(HarnessError):
    """Base class for harness configuration errors."""

    pass


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid or malformed."""

    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(
            f"Invalid configuration for '{field}': {value}. {reason}",
            code="CONFIG_INVALID",
        )
        self.field = field
        self.value = value
        self.reason = reason


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, field: str, hint: str | None = None) -> None:
        message = f"Missing required configuration: '{field}'"
        if hint:
            message += f". {hint}"
        super().__init__(message, code="CONFIG_MISSING")
        self.field = field


# =============================================================================
# Test Configuration Errors (raised before invoking the agent)
# =============================================================================


class TestConfigurationError(HarnessError):
    """A test case cannot be executed as configured."""

    __test__ = False


class MissingParameterError(TestConfigurationError):
    """A required test parameter has no value."""

    def __init__(self, test_case_id: str, parameter: str) -> None:
        super().__init__(
            f"Test case {test_case_id} is missing required parameter '{parameter}'",
            code="TEST_PARAM_MISSING",
        )
        self.test_case_id = test_case_id
        self.parameter = parameter


class InvalidParameterError(TestConfigurationError):
    """A test parameter value does not match its declared type."""

    def __init__(self, test_case_id: str, parameter: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Test case {test_case_id} parameter '{parameter}' must be {expected}, got {actual}",
            code="TEST_PARAM_INVALID",
        )
        self.test_case_id = test_case_id
        self.parameter = parameter
        self.expected = expected
        self.actual = actual


class RuleConfigurationError(TestConfigurationError):
    """A validation rule is malformed (bad target, pattern, or predicate)."""

    def __init__(self, rule_type: str, target: str, reason: str) -> None:
        super().__init__(
            f"Invalid {rule_type} rule on '{target}': {reason}",
            code="TEST_RULE_INVALID",
        )
        self.rule_type = rule_type
        self.target = target
        self.reason = reason


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(HarnessError):
    """Base class for storage/repository errors."""

    pass


class EntityNotFoundError(StorageError):
    """Requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            code="STORAGE_NOT_FOUND",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEntityError(StorageError):
    """An entity with the same identity already exists."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} already exists: {entity_id}",
            code="STORAGE_DUPLICATE",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


# =============================================================================
# Execution Errors (recorded as TestResult.status == "error")
# =============================================================================


class ExecutionError(HarnessError):
    """Base class for agent execution errors."""

    error_type: str = "execution_error"


class AgentInvocationError(ExecutionError):
    """The agent could not be reached or failed while responding."""

    error_type = "invocation_error"

    def __init__(self, agent_id: str, reason: str) -> None:
        super().__init__(
            f"Agent {agent_id} invocation failed: {reason}",
            code="EXEC_INVOCATION",
        )
        self.agent_id = agent_id
        self.reason = reason


class AgentTimeoutError(ExecutionError):
    """The agent did not respond within the test timeout."""

    error_type = "timeout"

    def __init__(self, agent_id: str, timeout_ms: int) -> None:
        super().__init__(
            f"Agent {agent_id} did not respond within {timeout_ms}ms",
            code="EXEC_TIMEOUT",
        )
        self.agent_id = agent_id
        self.timeout_ms = timeout_ms


class MalformedResponseError(ExecutionError):
    """The agent responded with something that is not a structured output."""

    error_type = "malformed_response"

    def __init__(self, agent_id: str, reason: str) -> None:
        super().__init__(
            f"Agent {agent_id} returned a malformed response: {reason}",
            code="EXEC_MALFORMED",
        )
        self.agent_id = agent_id
        self.reason = reason


# =============================================================================
# Scheduler Errors
# =============================================================================


class SchedulerError(HarnessError):
    """Base class for scheduler errors."""

    pass


class ScheduleFiringError(SchedulerError):
    """A schedule could not be fired (target deleted or misconfigured)."""

    def __init__(self, schedule_id: str, reason: str) -> None:
        super().__init__(
            f"Schedule {schedule_id} could not fire: {reason}",
            code="SCHEDULE_FIRING",
        )
        self.schedule_id = schedule_id
        self.reason = reason


# =============================================================================
# Notification Errors
# =============================================================================


class NotificationError(HarnessError):
    """A notification could not be delivered."""

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(
            f"Notification via {channel} failed: {reason}",
            code="NOTIFY_FAILED",
        )
        self.channel = channel
        self.reason = reason


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Base
    "HarnessError",
    # Configuration
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
    # Test configuration
    "TestConfigurationError",
    "MissingParameterError",
    "InvalidParameterError",
    "RuleConfigurationError",
    # Storage
    "StorageError",
    "EntityNotFoundError",
    "DuplicateEntityError",
    # Execution
    "ExecutionError",
    "AgentInvocationError",
    "AgentTimeoutError",
    "MalformedResponseError",
    # Scheduler
    "SchedulerError",
    "ScheduleFiringError",
    # Notifications
    "NotificationError",
]
