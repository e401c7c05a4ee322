"""
Collaborator Contracts

Narrow interfaces to the out-of-scope collaborators the harness talks to:
the agent under test and the notification transport.

Uses typing.Protocol for duck-typed interface definitions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class AgentResponse(BaseModel):
    """Structured response from an agent invocation."""

    model_config = ConfigDict(frozen=True)

    outputs: dict[str, Any] = Field(default_factory=dict)
    token_count: int | None = Field(default=None, ge=0)
    memory_usage_mb: float | None = Field(default=None, ge=0.0)
    cpu_usage_pct: float | None = Field(default=None, ge=0.0)
    cost_estimate_usd: float | None = Field(default=None, ge=0.0)


@runtime_checkable
class AgentInvoker(Protocol):
    """
    Invokes an agent with a set of inputs.

    Implementations must be cancellation-safe: the executor cancels the
    awaiting task when the timeout budget is exhausted, and any in-flight
    request should be aborted when that happens.
    """

    async def invoke(
        self,
        agent_id: str,
        inputs: dict[str, Any],
        timeout_ms: int,
    ) -> AgentResponse:
        """
        Run the agent once.

        Args:
            agent_id: Agent to invoke
            inputs: Resolved test inputs
            timeout_ms: Time budget for this attempt

        Raises:
            Exception: Any failure is treated as an execution error
        """
        ...


class NotificationSeverity(str, Enum):
    """Severity of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A message for a human about a test execution or schedule."""

    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    severity: NotificationSeverity = NotificationSeverity.INFO
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class Notifier(Protocol):
    """Delivers notifications. Transport is up to the implementation."""

    async def notify(self, notification: Notification) -> None:
        """Deliver a notification."""
        ...
