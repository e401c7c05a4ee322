"""
Agent Invokers

Adapters implementing the AgentInvoker protocol:

- HttpAgentInvoker: POSTs inputs to an agent HTTP endpoint (httpx)
- CallableAgentInvoker: wraps an async function (tests, embedded agents)
- EchoAgentInvoker: returns the inputs as outputs (dry runs)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from src.agenttest.contracts import AgentResponse
from src.agenttest.exceptions import (
    AgentInvocationError,
    AgentTimeoutError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)

# camelCase fields reported by agent endpoints -> AgentResponse fields
_METRIC_FIELDS = {
    "tokenCount": "token_count",
    "memoryUsage": "memory_usage_mb",
    "cpuUsage": "cpu_usage_pct",
    "costEstimate": "cost_estimate_usd",
}


def parse_agent_payload(agent_id: str, payload: Any) -> AgentResponse:
    """
    Build an AgentResponse from a decoded JSON body.

    The body is either `{"outputs": {...}, "tokenCount": ..., ...}` or a bare
    object used as the outputs. Metrics may be given in camelCase or
    snake_case, at the top level or under `performanceMetrics`.

    Raises:
        MalformedResponseError: If the body is not an object or metrics are invalid
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(agent_id, f"expected a JSON object, got {type(payload).__name__}")

    if "outputs" in payload:
        outputs = payload["outputs"]
        if not isinstance(outputs, Mapping):
            raise MalformedResponseError(agent_id, "'outputs' must be a JSON object")
    else:
        outputs = payload

    sources = [payload]
    if isinstance(payload.get("performanceMetrics"), Mapping):
        sources.append(payload["performanceMetrics"])

    metrics: dict[str, Any] = {}
    for source in sources:
        for camel, snake in _METRIC_FIELDS.items():
            for key in (camel, snake):
                if source.get(key) is not None:
                    metrics[snake] = source[key]

    try:
        return AgentResponse(outputs=dict(outputs), **metrics)
    except ValueError as e:
        raise MalformedResponseError(agent_id, f"invalid metrics: {e}") from e


class HttpAgentInvoker:
    """
    Invokes agents over HTTP.

    Sends `POST {base_url}/agents/{agent_id}/invoke` with body
    `{"inputs": {...}, "timeoutMs": N}`. An injected client is reused for
    every call and stays owned by the caller; without one each call opens and
    closes its own.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._client = client

    def endpoint(self, agent_id: str) -> str:
        return f"{self.base_url}/agents/{agent_id}/invoke"

    async def invoke(
        self,
        agent_id: str,
        inputs: dict[str, Any],
        timeout_ms: int,
    ) -> AgentResponse:
        body = {"inputs": inputs, "timeoutMs": timeout_ms}
        timeout = timeout_ms / 1000

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint(agent_id), json=body, headers=self._headers, timeout=timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.endpoint(agent_id), json=body, headers=self._headers, timeout=timeout
                    )
            response.raise_for_status()
        except httpx.TimeoutException:
            raise AgentTimeoutError(agent_id, timeout_ms) from None
        except httpx.HTTPStatusError as e:
            raise AgentInvocationError(
                agent_id, f"HTTP {e.response.status_code} from {self.endpoint(agent_id)}"
            ) from e
        except httpx.HTTPError as e:
            raise AgentInvocationError(agent_id, f"{type(e).__name__}: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(agent_id, "response body is not JSON") from e

        return parse_agent_payload(agent_id, payload)


class CallableAgentInvoker:
    """
    Wraps an async function as an agent.

    The function receives (agent_id, inputs) and returns an AgentResponse or
    a mapping of outputs.
    """

    def __init__(self, func: Callable[[str, dict[str, Any]], Awaitable[Any]]):
        self._func = func

    async def invoke(
        self,
        agent_id: str,
        inputs: dict[str, Any],
        timeout_ms: int,
    ) -> AgentResponse:
        raw = await self._func(agent_id, inputs)
        if isinstance(raw, AgentResponse):
            return raw
        if isinstance(raw, Mapping):
            return AgentResponse(outputs=dict(raw))
        raise MalformedResponseError(
            agent_id, f"expected structured outputs, got {type(raw).__name__}"
        )


class EchoAgentInvoker:
    """Returns the inputs as outputs. Useful to dry-run test definitions."""

    async def invoke(
        self,
        agent_id: str,
        inputs: dict[str, Any],
        timeout_ms: int,
    ) -> AgentResponse:
        logger.debug(f"Echo agent {agent_id} received {len(inputs)} input(s)")
        return AgentResponse(outputs=dict(inputs))
