"""Tests for agent invokers."""

from __future__ import annotations

import json

import httpx
import pytest

from src.agenttest.agents import (
    CallableAgentInvoker,
    EchoAgentInvoker,
    HttpAgentInvoker,
    parse_agent_payload,
)
from src.agenttest.contracts import AgentResponse
from src.agenttest.exceptions import (
    AgentInvocationError,
    AgentTimeoutError,
    MalformedResponseError,
)


def http_invoker(handler) -> HttpAgentInvoker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpAgentInvoker("http://agents.local/", api_key="secret", client=client)


class TestParseAgentPayload:
    """Tests for parse_agent_payload."""

    def test_outputs_envelope_with_camel_case_metrics(self):
        response = parse_agent_payload(
            "agent-1",
            {"outputs": {"response": "hi"}, "tokenCount": 12, "costEstimate": 0.01},
        )

        assert response.outputs == {"response": "hi"}
        assert response.token_count == 12
        assert response.cost_estimate_usd == 0.01

    def test_bare_object_is_outputs(self):
        response = parse_agent_payload("agent-1", {"response": "hi"})

        assert response.outputs == {"response": "hi"}
        assert response.token_count is None

    def test_nested_performance_metrics(self):
        response = parse_agent_payload(
            "agent-1",
            {"outputs": {}, "performanceMetrics": {"memory_usage_mb": 64, "cpuUsage": 12.5}},
        )

        assert response.memory_usage_mb == 64
        assert response.cpu_usage_pct == 12.5

    @pytest.mark.parametrize("payload", [["a", "b"], "text", 42, None])
    def test_non_object_rejected(self, payload):
        with pytest.raises(MalformedResponseError):
            parse_agent_payload("agent-1", payload)

    def test_non_object_outputs_rejected(self):
        with pytest.raises(MalformedResponseError):
            parse_agent_payload("agent-1", {"outputs": "hi"})

    def test_invalid_metrics_rejected(self):
        with pytest.raises(MalformedResponseError):
            parse_agent_payload("agent-1", {"outputs": {}, "tokenCount": -1})


class TestHttpAgentInvoker:
    """Tests for HttpAgentInvoker."""

    @pytest.mark.asyncio
    async def test_posts_inputs(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"outputs": {"response": "hi"}, "tokenCount": 3})

        invoker = http_invoker(handler)
        response = await invoker.invoke("agent-1", {"prompt": "hello"}, 5000)

        assert response == AgentResponse(outputs={"response": "hi"}, token_count=3)
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://agents.local/agents/agent-1/invoke"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {"inputs": {"prompt": "hello"}, "timeoutMs": 5000}

    @pytest.mark.asyncio
    async def test_injected_client_stays_open(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"outputs": {}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            invoker = HttpAgentInvoker("http://agents.local", client=client)
            await invoker.invoke("agent-1", {}, 1000)
            await invoker.invoke("agent-1", {}, 1000)

            assert not client.is_closed

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(AgentTimeoutError) as exc_info:
            await http_invoker(handler).invoke("agent-1", {}, 250)

        assert exc_info.value.timeout_ms == 250
        assert exc_info.value.error_type == "timeout"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        with pytest.raises(AgentInvocationError, match="HTTP 503"):
            await http_invoker(handler).invoke("agent-1", {}, 1000)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AgentInvocationError, match="ConnectError"):
            await http_invoker(handler).invoke("agent-1", {}, 1000)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(MalformedResponseError):
            await http_invoker(handler).invoke("agent-1", {}, 1000)


class TestOtherInvokers:
    """Tests for the callable and echo invokers."""

    @pytest.mark.asyncio
    async def test_callable_accepts_mapping(self):
        async def agent(agent_id, inputs):
            return {"response": inputs["prompt"].upper()}

        response = await CallableAgentInvoker(agent).invoke("agent-1", {"prompt": "hi"}, 1000)

        assert response.outputs == {"response": "HI"}

    @pytest.mark.asyncio
    async def test_callable_passes_agent_response_through(self):
        async def agent(agent_id, inputs):
            return AgentResponse(outputs={"a": 1}, token_count=5)

        response = await CallableAgentInvoker(agent).invoke("agent-1", {}, 1000)

        assert response.token_count == 5

    @pytest.mark.asyncio
    async def test_callable_rejects_unstructured(self):
        async def agent(agent_id, inputs):
            return "plain text"

        with pytest.raises(MalformedResponseError):
            await CallableAgentInvoker(agent).invoke("agent-1", {}, 1000)

    @pytest.mark.asyncio
    async def test_echo(self):
        response = await EchoAgentInvoker().invoke("agent-1", {"prompt": "hi"}, 1000)

        assert response.outputs == {"prompt": "hi"}
