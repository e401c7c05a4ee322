"""Shared fixtures for harness tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from src.agenttest.contracts import AgentResponse
from src.agenttest.execution import TestExecutor
from src.agenttest.storage import Repositories, create_memory_repositories


class ScriptedInvoker:
    """
    Agent double answering from a script keyed by the `prompt` input.

    A script entry may be an outputs dict, an AgentResponse, or an exception
    to raise. `failures[prompt]` lists exceptions raised (in order) before
    the scripted answer is returned.
    """

    def __init__(self, default: Any = None, delay: float = 0.0):
        self.responses: dict[Any, Any] = {}
        self.failures: dict[Any, list[BaseException]] = {}
        self.delays: dict[Any, float] = {}
        self.default = default if default is not None else {"response": "ok"}
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.active = 0
        self.max_active = 0

    async def invoke(self, agent_id: str, inputs: dict[str, Any], timeout_ms: int) -> AgentResponse:
        self.calls.append((agent_id, dict(inputs)))
        key = inputs.get("prompt")
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delays.get(key, self.delay)
            if delay:
                await asyncio.sleep(delay)
            pending = self.failures.get(key)
            if pending:
                raise pending.pop(0)
            response = self.responses.get(key, self.default)
            if isinstance(response, BaseException):
                raise response
            if isinstance(response, AgentResponse):
                return response
            return AgentResponse(outputs=dict(response))
        finally:
            self.active -= 1

    @property
    def prompts(self) -> list[Any]:
        return [inputs.get("prompt") for _, inputs in self.calls]


@pytest.fixture
def invoker() -> ScriptedInvoker:
    """Agent double answering {"response": "ok"} unless scripted otherwise."""
    return ScriptedInvoker()


@pytest.fixture
def repos() -> Repositories:
    """Fresh in-memory repositories."""
    return create_memory_repositories()


@pytest.fixture
def executor(invoker: ScriptedInvoker) -> TestExecutor:
    return TestExecutor(invoker)
