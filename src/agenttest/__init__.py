"""
Agent Test Harness

Defines, executes, schedules and analyses tests run against AI agents.

Usage:
    from src.agenttest import TestingService, TestCase, ValidationRule

    service = TestingService(invoker=EchoAgentInvoker())
    case = await service.create_test_case(TestCase(name="Echo", inputs={"response": "hi"}))
    result = await service.execute_test("agent-1", case.id)
"""

from src.agenttest.agents import CallableAgentInvoker, EchoAgentInvoker, HttpAgentInvoker
from src.agenttest.config import HarnessSettings
from src.agenttest.contracts import (
    ScheduledTest,
    TestCase,
    TestResult,
    TestRun,
    TestSuite,
    ValidationRule,
)
from src.agenttest.loader import Definitions, load_definitions
from src.agenttest.service import TestingService

__all__ = [
    "CallableAgentInvoker",
    "Definitions",
    "EchoAgentInvoker",
    "HarnessSettings",
    "HttpAgentInvoker",
    "ScheduledTest",
    "TestCase",
    "TestResult",
    "TestRun",
    "TestSuite",
    "TestingService",
    "ValidationRule",
    "load_definitions",
]
