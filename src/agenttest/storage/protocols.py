"""
Repository Protocol Definitions

Uses typing.Protocol for duck-typed interface definitions.
No inheritance required - any class implementing these methods qualifies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from src.agenttest.contracts import (
    ScheduledTest,
    ScheduleStatus,
    TestCase,
    TestCasePriority,
    TestCaseType,
    TestResult,
    TestRun,
    TestRunStatus,
    TestSuite,
)

# =============================================================================
# Query Filters
# =============================================================================


class TestCaseFilter(BaseModel):
    """Filter for listing test cases. Tags use AND logic."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    type: TestCaseType | None = None
    priority: TestCasePriority | None = None
    tags: tuple[str, ...] = Field(default_factory=tuple)
    is_template: bool | None = None
    created_by: str | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


class TestSuiteFilter(BaseModel):
    """Filter for listing test suites. Tags use AND logic."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    category: str | None = None
    tags: tuple[str, ...] = Field(default_factory=tuple)
    is_public: bool | None = None
    created_by: str | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


class TestRunFilter(BaseModel):
    """Filter for listing an agent's test runs."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    status: TestRunStatus | None = None
    test_suite_id: str | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# Repositories
# =============================================================================


@runtime_checkable
class TestCaseRepository(Protocol):
    """Repository for test case definitions (including stored templates)."""

    async def get(self, test_case_id: str) -> TestCase | None:
        """Fetch a single test case by ID."""
        ...

    async def get_many(self, test_case_ids: list[str]) -> list[TestCase]:
        """Fetch multiple test cases by IDs. Returns found cases (may be fewer than requested)."""
        ...

    async def save(self, test_case: TestCase) -> None:
        """Save or update a test case (upsert behavior)."""
        ...

    async def delete(self, test_case_id: str) -> bool:
        """Delete a test case. Returns True if deleted, False if not found."""
        ...

    async def list(self, filter: TestCaseFilter | None = None) -> list[TestCase]:
        """List test cases matching the filter, newest first."""
        ...

    async def count(self, filter: TestCaseFilter | None = None) -> int:
        """Count test cases matching the filter (ignores pagination)."""
        ...


@runtime_checkable
class TestSuiteRepository(Protocol):
    """Repository for test suites."""

    async def get(self, test_suite_id: str) -> TestSuite | None:
        """Fetch a single test suite by ID."""
        ...

    async def save(self, test_suite: TestSuite) -> None:
        """Save or update a test suite (upsert behavior)."""
        ...

    async def delete(self, test_suite_id: str) -> bool:
        """Delete a test suite. Returns True if deleted, False if not found."""
        ...

    async def list(self, filter: TestSuiteFilter | None = None) -> list[TestSuite]:
        """List test suites matching the filter, newest first."""
        ...


@runtime_checkable
class TestResultRepository(Protocol):
    """
    Repository for test results.

    Results are append-only: saving an existing id is an error.
    """

    async def get(self, result_id: str) -> TestResult | None:
        """Fetch a single result by ID."""
        ...

    async def save(self, result: TestResult) -> None:
        """Append a result."""
        ...

    async def list_by_agent(
        self,
        agent_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TestResult]:
        """
        Results for an agent with `start <= start_time <= end`, newest first.

        Args:
            agent_id: Agent under test
            start: Inclusive lower bound on start_time
            end: Inclusive upper bound on start_time
            limit: Maximum results to return (None for all)
            offset: Number of results to skip
        """
        ...

    async def list_by_test_case(
        self,
        test_case_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TestResult]:
        """Results for a test case within the time range, newest first."""
        ...


@runtime_checkable
class TestRunRepository(Protocol):
    """Repository for test runs."""

    async def get(self, run_id: str) -> TestRun | None:
        """Fetch a single run by ID."""
        ...

    async def save(self, run: TestRun) -> None:
        """Save or update a run (upsert behavior)."""
        ...

    async def list(self, agent_id: str, filter: TestRunFilter | None = None) -> list[TestRun]:
        """List an agent's runs, newest first."""
        ...

    async def list_by_suite(
        self,
        test_suite_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TestRun]:
        """Runs of a suite started within the time range, newest first."""
        ...


@runtime_checkable
class ScheduleRepository(Protocol):
    """Repository for scheduled tests."""

    async def get(self, schedule_id: str) -> ScheduledTest | None:
        """Fetch a single schedule by ID."""
        ...

    async def save(self, schedule: ScheduledTest) -> None:
        """Save or update a schedule (upsert behavior)."""
        ...

    async def delete(self, schedule_id: str) -> bool:
        """Delete a schedule. Returns True if deleted, False if not found."""
        ...

    async def list(
        self,
        agent_id: str | None = None,
        status: ScheduleStatus | None = None,
    ) -> list[ScheduledTest]:
        """List schedules ordered by next run date ascending."""
        ...

    async def list_due(self, now: datetime) -> list[ScheduledTest]:
        """Schedules in `scheduled` status whose next run date is not after `now`."""
        ...
