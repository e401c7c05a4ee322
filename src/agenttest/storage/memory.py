"""
In-Memory Repository Implementations

Simple dict-based storage for unit tests and the CLI.
Implements the same protocols as a persistent backend would.
"""

from __future__ import annotations

from datetime import datetime

from src.agenttest.contracts import (
    ScheduledTest,
    ScheduleStatus,
    TestCase,
    TestResult,
    TestRun,
    TestSuite,
)
from src.agenttest.exceptions import DuplicateEntityError
from src.agenttest.storage.protocols import TestCaseFilter, TestRunFilter, TestSuiteFilter


def _in_range(value: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


class InMemoryTestCaseRepository:
    """
    In-memory implementation of TestCaseRepository.

    Perfect for unit tests - no database required.
    """

    def __init__(self):
        self._store: dict[str, TestCase] = {}

    async def get(self, test_case_id: str) -> TestCase | None:
        """Fetch a single test case by ID."""
        return self._store.get(test_case_id)

    async def get_many(self, test_case_ids: list[str]) -> list[TestCase]:
        """Fetch multiple test cases by IDs."""
        return [self._store[tid] for tid in test_case_ids if tid in self._store]

    async def save(self, test_case: TestCase) -> None:
        """Save or update a test case."""
        self._store[test_case.id] = test_case

    async def delete(self, test_case_id: str) -> bool:
        """Delete a test case. Returns True if deleted."""
        if test_case_id in self._store:
            del self._store[test_case_id]
            return True
        return False

    def _matching(self, filter: TestCaseFilter) -> list[TestCase]:
        results = list(self._store.values())

        if filter.type is not None:
            results = [tc for tc in results if tc.type == filter.type]

        if filter.priority is not None:
            results = [tc for tc in results if tc.priority == filter.priority]

        if filter.tags:
            tag_set = set(filter.tags)
            results = [tc for tc in results if tag_set <= set(tc.tags)]

        if filter.is_template is not None:
            results = [tc for tc in results if tc.is_template == filter.is_template]

        if filter.created_by is not None:
            results = [tc for tc in results if tc.created_by == filter.created_by]

        return results

    async def list(self, filter: TestCaseFilter | None = None) -> list[TestCase]:
        """List test cases with optional filters."""
        filter = filter or TestCaseFilter()
        results = self._matching(filter)

        # Sort by created_at descending (newest first)
        results.sort(key=lambda tc: tc.created_at, reverse=True)

        # Apply pagination
        return results[filter.offset : filter.offset + filter.limit]

    async def count(self, filter: TestCaseFilter | None = None) -> int:
        """Count test cases matching filters."""
        return len(self._matching(filter or TestCaseFilter()))

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._store.clear()


class InMemoryTestSuiteRepository:
    """In-memory implementation of TestSuiteRepository."""

    def __init__(self):
        self._store: dict[str, TestSuite] = {}

    async def get(self, test_suite_id: str) -> TestSuite | None:
        return self._store.get(test_suite_id)

    async def save(self, test_suite: TestSuite) -> None:
        self._store[test_suite.id] = test_suite

    async def delete(self, test_suite_id: str) -> bool:
        if test_suite_id in self._store:
            del self._store[test_suite_id]
            return True
        return False

    async def list(self, filter: TestSuiteFilter | None = None) -> list[TestSuite]:
        """List test suites with optional filters."""
        filter = filter or TestSuiteFilter()
        results = list(self._store.values())

        if filter.category is not None:
            results = [s for s in results if s.category == filter.category]

        if filter.tags:
            tag_set = set(filter.tags)
            results = [s for s in results if tag_set <= set(s.tags)]

        if filter.is_public is not None:
            results = [s for s in results if s.is_public == filter.is_public]

        if filter.created_by is not None:
            results = [s for s in results if s.created_by == filter.created_by]

        results.sort(key=lambda s: s.created_at, reverse=True)
        return results[filter.offset : filter.offset + filter.limit]

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._store.clear()


class InMemoryTestResultRepository:
    """In-memory implementation of TestResultRepository (append-only)."""

    def __init__(self):
        self._store: dict[str, TestResult] = {}

    async def get(self, result_id: str) -> TestResult | None:
        return self._store.get(result_id)

    async def save(self, result: TestResult) -> None:
        """Append a result. Results are immutable once stored."""
        if result.id in self._store:
            raise DuplicateEntityError("TestResult", result.id)
        self._store[result.id] = result

    async def list_by_agent(
        self,
        agent_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TestResult]:
        results = [
            r
            for r in self._store.values()
            if r.agent_id == agent_id and _in_range(r.start_time, start, end)
        ]
        results.sort(key=lambda r: r.start_time, reverse=True)
        if limit is None:
            return results[offset:]
        return results[offset : offset + limit]

    async def list_by_test_case(
        self,
        test_case_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TestResult]:
        results = [
            r
            for r in self._store.values()
            if r.test_case_id == test_case_id and _in_range(r.start_time, start, end)
        ]
        results.sort(key=lambda r: r.start_time, reverse=True)
        return results

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._store.clear()


class InMemoryTestRunRepository:
    """In-memory implementation of TestRunRepository."""

    def __init__(self):
        self._store: dict[str, TestRun] = {}

    async def get(self, run_id: str) -> TestRun | None:
        return self._store.get(run_id)

    async def save(self, run: TestRun) -> None:
        self._store[run.id] = run

    async def list(self, agent_id: str, filter: TestRunFilter | None = None) -> list[TestRun]:
        """List an agent's runs with optional filters."""
        filter = filter or TestRunFilter()
        results = [r for r in self._store.values() if r.agent_id == agent_id]

        if filter.status is not None:
            results = [r for r in results if r.status == filter.status]

        if filter.test_suite_id is not None:
            results = [r for r in results if r.test_suite_id == filter.test_suite_id]

        results.sort(key=lambda r: r.start_time, reverse=True)
        return results[filter.offset : filter.offset + filter.limit]

    async def list_by_suite(
        self,
        test_suite_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TestRun]:
        results = [
            r
            for r in self._store.values()
            if r.test_suite_id == test_suite_id and _in_range(r.start_time, start, end)
        ]
        results.sort(key=lambda r: r.start_time, reverse=True)
        return results

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._store.clear()


class InMemoryScheduleRepository:
    """In-memory implementation of ScheduleRepository."""

    def __init__(self):
        self._store: dict[str, ScheduledTest] = {}

    async def get(self, schedule_id: str) -> ScheduledTest | None:
        return self._store.get(schedule_id)

    async def save(self, schedule: ScheduledTest) -> None:
        self._store[schedule.id] = schedule

    async def delete(self, schedule_id: str) -> bool:
        if schedule_id in self._store:
            del self._store[schedule_id]
            return True
        return False

    async def list(
        self,
        agent_id: str | None = None,
        status: ScheduleStatus | None = None,
    ) -> list[ScheduledTest]:
        results = list(self._store.values())

        if agent_id is not None:
            results = [s for s in results if s.agent_id == agent_id]

        if status is not None:
            results = [s for s in results if s.status == status]

        results.sort(key=lambda s: s.next_run_date)
        return results

    async def list_due(self, now: datetime) -> list[ScheduledTest]:
        due = [s for s in self._store.values() if s.is_due(now)]
        due.sort(key=lambda s: s.next_run_date)
        return due

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._store.clear()
