"""
Storage Layer

Repository protocols and the in-memory backend.

Usage:
    from src.agenttest.storage import create_memory_repositories

    repos = create_memory_repositories()
    await repos.test_cases.save(test_case)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.agenttest.storage.memory import (
    InMemoryScheduleRepository,
    InMemoryTestCaseRepository,
    InMemoryTestResultRepository,
    InMemoryTestRunRepository,
    InMemoryTestSuiteRepository,
)
from src.agenttest.storage.protocols import (
    ScheduleRepository,
    TestCaseFilter,
    TestCaseRepository,
    TestResultRepository,
    TestRunFilter,
    TestRunRepository,
    TestSuiteFilter,
    TestSuiteRepository,
)


@dataclass
class Repositories:
    """The set of repositories the harness works against."""

    test_cases: TestCaseRepository = field(default_factory=InMemoryTestCaseRepository)
    test_suites: TestSuiteRepository = field(default_factory=InMemoryTestSuiteRepository)
    test_results: TestResultRepository = field(default_factory=InMemoryTestResultRepository)
    test_runs: TestRunRepository = field(default_factory=InMemoryTestRunRepository)
    schedules: ScheduleRepository = field(default_factory=InMemoryScheduleRepository)


def create_memory_repositories() -> Repositories:
    """Create a fresh set of in-memory repositories."""
    return Repositories()


__all__ = [
    # Protocols
    "ScheduleRepository",
    "TestCaseRepository",
    "TestResultRepository",
    "TestRunRepository",
    "TestSuiteRepository",
    # Filters
    "TestCaseFilter",
    "TestRunFilter",
    "TestSuiteFilter",
    # Memory backend
    "InMemoryScheduleRepository",
    "InMemoryTestCaseRepository",
    "InMemoryTestResultRepository",
    "InMemoryTestRunRepository",
    "InMemoryTestSuiteRepository",
    # Factory
    "Repositories",
    "create_memory_repositories",
]
