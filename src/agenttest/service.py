"""
Testing Service

Query surface over the harness: test case and suite management, execution,
run control, analytics and scheduling.

Usage:
    service = TestingService(invoker=HttpAgentInvoker("http://localhost:8080"))
    case = await service.create_test_case(TestCase(name="Greets", ...))
    result = await service.execute_test("agent-1", case.id)
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from src.agenttest.agents import EchoAgentInvoker, HttpAgentInvoker
from src.agenttest.analytics import AnalyticsAggregator, AnalyticsConfig
from src.agenttest.config import HarnessSettings
from src.agenttest.contracts import (
    AgentInvoker,
    Notification,
    NotificationSeverity,
    Notifier,
    ScheduledTest,
    ScheduleItemType,
    SuiteConfig,
    TestAnalytics,
    TestCase,
    TestCaseAnalytics,
    TestResult,
    TestResultStatus,
    TestRun,
    TestRunStatus,
    TestSuite,
    TestSuiteAnalytics,
    _generate_id,
    _now_utc,
)
from src.agenttest.exceptions import DuplicateEntityError, EntityNotFoundError
from src.agenttest.execution import (
    ExecutionOptions,
    ExecutorConfig,
    RunCancellation,
    SuiteRunner,
    SuiteRunnerConfig,
    TestExecutor,
)
from src.agenttest.execution.suite_runner import ProgressCallback
from src.agenttest.notifications import LoggingNotifier, WebhookNotifier
from src.agenttest.scheduling import SchedulerConfig, TestScheduler
from src.agenttest.storage import (
    Repositories,
    TestCaseFilter,
    TestRunFilter,
    TestSuiteFilter,
    create_memory_repositories,
)
from src.agenttest.templates import (
    TemplateCustomizations,
    create_test_case_from_template,
    get_template_by_id,
    get_template_by_name,
)
from src.agenttest.validation import PredicateRegistry, check_test_case

logger = logging.getLogger(__name__)

_RESULT_SEVERITY = {
    TestResultStatus.PASSED: NotificationSeverity.SUCCESS,
    TestResultStatus.FAILED: NotificationSeverity.WARNING,
    TestResultStatus.ERROR: NotificationSeverity.ERROR,
    TestResultStatus.SKIPPED: NotificationSeverity.INFO,
}


class TestingService:
    """Entry point for callers (CLI, UI, scheduler)."""

    __test__ = False

    def __init__(
        self,
        invoker: AgentInvoker,
        repositories: Repositories | None = None,
        notifier: Notifier | None = None,
        executor_config: ExecutorConfig | None = None,
        runner_config: SuiteRunnerConfig | None = None,
        analytics_config: AnalyticsConfig | None = None,
        registry: PredicateRegistry | None = None,
    ):
        self.repos = repositories or create_memory_repositories()
        self.notifier = notifier
        self.registry = registry
        self.executor = TestExecutor(invoker, executor_config, registry)
        self.suite_runner = SuiteRunner(
            self.executor,
            self.repos.test_cases,
            result_repo=self.repos.test_results,
            run_repo=self.repos.test_runs,
            config=runner_config,
        )
        self.analytics = AnalyticsAggregator(
            self.repos.test_results, self.repos.test_runs, analytics_config
        )
        self._active_runs: dict[str, RunCancellation] = {}

    @classmethod
    def from_settings(
        cls,
        settings: HarnessSettings | None = None,
        repositories: Repositories | None = None,
    ) -> TestingService:
        """Build a service from environment settings."""
        settings = settings or HarnessSettings()

        invoker: AgentInvoker
        if settings.agent_base_url:
            invoker = HttpAgentInvoker(settings.agent_base_url, api_key=settings.agent_api_key)
        else:
            logger.info("No agent endpoint configured, using the echo agent")
            invoker = EchoAgentInvoker()

        notifier: Notifier | None = None
        if settings.notifier == "webhook" and settings.webhook_url:
            notifier = WebhookNotifier(settings.webhook_url)
        elif settings.notifier != "none":
            notifier = LoggingNotifier()

        return cls(
            invoker,
            repositories=repositories,
            notifier=notifier,
            executor_config=settings.executor_config(),
            runner_config=settings.suite_runner_config(),
            analytics_config=settings.analytics_config(),
        )

    # =========================================================================
    # Test Cases
    # =========================================================================

    async def create_test_case(self, test_case: TestCase) -> TestCase:
        """
        Store a new test case.

        Raises:
            DuplicateEntityError: If the id is taken
            TestConfigurationError: If a validation rule is misconfigured
        """
        if await self.repos.test_cases.get(test_case.id) is not None:
            raise DuplicateEntityError("TestCase", test_case.id)
        check_test_case(test_case, self.registry)
        await self.repos.test_cases.save(test_case)
        logger.info(f"Created test case {test_case.id} ({test_case.name})")
        return test_case

    async def update_test_case(self, test_case_id: str, **updates: Any) -> TestCase:
        """
        Apply field updates to a test case.

        Raises:
            EntityNotFoundError: If the test case does not exist
        """
        existing = await self._require_test_case(test_case_id)
        data = existing.model_dump()
        data.update(updates)
        data["id"] = existing.id
        data["created_at"] = existing.created_at
        data["updated_at"] = _now_utc()
        updated = TestCase.model_validate(data)
        check_test_case(updated, self.registry)
        await self.repos.test_cases.save(updated)
        return updated

    async def get_test_case(self, test_case_id: str) -> TestCase | None:
        return await self.repos.test_cases.get(test_case_id)

    async def delete_test_case(self, test_case_id: str) -> None:
        if not await self.repos.test_cases.delete(test_case_id):
            raise EntityNotFoundError("TestCase", test_case_id)
        logger.info(f"Deleted test case {test_case_id}")

    async def list_test_cases(self, filter: TestCaseFilter | None = None) -> list[TestCase]:
        return await self.repos.test_cases.list(filter)

    async def create_test_case_from_template(
        self,
        template_id: str,
        customizations: TemplateCustomizations | None = None,
    ) -> TestCase:
        """
        Derive and store a test case from a template.

        `template_id` may name a built-in template (by id or name) or a stored
        test case marked as a template.

        Raises:
            EntityNotFoundError: If no such template exists
        """
        template = get_template_by_id(template_id) or get_template_by_name(template_id)
        if template is None:
            stored = await self.repos.test_cases.get(template_id)
            if stored is not None and stored.is_template:
                template = stored
        if template is None:
            raise EntityNotFoundError("Template", template_id)

        return await self.create_test_case(create_test_case_from_template(template, customizations))

    # =========================================================================
    # Test Suites
    # =========================================================================

    async def create_test_suite(self, suite: TestSuite) -> TestSuite:
        if await self.repos.test_suites.get(suite.id) is not None:
            raise DuplicateEntityError("TestSuite", suite.id)
        await self.repos.test_suites.save(suite)
        logger.info(f"Created test suite {suite.id} ({suite.name})")
        return suite

    async def get_test_suite(self, test_suite_id: str) -> TestSuite | None:
        return await self.repos.test_suites.get(test_suite_id)

    async def update_test_suite(self, test_suite_id: str, **updates: Any) -> TestSuite:
        existing = await self._require_test_suite(test_suite_id)
        data = existing.model_dump()
        data.update(updates)
        data["id"] = existing.id
        data["created_at"] = existing.created_at
        data["updated_at"] = _now_utc()
        updated = TestSuite.model_validate(data)
        await self.repos.test_suites.save(updated)
        return updated

    async def delete_test_suite(self, test_suite_id: str) -> None:
        if not await self.repos.test_suites.delete(test_suite_id):
            raise EntityNotFoundError("TestSuite", test_suite_id)

    async def list_test_suites(self, filter: TestSuiteFilter | None = None) -> list[TestSuite]:
        return await self.repos.test_suites.list(filter)

    async def add_test_cases_to_suite(
        self, test_suite_id: str, test_case_ids: list[str]
    ) -> TestSuite:
        """Append test cases not already in the suite."""
        suite = await self._require_test_suite(test_suite_id)
        ids = list(suite.test_case_ids)
        for test_case_id in test_case_ids:
            if test_case_id not in ids:
                ids.append(test_case_id)
        return await self.update_test_suite(test_suite_id, test_case_ids=tuple(ids))

    async def remove_test_cases_from_suite(
        self, test_suite_id: str, test_case_ids: list[str]
    ) -> TestSuite:
        """Remove every position holding one of the given test cases."""
        suite = await self._require_test_suite(test_suite_id)
        removed = set(test_case_ids)
        ids = tuple(tid for tid in suite.test_case_ids if tid not in removed)
        return await self.update_test_suite(test_suite_id, test_case_ids=ids)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_test(
        self,
        agent_id: str,
        test_case_id: str,
        options: ExecutionOptions | None = None,
        *,
        notify: bool = True,
    ) -> TestResult:
        """
        Execute one test case and store the result.

        Raises:
            EntityNotFoundError: If the test case does not exist
            TestConfigurationError: If the test case is misconfigured
        """
        test_case = await self._require_test_case(test_case_id)
        result = await self.executor.execute(agent_id, test_case, options)
        await self.repos.test_results.save(result)

        if notify:
            await self._notify(
                Notification(
                    title=f"Test {result.status.value}",
                    message=f"{test_case.name} on agent {agent_id}: {result.status.value}"
                    + (f" ({result.error})" if result.error else ""),
                    severity=_RESULT_SEVERITY[result.status],
                    metadata={
                        "agent_id": agent_id,
                        "test_case_id": test_case_id,
                        "result_id": result.id,
                    },
                )
            )
        return result

    async def execute_test_suite(
        self,
        agent_id: str,
        test_suite_id: str,
        *,
        cancellation: RunCancellation | None = None,
        progress_callback: ProgressCallback | None = None,
        created_by: str | None = None,
        scheduled_by: str | None = None,
        notify: bool = True,
        run_id: str | None = None,
        config: SuiteConfig | None = None,
    ) -> TestRun:
        """
        Run a test suite. The run can be cancelled by id while in progress.

        `config` replaces the suite's stored config for this run only.

        Raises:
            EntityNotFoundError: If the suite does not exist
            TestConfigurationError: If any of its test cases is misconfigured
        """
        suite = await self._require_test_suite(test_suite_id)
        run_id = run_id or _generate_id()
        cancellation = cancellation or RunCancellation()
        self._active_runs[run_id] = cancellation
        try:
            run = await self.suite_runner.run(
                agent_id,
                suite,
                cancellation=cancellation,
                progress_callback=progress_callback,
                run_id=run_id,
                created_by=created_by,
                scheduled_by=scheduled_by,
                config=config,
            )
        finally:
            self._active_runs.pop(run_id, None)

        if notify:
            severity = NotificationSeverity.SUCCESS
            if run.status in (TestRunStatus.FAILED, TestRunStatus.CANCELLED):
                severity = NotificationSeverity.ERROR
            elif run.summary.failed or run.summary.error:
                severity = NotificationSeverity.WARNING
            await self._notify(
                Notification(
                    title=f"Test suite run {run.status.value}",
                    message=f"{suite.name} on agent {agent_id}: "
                    f"{run.summary.passed}/{run.summary.total} passed "
                    f"({run.summary.success_rate:.1f}%)",
                    severity=severity,
                    metadata={
                        "agent_id": agent_id,
                        "test_suite_id": suite.id,
                        "run_id": run.id,
                    },
                )
            )
        return run

    async def cancel_test_run(self, run_id: str) -> bool:
        """
        Cancel an in-progress run.

        Returns:
            True if the run was in progress, False if it had already finished

        Raises:
            EntityNotFoundError: If the run is unknown
        """
        cancellation = self._active_runs.get(run_id)
        if cancellation is not None:
            logger.info(f"Cancelling run {run_id}")
            cancellation.cancel()
            return True
        if await self.repos.test_runs.get(run_id) is None:
            raise EntityNotFoundError("TestRun", run_id)
        return False

    async def get_test_run(self, run_id: str) -> TestRun | None:
        return await self.repos.test_runs.get(run_id)

    async def get_test_result(self, result_id: str) -> TestResult | None:
        return await self.repos.test_results.get(result_id)

    async def list_test_runs(
        self, agent_id: str, filter: TestRunFilter | None = None
    ) -> list[TestRun]:
        return await self.repos.test_runs.list(agent_id, filter)

    # =========================================================================
    # Analytics
    # =========================================================================

    async def get_agent_test_analytics(
        self,
        agent_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestAnalytics:
        return await self.analytics.aggregate(agent_id, window_days, now)

    async def get_test_case_analytics(
        self,
        test_case_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestCaseAnalytics:
        return await self.analytics.test_case_analytics(test_case_id, window_days, now)

    async def get_test_suite_analytics(
        self,
        test_suite_id: str,
        window_days: int | None = None,
        now: dt.datetime | None = None,
    ) -> TestSuiteAnalytics:
        return await self.analytics.test_suite_analytics(test_suite_id, window_days, now)

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def schedule_test(self, schedule: ScheduledTest) -> ScheduledTest:
        """
        Store a schedule.

        Raises:
            EntityNotFoundError: If the scheduled test case or suite does not exist
        """
        if schedule.type == ScheduleItemType.TEST_CASE:
            await self._require_test_case(schedule.item_id)
        else:
            await self._require_test_suite(schedule.item_id)
        await self.repos.schedules.save(schedule)
        logger.info(
            f"Scheduled {schedule.type.value} {schedule.item_id} on agent {schedule.agent_id} "
            f"({schedule.frequency.value}, next {schedule.next_run_date.isoformat()})"
        )
        return schedule

    async def get_scheduled_tests(self, agent_id: str | None = None) -> list[ScheduledTest]:
        return await self.repos.schedules.list(agent_id=agent_id)

    async def get_schedule(self, schedule_id: str) -> ScheduledTest | None:
        return await self.repos.schedules.get(schedule_id)

    async def delete_schedule(self, schedule_id: str) -> None:
        if not await self.repos.schedules.delete(schedule_id):
            raise EntityNotFoundError("ScheduledTest", schedule_id)
        logger.info(f"Deleted schedule {schedule_id}")

    def create_scheduler(self, config: SchedulerConfig | None = None, **kwargs: Any) -> TestScheduler:
        """Scheduler that fires this service's schedules."""
        return TestScheduler(
            config or SchedulerConfig(),
            self.repos.schedules,
            self,
            self.notifier,
            **kwargs,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_test_case(self, test_case_id: str) -> TestCase:
        test_case = await self.repos.test_cases.get(test_case_id)
        if test_case is None:
            raise EntityNotFoundError("TestCase", test_case_id)
        return test_case

    async def _require_test_suite(self, test_suite_id: str) -> TestSuite:
        suite = await self.repos.test_suites.get(test_suite_id)
        if suite is None:
            raise EntityNotFoundError("TestSuite", test_suite_id)
        return suite

    async def _notify(self, notification: Notification) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(notification)
        except Exception as e:
            logger.warning(f"Failed to send notification '{notification.title}': {e}")
