"""
Suite Runner

Executes every position of a test suite against an agent, sequentially or
through a bounded worker pool, and aggregates the results into a TestRun.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from src.agenttest.common.telemetry import get_harness_metrics, get_tracer
from src.agenttest.contracts import (
    RunSummary,
    SuiteConfig,
    TestCase,
    TestResult,
    TestResultStatus,
    TestRun,
    TestRunStatus,
    TestSuite,
    _now_utc,
)
from src.agenttest.execution.config import ExecutionOptions, SuiteRunnerConfig
from src.agenttest.execution.executor import TestExecutor, error_type_of
from src.agenttest.storage import TestCaseRepository, TestResultRepository, TestRunRepository

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

ProgressCallback = Callable[[int, int], None]


class RunCancellation:
    """
    Cooperative cancellation token for a suite run.

    Calling `cancel()` stops new positions from starting and cancels any
    executions in flight. Results that already completed are kept.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for callback in list(self._callbacks):
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)
        if self._cancelled:
            callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)


def skipped_result(
    agent_id: str,
    test_case_id: str,
    reason: str,
    error_type: str,
    test_case: TestCase | None = None,
) -> TestResult:
    """Result for a position that was never executed."""
    now = _now_utc()
    return TestResult(
        test_case_id=test_case_id,
        agent_id=agent_id,
        status=TestResultStatus.SKIPPED,
        test_case_name=test_case.name if test_case else None,
        test_case_type=test_case.type if test_case else None,
        start_time=now,
        end_time=now,
        duration_ms=0.0,
        error=reason,
        error_type=error_type,
        attempts=0,
    )


class SuiteRunner:
    """
    Runs test suites.

    Sequential by default; suites with `parallel_execution` run through a
    pool of `max_concurrency` workers. Result aggregation does not depend on
    completion order.
    """

    def __init__(
        self,
        executor: TestExecutor,
        test_case_repo: TestCaseRepository,
        result_repo: TestResultRepository | None = None,
        run_repo: TestRunRepository | None = None,
        config: SuiteRunnerConfig | None = None,
    ):
        self.executor = executor
        self.test_case_repo = test_case_repo
        self.result_repo = result_repo
        self.run_repo = run_repo
        self.config = config or SuiteRunnerConfig()
        self._metrics = get_harness_metrics()

    async def run(
        self,
        agent_id: str,
        suite: TestSuite,
        cancellation: RunCancellation | None = None,
        progress_callback: ProgressCallback | None = None,
        run_id: str | None = None,
        created_by: str | None = None,
        scheduled_by: str | None = None,
        config: SuiteConfig | None = None,
    ) -> TestRun:
        """
        Run every position of a suite.

        Args:
            agent_id: Agent under test
            suite: Suite to run
            cancellation: Token to abort the run
            progress_callback: Called with (completed, total) after each position
            run_id: Pre-allocated run id (so callers can cancel by id)
            created_by: User that started the run
            scheduled_by: Schedule that started the run
            config: Replaces the suite's own config for this run

        Returns:
            The finished TestRun

        Raises:
            TestConfigurationError: If any test case is misconfigured. Raised
                before any agent invocation.
        """
        cancellation = cancellation or RunCancellation()
        if config is not None:
            suite = suite.model_copy(update={"config": config})
        positions = list(suite.test_case_ids)
        found = await self.test_case_repo.get_many(list(dict.fromkeys(positions)))
        cases = {tc.id: tc for tc in found}

        options = ExecutionOptions(
            timeout_ms=suite.config.default_timeout_ms,
            retry_count=suite.config.max_retries,
            retry_delay_ms=suite.config.retry_delay_ms,
        )
        for test_case in cases.values():
            self.executor.preflight(test_case, options)

        run_fields = {
            "agent_id": agent_id,
            "test_suite_id": suite.id,
            "name": suite.name,
            "test_case_ids": tuple(positions),
            "status": TestRunStatus.RUNNING,
            "start_time": _now_utc(),
            "created_by": created_by,
            "scheduled_by": scheduled_by,
        }
        if run_id:
            run_fields["id"] = run_id
        run = TestRun(**run_fields)
        await self._save_run(run)

        logger.info(
            f"Starting run {run.id}: suite {suite.id} ({len(positions)} positions) "
            f"on agent {agent_id}, parallel={suite.config.parallel_execution}"
        )

        with tracer.start_as_current_span("agenttest.run_suite") as span:
            span.set_attribute("agent.id", agent_id)
            span.set_attribute("suite.id", suite.id)
            span.set_attribute("suite.positions", len(positions))

            state = _RunState(total=len(positions))
            try:
                if positions:
                    if suite.config.parallel_execution:
                        await self._run_parallel(
                            agent_id, positions, cases, options, suite, cancellation, state,
                            progress_callback,
                        )
                    else:
                        await self._run_sequential(
                            agent_id, positions, cases, options, suite, cancellation, state,
                            progress_callback,
                        )
            except asyncio.CancelledError:
                # The calling task was cancelled; do not leave the stored run RUNNING
                cancellation.cancel()
                executions = self._fill_unexecuted(
                    agent_id, positions, cases, cancellation, state
                )
                await self._save_run(self._finish(run, executions, cancelled=True))
                logger.info(f"Run {run.id} cancelled by its caller")
                raise

            executions = self._fill_unexecuted(agent_id, positions, cases, cancellation, state)
            for index, result in enumerate(executions):
                if state.executions[index] is None:
                    await self._save_result(result)

            run = self._finish(run, executions, cancellation.cancelled)
            span.set_attribute("run.status", run.status.value)

        await self._save_run(run)
        self._metrics.record_run(run)
        logger.info(
            f"Run {run.id} {run.status.value}: {run.summary.passed}/{run.summary.total} passed, "
            f"{run.summary.failed} failed, {run.summary.error} errors, "
            f"{run.summary.skipped} skipped"
        )
        return run

    async def _execute_position(
        self,
        agent_id: str,
        test_case_id: str,
        cases: dict[str, TestCase],
        options: ExecutionOptions,
    ) -> TestResult:
        test_case = cases.get(test_case_id)
        if test_case is None:
            logger.warning(f"Test case {test_case_id} not found, skipping")
            return skipped_result(agent_id, test_case_id, "Test case not found", "not_found")
        return await self.executor.execute(agent_id, test_case, options)

    async def _record(
        self,
        state: _RunState,
        index: int,
        result: TestResult,
        suite: TestSuite,
        progress_callback: ProgressCallback | None,
    ) -> None:
        if suite.config.stop_on_failure and result.is_failure:
            if not state.stopped:
                logger.info(f"Stopping suite {suite.id} after failure of {result.test_case_id}")
            state.stopped = True
        # A position only counts as executed once its result is stored
        await self._save_result(result)
        state.executions[index] = result
        state.completed += 1
        if progress_callback:
            progress_callback(state.completed, state.total)

    async def _run_sequential(
        self,
        agent_id: str,
        positions: list[str],
        cases: dict[str, TestCase],
        options: ExecutionOptions,
        suite: TestSuite,
        cancellation: RunCancellation,
        state: _RunState,
        progress_callback: ProgressCallback | None,
    ) -> None:
        in_flight: set[asyncio.Task] = set()

        def cancel_in_flight() -> None:
            for task in in_flight:
                task.cancel()

        cancellation.add_callback(cancel_in_flight)
        try:
            for index, test_case_id in enumerate(positions):
                if cancellation.cancelled or state.stopped:
                    break
                task = asyncio.create_task(
                    self._execute_position(agent_id, test_case_id, cases, options)
                )
                in_flight.add(task)
                try:
                    await asyncio.wait({task})
                except asyncio.CancelledError:
                    task.cancel()
                    raise
                finally:
                    in_flight.discard(task)

                if task.cancelled():
                    break
                await self._record(
                    state, index, self._task_result(agent_id, test_case_id, task),
                    suite, progress_callback,
                )
        finally:
            cancellation.remove_callback(cancel_in_flight)

    async def _run_parallel(
        self,
        agent_id: str,
        positions: list[str],
        cases: dict[str, TestCase],
        options: ExecutionOptions,
        suite: TestSuite,
        cancellation: RunCancellation,
        state: _RunState,
        progress_callback: ProgressCallback | None,
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        lock = asyncio.Lock()

        async def worker(index: int, test_case_id: str) -> None:
            async with semaphore:
                if cancellation.cancelled or state.stopped:
                    return
                try:
                    result = await self._execute_position(agent_id, test_case_id, cases, options)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    result = self._unexpected_error(agent_id, test_case_id, e)
                async with lock:
                    await self._record(state, index, result, suite, progress_callback)

        tasks = [
            asyncio.create_task(worker(index, test_case_id))
            for index, test_case_id in enumerate(positions)
        ]

        def cancel_all() -> None:
            for task in tasks:
                task.cancel()

        cancellation.add_callback(cancel_all)
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            cancel_all()
            raise
        finally:
            cancellation.remove_callback(cancel_all)

    def _task_result(self, agent_id: str, test_case_id: str, task: asyncio.Task) -> TestResult:
        error = task.exception()
        if error is not None:
            return self._unexpected_error(agent_id, test_case_id, error)
        return task.result()

    @staticmethod
    def _unexpected_error(agent_id: str, test_case_id: str, error: BaseException) -> TestResult:
        logger.error(f"Unexpected error executing {test_case_id} on agent {agent_id}: {error}")
        now = _now_utc()
        return TestResult(
            test_case_id=test_case_id,
            agent_id=agent_id,
            status=TestResultStatus.ERROR,
            start_time=now,
            end_time=now,
            error=str(error) or type(error).__name__,
            error_type=error_type_of(error),
            attempts=0,
        )

    @staticmethod
    def _fill_unexecuted(
        agent_id: str,
        positions: list[str],
        cases: dict[str, TestCase],
        cancellation: RunCancellation,
        state: _RunState,
    ) -> list[TestResult]:
        if cancellation.cancelled:
            reason, error_type = "Run was cancelled", "cancelled"
        else:
            reason, error_type = "Skipped after an earlier failure", "stopped"

        executions: list[TestResult] = []
        for index, test_case_id in enumerate(positions):
            result = state.executions[index]
            if result is None:
                result = skipped_result(
                    agent_id, test_case_id, reason, error_type, cases.get(test_case_id)
                )
            executions.append(result)
        return executions

    @staticmethod
    def _finish(run: TestRun, executions: list[TestResult], cancelled: bool) -> TestRun:
        summary = RunSummary.from_results(executions)
        if cancelled:
            status = TestRunStatus.CANCELLED
        elif summary.total > 0 and summary.error == summary.total:
            status = TestRunStatus.FAILED
        else:
            status = TestRunStatus.COMPLETED

        end_time = _now_utc()
        return run.model_copy(
            update={
                "status": status,
                "end_time": end_time,
                "duration_ms": max((end_time - run.start_time).total_seconds() * 1000, 0.0),
                "results": {r.test_case_id: r for r in executions},
                "executions": tuple(executions),
                "summary": summary,
            }
        )

    async def _save_result(self, result: TestResult) -> None:
        if self.result_repo is not None and self.config.persist_results:
            await self.result_repo.save(result)

    async def _save_run(self, run: TestRun) -> None:
        if self.run_repo is not None and self.config.persist_results:
            await self.run_repo.save(run)


class _RunState:
    """Mutable bookkeeping for one run."""

    def __init__(self, total: int):
        self.total = total
        self.completed = 0
        self.stopped = False
        self.executions: list[TestResult | None] = [None] * total
