"""
Test Scheduler

Fires scheduled test cases and suites when they come due. A polling loop
finds due schedules and enqueues them; a fixed pool of worker tasks fires
them. A schedule is never fired twice concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from src.agenttest.common.telemetry import get_harness_metrics
from src.agenttest.contracts import (
    Notification,
    NotificationSeverity,
    Notifier,
    ScheduledTest,
    ScheduleItemType,
    ScheduleStatus,
    TestResult,
    TestResultStatus,
    TestRun,
    TestRunStatus,
    _now_utc,
)
from src.agenttest.exceptions import ScheduleFiringError
from src.agenttest.scheduling.config import SchedulerConfig
from src.agenttest.scheduling.frequency import advance_next_run
from src.agenttest.storage import ScheduleRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class ScheduleRunner(Protocol):
    """What the scheduler needs to fire a schedule (TestingService provides it)."""

    async def execute_test(
        self,
        agent_id: str,
        test_case_id: str,
        options: Any = None,
        *,
        notify: bool = True,
    ) -> TestResult: ...

    async def execute_test_suite(
        self,
        agent_id: str,
        test_suite_id: str,
        *,
        scheduled_by: str | None = None,
        notify: bool = True,
    ) -> TestRun: ...


def run_outcome(run: TestRun) -> TestResultStatus:
    """Collapse a suite run into a single outcome for the schedule."""
    if run.status == TestRunStatus.FAILED:
        return TestResultStatus.ERROR
    if run.summary.failed or run.summary.error:
        return TestResultStatus.FAILED
    if run.status == TestRunStatus.CANCELLED:
        return TestResultStatus.SKIPPED
    return TestResultStatus.PASSED


class TestScheduler:
    """
    Manages scheduled test executions.

    Usage:
        scheduler = TestScheduler(config, schedule_repo, service, notifier)
        task = asyncio.create_task(scheduler.start())
        ...
        scheduler.stop()
        await task
    """

    __test__ = False

    def __init__(
        self,
        config: SchedulerConfig,
        schedule_repo: ScheduleRepository,
        runner: ScheduleRunner,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = _now_utc,
    ):
        self.config = config
        self.schedule_repo = schedule_repo
        self.runner = runner
        self.notifier = notifier
        self._clock = clock
        self._metrics = get_harness_metrics()

        # State
        self._running = False
        self._queue: asyncio.Queue[tuple[str, datetime]] = asyncio.Queue()
        self._in_flight: set[str] = set()
        self._workers: list[asyncio.Task] = []

    async def start(self) -> None:
        """
        Start the scheduler loop.

        Runs until stop() is called, then waits for queued firings to finish.
        """
        self._running = True
        self._start_workers()
        logger.info(
            f"Starting test scheduler (poll every {self.config.poll_interval_seconds}s, "
            f"{self.config.max_concurrent_firings} workers)"
        )

        try:
            while self._running:
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Error checking schedules: {e}")

                await asyncio.sleep(self.config.poll_interval_seconds)
        finally:
            await self.drain()
            await self.close()

    def stop(self) -> None:
        """Stop the scheduler loop after the current poll."""
        logger.info("Stopping test scheduler")
        self._running = False

    async def tick(self, now: datetime | None = None) -> list[str]:
        """
        Enqueue every due schedule that is not already in flight.

        Returns:
            IDs of the schedules enqueued
        """
        self._start_workers()
        now = now or self._clock()
        enqueued = []
        for schedule in await self.schedule_repo.list_due(now):
            if schedule.id in self._in_flight:
                continue
            self._in_flight.add(schedule.id)
            await self._queue.put((schedule.id, now))
            enqueued.append(schedule.id)

        if enqueued:
            logger.debug(f"Enqueued {len(enqueued)} due schedule(s)")
        return enqueued

    async def drain(self) -> None:
        """Wait until every enqueued firing has finished."""
        if self._workers:
            await self._queue.join()

    async def close(self) -> None:
        """Cancel the worker tasks."""
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def trigger(self, schedule_id: str) -> ScheduledTest | None:
        """
        Fire a schedule immediately.

        A manual firing of a recurring schedule that is not yet due keeps its
        next run date.

        Returns:
            Updated schedule, or None if not found or already firing
        """
        if schedule_id in self._in_flight:
            logger.warning(f"Schedule {schedule_id} is already firing")
            return None

        # Claim before the first await so a concurrent tick cannot enqueue it
        self._in_flight.add(schedule_id)
        try:
            schedule = await self.schedule_repo.get(schedule_id)
            if schedule is None:
                logger.warning(f"Schedule not found: {schedule_id}")
                return None
            return await self._fire(schedule, manual=True)
        finally:
            self._in_flight.discard(schedule_id)

    def get_status(self) -> dict[str, Any]:
        """Current scheduler status."""
        return {
            "running": self._running,
            "poll_interval_seconds": self.config.poll_interval_seconds,
            "workers": len(self._workers),
            "queued": self._queue.qsize(),
            "in_flight": sorted(self._in_flight),
        }

    # =========================================================================
    # Workers
    # =========================================================================

    def _start_workers(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index))
            for index in range(self.config.max_concurrent_firings)
        ]

    async def _worker(self, index: int) -> None:
        while True:
            schedule_id, due_at = await self._queue.get()
            try:
                schedule = await self.schedule_repo.get(schedule_id)
                if schedule is None:
                    logger.info(f"Schedule {schedule_id} was deleted before firing")
                elif schedule.status == ScheduleStatus.SCHEDULED:
                    await self._fire(schedule, fired_at=due_at)
            except Exception as e:
                logger.error(f"Worker {index} failed firing schedule {schedule_id}: {e}")
            finally:
                self._in_flight.discard(schedule_id)
                self._queue.task_done()

    # =========================================================================
    # Firing
    # =========================================================================

    async def _fire(
        self,
        schedule: ScheduledTest,
        manual: bool = False,
        fired_at: datetime | None = None,
    ) -> ScheduledTest:
        """Run the schedule's target and move the schedule to its next state."""
        fired_at = fired_at or self._clock()
        logger.info(
            f"Firing schedule {schedule.id}: {schedule.type.value} {schedule.item_id} "
            f"on agent {schedule.agent_id}"
        )

        try:
            outcome = await self._run_target(schedule)
        except Exception as e:
            error = ScheduleFiringError(schedule.id, str(e))
            logger.error(str(error))
            self._metrics.record_firing(schedule.agent_id, schedule.type.value, "error")
            updated = schedule.model_copy(
                update={
                    "status": ScheduleStatus.FAILED,
                    "last_run_at": fired_at,
                    "last_outcome": TestResultStatus.ERROR,
                    "last_error": error.reason,
                    "run_count": schedule.run_count + 1,
                }
            )
            await self._save_if_present(updated)
            if schedule.notify_on_failure:
                await self._notify_failure(updated, error.reason)
            return updated

        failed = outcome in (TestResultStatus.FAILED, TestResultStatus.ERROR)
        self._metrics.record_firing(schedule.agent_id, schedule.type.value, outcome.value)

        update: dict[str, Any] = {
            "last_run_at": fired_at,
            "last_outcome": outcome,
            "last_error": None,
            "run_count": schedule.run_count + 1,
        }
        if not schedule.frequency.is_recurring:
            update["status"] = ScheduleStatus.FAILED if failed else ScheduleStatus.COMPLETED
        else:
            update["status"] = ScheduleStatus.SCHEDULED
            if not (manual and schedule.next_run_date > fired_at):
                update["next_run_date"] = advance_next_run(
                    schedule.next_run_date, schedule.frequency, fired_at
                )

        updated = schedule.model_copy(update=update)
        await self._save_if_present(updated)

        if failed and schedule.notify_on_failure:
            await self._notify_failure(updated, f"Outcome: {outcome.value}")
        elif not failed and self.config.notify_on_success:
            await self._notify(
                Notification(
                    title="Scheduled test passed",
                    message=f"{schedule.type.value} {schedule.item_id} passed on agent "
                    f"{schedule.agent_id}",
                    severity=NotificationSeverity.SUCCESS,
                    metadata=self._notification_metadata(updated),
                )
            )

        logger.info(f"Schedule {schedule.id} fired: {outcome.value}")
        return updated

    async def _run_target(self, schedule: ScheduledTest) -> TestResultStatus:
        if schedule.type == ScheduleItemType.TEST_CASE:
            result = await self.runner.execute_test(
                schedule.agent_id, schedule.item_id, notify=False
            )
            return result.status

        run = await self.runner.execute_test_suite(
            schedule.agent_id,
            schedule.item_id,
            scheduled_by=schedule.id,
            notify=False,
        )
        return run_outcome(run)

    async def _save_if_present(self, schedule: ScheduledTest) -> None:
        # A schedule deleted while firing stays deleted
        if await self.schedule_repo.get(schedule.id) is None:
            logger.info(f"Schedule {schedule.id} was deleted while firing")
            return
        await self.schedule_repo.save(schedule)

    @staticmethod
    def _notification_metadata(schedule: ScheduledTest) -> dict[str, Any]:
        return {
            "schedule_id": schedule.id,
            "agent_id": schedule.agent_id,
            "item_type": schedule.type.value,
            "item_id": schedule.item_id,
            "frequency": schedule.frequency.value,
            "outcome": schedule.last_outcome.value if schedule.last_outcome else None,
        }

    async def _notify_failure(self, schedule: ScheduledTest, detail: str) -> None:
        await self._notify(
            Notification(
                title="Scheduled test failed",
                message=f"{schedule.type.value} {schedule.item_id} on agent "
                f"{schedule.agent_id}: {detail}",
                severity=NotificationSeverity.ERROR,
                metadata=self._notification_metadata(schedule),
            )
        )

    async def _notify(self, notification: Notification) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(notification)
        except Exception as e:
            logger.warning(f"Failed to send notification '{notification.title}': {e}")
