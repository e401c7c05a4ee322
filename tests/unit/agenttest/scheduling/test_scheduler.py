"""Tests for the test scheduler."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.agenttest.contracts import (
    RunSummary,
    ScheduledTest,
    ScheduleFrequency,
    ScheduleItemType,
    ScheduleStatus,
    TestCase,
    TestResult,
    TestResultStatus,
    TestRun,
    TestRunStatus,
)
from src.agenttest.exceptions import EntityNotFoundError
from src.agenttest.notifications import CallbackNotifier
from src.agenttest.scheduling import SchedulerConfig, TestScheduler, run_outcome
from src.agenttest.service import TestingService
from src.agenttest.storage import InMemoryScheduleRepository

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class FakeRunner:
    """ScheduleRunner double recording calls and returning scripted outcomes."""

    def __init__(self):
        self.status = TestResultStatus.PASSED
        self.run_status = TestRunStatus.COMPLETED
        self.summary = RunSummary(total=1, passed=1)
        self.error: Exception | None = None
        self.delay = 0.0
        self.on_call = None
        self.calls: list[tuple] = []

    async def execute_test(self, agent_id, test_case_id, options=None, *, notify=True):
        self.calls.append(("test_case", agent_id, test_case_id, notify))
        return await self._respond(
            lambda: TestResult(
                test_case_id=test_case_id,
                agent_id=agent_id,
                status=self.status,
                start_time=NOW,
                end_time=NOW,
            )
        )

    async def execute_test_suite(self, agent_id, test_suite_id, *, scheduled_by=None, notify=True):
        self.calls.append(("test_suite", agent_id, test_suite_id, scheduled_by))
        return await self._respond(
            lambda: TestRun(
                agent_id=agent_id,
                test_suite_id=test_suite_id,
                status=self.run_status,
                summary=self.summary,
            )
        )

    async def _respond(self, build):
        if self.on_call:
            await self.on_call()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return build()


def make_schedule(**kwargs) -> ScheduledTest:
    fields = {
        "agent_id": "agent-1",
        "type": ScheduleItemType.TEST_CASE,
        "item_id": "tc-1",
        "frequency": ScheduleFrequency.DAILY,
        "next_run_date": NOW,
    }
    fields.update(kwargs)
    return ScheduledTest(**fields)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def notifications() -> list:
    return []


@pytest.fixture
def scheduler(repos, runner, notifications) -> TestScheduler:
    async def collect(notification):
        notifications.append(notification)

    return TestScheduler(
        SchedulerConfig(poll_interval_seconds=0.01, max_concurrent_firings=2),
        repos.schedules,
        runner,
        CallbackNotifier(collect),
        clock=lambda: NOW,
    )


async def fire_due(scheduler: TestScheduler, now: datetime | None = None) -> list[str]:
    fired = await scheduler.tick(now)
    await scheduler.drain()
    await scheduler.close()
    return fired


class TestScheduledFiring:
    """Tests for firing due schedules."""

    @pytest.mark.asyncio
    async def test_daily_schedule_advances_one_day(self, invoker, repos):
        """A daily schedule that fires successfully moves 24 hours on and stays scheduled."""
        service = TestingService(invoker, repositories=repos)
        await service.create_test_case(TestCase(id="tc-1", name="Smoke"))
        schedule = await service.schedule_test(make_schedule())
        scheduler = service.create_scheduler(clock=lambda: NOW)

        fired = await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert fired == [schedule.id]
        assert updated.next_run_date - schedule.next_run_date == timedelta(hours=24)
        assert updated.status == ScheduleStatus.SCHEDULED
        assert updated.last_outcome == TestResultStatus.PASSED
        assert updated.last_run_at == NOW
        assert updated.run_count == 1
        assert len(await repos.test_results.list_by_agent("agent-1")) == 1

    @pytest.mark.asyncio
    async def test_not_due_schedule_is_left_alone(self, scheduler, runner, repos):
        schedule = make_schedule(next_run_date=NOW + timedelta(minutes=1))
        await repos.schedules.save(schedule)

        assert await fire_due(scheduler) == []
        assert runner.calls == []
        assert await repos.schedules.get(schedule.id) == schedule

    @pytest.mark.asyncio
    async def test_explicit_now_overrides_clock(self, scheduler, runner, repos):
        schedule = make_schedule(next_run_date=NOW + timedelta(hours=2))
        await repos.schedules.save(schedule)

        fired = await fire_due(scheduler, NOW + timedelta(hours=3))

        assert fired == [schedule.id]
        updated = await repos.schedules.get(schedule.id)
        assert updated.last_run_at == NOW + timedelta(hours=3)
        assert updated.next_run_date == NOW + timedelta(days=1, hours=2)

    @pytest.mark.asyncio
    async def test_one_shot_completes(self, scheduler, repos):
        schedule = make_schedule(frequency=ScheduleFrequency.ONCE)
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert updated.status == ScheduleStatus.COMPLETED
        assert updated.next_run_date == NOW

    @pytest.mark.asyncio
    async def test_completed_schedule_does_not_fire_again(self, scheduler, runner, repos):
        await repos.schedules.save(make_schedule(frequency=ScheduleFrequency.ONCE))

        await fire_due(scheduler)
        await fire_due(scheduler, NOW + timedelta(days=3))

        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_one_shot_failure(self, scheduler, runner, repos, notifications):
        runner.status = TestResultStatus.FAILED
        schedule = make_schedule(frequency=ScheduleFrequency.ONCE)
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert updated.status == ScheduleStatus.FAILED
        assert updated.last_outcome == TestResultStatus.FAILED
        assert len(notifications) == 1
        assert notifications[0].metadata["schedule_id"] == schedule.id

    @pytest.mark.asyncio
    async def test_recurring_failure_stays_scheduled(self, scheduler, runner, repos):
        runner.status = TestResultStatus.ERROR
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert updated.status == ScheduleStatus.SCHEDULED
        assert updated.last_outcome == TestResultStatus.ERROR
        assert updated.next_run_date == NOW + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_firing_error_marks_schedule_failed(
        self, scheduler, runner, repos, notifications
    ):
        runner.error = EntityNotFoundError("TestCase", "tc-1")
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert updated.status == ScheduleStatus.FAILED
        assert updated.last_outcome == TestResultStatus.ERROR
        assert "tc-1" in updated.last_error
        assert updated.run_count == 1
        assert notifications[0].title == "Scheduled test failed"

    @pytest.mark.asyncio
    async def test_no_notification_when_disabled(self, scheduler, runner, repos, notifications):
        runner.status = TestResultStatus.FAILED
        await repos.schedules.save(make_schedule(notify_on_failure=False))

        await fire_due(scheduler)

        assert notifications == []

    @pytest.mark.asyncio
    async def test_success_notification_is_opt_in(self, repos, runner, notifications):
        async def collect(notification):
            notifications.append(notification)

        scheduler = TestScheduler(
            SchedulerConfig(notify_on_success=True),
            repos.schedules,
            runner,
            CallbackNotifier(collect),
            clock=lambda: NOW,
        )
        await repos.schedules.save(make_schedule())

        await fire_due(scheduler)

        assert [n.title for n in notifications] == ["Scheduled test passed"]

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_affect_schedule(self, repos, runner):
        async def broken(notification):
            raise ConnectionError("webhook down")

        scheduler = TestScheduler(
            SchedulerConfig(), repos.schedules, runner, CallbackNotifier(broken), clock=lambda: NOW
        )
        runner.status = TestResultStatus.FAILED
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        updated = await repos.schedules.get(schedule.id)
        assert updated.last_outcome == TestResultStatus.FAILED
        assert updated.status == ScheduleStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_suite_schedule_passes_schedule_id(self, scheduler, runner, repos):
        schedule = make_schedule(type=ScheduleItemType.TEST_SUITE, item_id="suite-1")
        await repos.schedules.save(schedule)

        await fire_due(scheduler)

        assert runner.calls == [("test_suite", "agent-1", "suite-1", schedule.id)]

    @pytest.mark.asyncio
    async def test_schedule_deleted_while_firing_stays_deleted(self, scheduler, runner, repos):
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        async def delete_schedule():
            await repos.schedules.delete(schedule.id)

        runner.on_call = delete_schedule

        await fire_due(scheduler)

        assert await repos.schedules.get(schedule.id) is None


class TestSingleFlight:
    """Tests that a schedule never fires twice concurrently."""

    @pytest.mark.asyncio
    async def test_second_tick_skips_in_flight_schedule(self, scheduler, runner, repos):
        runner.delay = 0.1
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        first = await scheduler.tick()
        second = await scheduler.tick()
        await scheduler.drain()
        await scheduler.close()

        assert first == [schedule.id]
        assert second == []
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_trigger_refuses_in_flight_schedule(self, scheduler, runner, repos):
        runner.delay = 0.1
        schedule = make_schedule()
        await repos.schedules.save(schedule)

        await scheduler.tick()
        assert await scheduler.trigger(schedule.id) is None
        await scheduler.drain()
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_trigger_claims_schedule_before_reading_it(self, runner, notifications):
        class YieldingScheduleRepository(InMemoryScheduleRepository):
            async def get(self, schedule_id):
                await asyncio.sleep(0)
                return await super().get(schedule_id)

        async def collect(notification):
            notifications.append(notification)

        schedules = YieldingScheduleRepository()
        scheduler = TestScheduler(
            SchedulerConfig(poll_interval_seconds=0.01, max_concurrent_firings=2),
            schedules,
            runner,
            CallbackNotifier(collect),
            clock=lambda: NOW,
        )
        runner.delay = 0.05
        schedule = make_schedule()
        await schedules.save(schedule)

        triggered, enqueued = await asyncio.gather(
            scheduler.trigger(schedule.id), scheduler.tick(NOW)
        )
        await scheduler.drain()
        await scheduler.close()

        assert triggered is not None
        assert enqueued == []
        assert len(runner.calls) == 1
        assert scheduler.get_status()["in_flight"] == []

    @pytest.mark.asyncio
    async def test_firings_run_concurrently_across_schedules(self, scheduler, runner, repos):
        runner.delay = 0.1
        for item in ("tc-1", "tc-2"):
            await repos.schedules.save(make_schedule(item_id=item))

        started = asyncio.get_running_loop().time()
        await fire_due(scheduler)
        elapsed = asyncio.get_running_loop().time() - started

        assert len(runner.calls) == 2
        assert elapsed < 0.19


class TestManualTrigger:
    """Tests for firing schedules on demand."""

    @pytest.mark.asyncio
    async def test_trigger_before_due_keeps_next_run(self, scheduler, runner, repos):
        schedule = make_schedule(next_run_date=NOW + timedelta(hours=6))
        await repos.schedules.save(schedule)

        updated = await scheduler.trigger(schedule.id)

        assert updated.next_run_date == schedule.next_run_date
        assert updated.run_count == 1
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_trigger_overdue_advances(self, scheduler, repos):
        schedule = make_schedule(next_run_date=NOW - timedelta(hours=1))
        await repos.schedules.save(schedule)

        updated = await scheduler.trigger(schedule.id)

        assert updated.next_run_date == NOW + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_trigger_unknown_schedule(self, scheduler):
        assert await scheduler.trigger("missing") is None
        assert scheduler.get_status()["in_flight"] == []


class TestSchedulerLoop:
    """Tests for the polling loop."""

    @pytest.mark.asyncio
    async def test_start_fires_and_stop_exits(self, scheduler, runner, repos):
        await repos.schedules.save(make_schedule())

        task = asyncio.create_task(scheduler.start())
        for _ in range(100):
            if runner.calls:
                break
            await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert len(runner.calls) == 1
        assert scheduler.get_status()["running"] is False
        assert scheduler.get_status()["workers"] == 0

    @pytest.mark.asyncio
    async def test_loop_survives_repository_errors(self, scheduler, runner, repos, monkeypatch):
        calls = 0
        original = repos.schedules.list_due

        async def flaky_list_due(now):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database unavailable")
            return await original(now)

        monkeypatch.setattr(repos.schedules, "list_due", flaky_list_due)
        await repos.schedules.save(make_schedule())

        task = asyncio.create_task(scheduler.start())
        for _ in range(100):
            if runner.calls:
                break
            await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert calls >= 2
        assert len(runner.calls) == 1

    def test_status_before_start(self, scheduler):
        status = scheduler.get_status()
        assert status == {
            "running": False,
            "poll_interval_seconds": 0.01,
            "workers": 0,
            "queued": 0,
            "in_flight": [],
        }


class TestRunOutcome:
    """Tests for collapsing a suite run into a schedule outcome."""

    @staticmethod
    def make_run(status: TestRunStatus, **counts) -> TestRun:
        return TestRun(agent_id="a", status=status, summary=RunSummary(**counts))

    def test_failed_run_is_error(self):
        run = self.make_run(TestRunStatus.FAILED, total=2, error=2)
        assert run_outcome(run) == TestResultStatus.ERROR

    def test_any_failure_is_failed(self):
        run = self.make_run(TestRunStatus.COMPLETED, total=2, passed=1, failed=1)
        assert run_outcome(run) == TestResultStatus.FAILED

    def test_cancelled_is_skipped(self):
        run = self.make_run(TestRunStatus.CANCELLED, total=2, skipped=2)
        assert run_outcome(run) == TestResultStatus.SKIPPED

    def test_clean_run_passes(self):
        run = self.make_run(TestRunStatus.COMPLETED, total=1, passed=1)
        assert run_outcome(run) == TestResultStatus.PASSED
