"""
Scheduling

Background firing of scheduled test cases and suites.
"""

from src.agenttest.scheduling.config import SchedulerConfig
from src.agenttest.scheduling.frequency import add_months, advance_next_run
from src.agenttest.scheduling.scheduler import ScheduleRunner, TestScheduler, run_outcome

__all__ = [
    "ScheduleRunner",
    "SchedulerConfig",
    "TestScheduler",
    "add_months",
    "advance_next_run",
    "run_outcome",
]
