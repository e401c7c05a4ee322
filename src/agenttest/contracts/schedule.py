"""
Schedule Models

Recurring or one-shot executions of a test case or test suite.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.agenttest.contracts.core import _generate_id, _now_utc
from src.agenttest.contracts.results import TestResultStatus


class ScheduleItemType(str, Enum):
    """What a schedule fires."""

    TEST_CASE = "test_case"
    TEST_SUITE = "test_suite"


class ScheduleFrequency(str, Enum):
    """How often a schedule fires."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def is_recurring(self) -> bool:
        return self is not ScheduleFrequency.ONCE


class ScheduleStatus(str, Enum):
    """
    Schedule state machine.

    scheduled -> (fires at next_run_date) -> completed | failed.
    Recurring schedules return to scheduled after each firing.
    """

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    FAILED = "failed"


class ScheduledTest(BaseModel):
    """A scheduled execution of a test case or suite against an agent."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_generate_id)
    agent_id: str = Field(..., min_length=1)
    type: ScheduleItemType
    item_id: str = Field(..., min_length=1, description="Test case or test suite id")
    frequency: ScheduleFrequency = ScheduleFrequency.ONCE
    next_run_date: datetime
    notify_on_failure: bool = True
    status: ScheduleStatus = ScheduleStatus.SCHEDULED

    # Firing history
    last_run_at: datetime | None = None
    last_outcome: TestResultStatus | None = Field(
        default=None,
        description="passed/failed/error summary of the last firing",
    )
    last_error: str | None = None
    run_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=_now_utc)
    created_by: str | None = None

    @field_validator("next_run_date")
    @classmethod
    def _require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("next_run_date must be timezone-aware")
        return v

    def is_due(self, now: datetime) -> bool:
        """True when the schedule is waiting and its run date has elapsed."""
        return self.status == ScheduleStatus.SCHEDULED and self.next_run_date <= now
