"""
Schedule Frequency Arithmetic

Computes the next run date of a recurring schedule.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from src.agenttest.contracts import ScheduleFrequency

_FIXED_INTERVALS = {
    ScheduleFrequency.DAILY: timedelta(days=1),
    ScheduleFrequency.WEEKLY: timedelta(days=7),
}


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance_next_run(
    next_run: datetime,
    frequency: ScheduleFrequency,
    now: datetime,
) -> datetime | None:
    """
    Next run date after a firing.

    Advances by at least one interval, then skips whole intervals until the
    date is strictly after `now`, so a scheduler that was down for a while
    fires once rather than once per missed interval. Monthly steps are taken
    from the original date (Jan 31 -> Feb 28/29 -> Mar 31).

    Args:
        next_run: The run date that just fired
        frequency: Schedule frequency
        now: Current time

    Returns:
        New run date, or None for one-shot schedules
    """
    if frequency == ScheduleFrequency.ONCE:
        return None

    interval = _FIXED_INTERVALS.get(frequency)
    if interval is not None:
        steps = 1
        if next_run + interval <= now:
            steps = (now - next_run) // interval + 1
        return next_run + interval * steps

    steps = 1
    candidate = add_months(next_run, steps)
    while candidate <= now:
        steps += 1
        candidate = add_months(next_run, steps)
    return candidate
