"""
Scheduler Configuration
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SchedulerConfig(BaseModel):
    """Settings for the background scheduler."""

    model_config = ConfigDict(frozen=True)

    poll_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How often to look for due schedules",
    )
    max_concurrent_firings: int = Field(
        default=4,
        ge=1,
        le=100,
        description="Worker tasks consuming the firing queue",
    )
    notify_on_success: bool = Field(
        default=False,
        description="Also notify when a scheduled firing passes",
    )
