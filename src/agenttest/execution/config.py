"""
Execution Configuration

Settings for the test executor and suite runner.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecutorConfig(BaseModel):
    """Defaults for single test case execution."""

    model_config = ConfigDict(frozen=True)

    retry_delay_ms: int = Field(
        default=0,
        ge=0,
        description="Delay before the first retry",
    )
    retry_backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each failed attempt",
    )
    max_retry_delay_ms: int = Field(
        default=30000,
        ge=0,
        description="Upper bound on the delay between attempts",
    )
    expose_performance_metrics: bool = Field(
        default=True,
        description="Expose metrics to rules as `performanceMetrics` in the outputs",
    )


class SuiteRunnerConfig(BaseModel):
    """Settings for running test suites."""

    model_config = ConfigDict(frozen=True)

    max_concurrency: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Worker pool size when a suite runs in parallel",
    )
    persist_results: bool = Field(
        default=True,
        description="Save each result and the run to the repositories",
    )


class ExecutionOptions(BaseModel):
    """Per-call overrides for a test execution."""

    model_config = ConfigDict(frozen=True)

    timeout_ms: int | None = Field(default=None, gt=0)
    retry_count: int | None = Field(default=None, ge=0)
    retry_delay_ms: int | None = Field(default=None, ge=0)
    overrides: dict[str, Any] = Field(
        default_factory=dict,
        description="Input overrides merged over the test case inputs",
    )
