"""
Harness Configuration

Environment-driven settings for the harness, with builders for the
per-component configs.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.agenttest.analytics import AnalyticsConfig
from src.agenttest.execution import ExecutorConfig, SuiteRunnerConfig
from src.agenttest.scheduling import SchedulerConfig


class HarnessSettings(BaseSettings):
    """
    Settings for the agent test harness.

    Supports environment variables with AGENTTEST_ prefix:
    - AGENTTEST_AGENT_BASE_URL: Base URL of the agent HTTP endpoint
    - AGENTTEST_AGENT_API_KEY: Bearer token sent to the agent endpoint
    - AGENTTEST_WEBHOOK_URL: Slack-compatible webhook for notifications
    - AGENTTEST_MAX_CONCURRENCY: Worker pool size for parallel suites
    - AGENTTEST_SCHEDULER_POLL_SECONDS: Scheduler polling interval
    - AGENTTEST_LOG_LEVEL: Logging level for the CLI
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Agent endpoint
    agent_base_url: str | None = Field(
        default=None,
        description="Agent HTTP endpoint; agents are invoked at {base}/agents/{id}/invoke",
    )
    agent_api_key: str | None = Field(
        default=None,
        description="Bearer token for the agent endpoint",
    )

    # Execution
    retry_delay_ms: int = Field(default=0, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_concurrency: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Worker pool size for suites with parallel execution",
    )

    # Scheduler
    scheduler_poll_seconds: float = Field(default=60.0, gt=0)
    scheduler_workers: int = Field(default=4, ge=1, le=100)

    # Analytics
    analytics_window_days: int = Field(default=30, ge=1)
    analytics_top_failed: int = Field(default=10, ge=1)

    # Notifications
    notifier: Literal["log", "webhook", "none"] = Field(
        default="log",
        description="Notification transport",
    )
    webhook_url: str | None = Field(default=None)

    log_level: str = Field(default="INFO")

    def executor_config(self) -> ExecutorConfig:
        return ExecutorConfig(
            retry_delay_ms=self.retry_delay_ms,
            retry_backoff_multiplier=self.retry_backoff_multiplier,
        )

    def suite_runner_config(self) -> SuiteRunnerConfig:
        return SuiteRunnerConfig(max_concurrency=self.max_concurrency)

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            poll_interval_seconds=self.scheduler_poll_seconds,
            max_concurrent_firings=self.scheduler_workers,
        )

    def analytics_config(self) -> AnalyticsConfig:
        return AnalyticsConfig(
            default_window_days=self.analytics_window_days,
            top_failed_limit=self.analytics_top_failed,
        )
