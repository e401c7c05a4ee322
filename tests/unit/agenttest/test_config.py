"""Tests for HarnessSettings."""

import pytest
from pydantic import ValidationError

from src.agenttest.config import HarnessSettings


class TestHarnessSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("AGENTTEST_AGENT_BASE_URL", raising=False)
        settings = HarnessSettings(_env_file=None)

        assert settings.agent_base_url is None
        assert settings.notifier == "log"
        assert settings.max_concurrency == 5
        assert settings.scheduler_poll_seconds == 60.0

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("AGENTTEST_AGENT_BASE_URL", "http://agents.local")
        monkeypatch.setenv("AGENTTEST_MAX_CONCURRENCY", "8")
        monkeypatch.setenv("AGENTTEST_NOTIFIER", "webhook")

        settings = HarnessSettings(_env_file=None)

        assert settings.agent_base_url == "http://agents.local"
        assert settings.max_concurrency == 8
        assert settings.notifier == "webhook"

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("AGENTTEST_NOTIFIER", "carrier-pigeon")

        with pytest.raises(ValidationError):
            HarnessSettings(_env_file=None)

    def test_component_configs(self):
        settings = HarnessSettings(
            _env_file=None,
            retry_delay_ms=250,
            max_concurrency=3,
            scheduler_poll_seconds=5,
            scheduler_workers=2,
            analytics_window_days=7,
            analytics_top_failed=5,
        )

        assert settings.executor_config().retry_delay_ms == 250
        assert settings.suite_runner_config().max_concurrency == 3
        scheduler = settings.scheduler_config()
        assert scheduler.poll_interval_seconds == 5
        assert scheduler.max_concurrent_firings == 2
        analytics = settings.analytics_config()
        assert analytics.default_window_days == 7
        assert analytics.top_failed_limit == 5
