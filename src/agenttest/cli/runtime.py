"""Service construction shared by CLI commands."""

from __future__ import annotations

from src.agenttest.config import HarnessSettings
from src.agenttest.service import TestingService


def build_service(
    endpoint: str | None = None,
    echo: bool = False,
    settings: HarnessSettings | None = None,
) -> TestingService:
    """
    Service for a CLI invocation.

    --echo wins over --endpoint, which wins over AGENTTEST_AGENT_BASE_URL.
    Without any endpoint the echo agent is used.
    """
    settings = settings or HarnessSettings()
    if echo:
        settings = settings.model_copy(update={"agent_base_url": None})
    elif endpoint:
        settings = settings.model_copy(update={"agent_base_url": endpoint})
    return TestingService.from_settings(settings)
