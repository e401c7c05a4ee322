"""Tests for YAML definitions loading."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.agenttest.contracts import ScheduleFrequency, ValidationRuleType
from src.agenttest.exceptions import EntityNotFoundError, InvalidConfigError
from src.agenttest.loader import Definitions, install_definitions, load_definitions
from src.agenttest.service import TestingService

DEFINITIONS = """
test_cases:
  - id: greets-user
    name: Greets the user
    inputs: {prompt: "Hello"}
    validation_rules:
      - {type: contains, target: prompt, value: Hello}
suites:
  - id: smoke
    name: Smoke
    test_case_ids: [greets-user]
    config: {stop_on_failure: true}
schedules:
  - id: nightly
    agent_id: agent-1
    type: test_suite
    item_id: smoke
    frequency: daily
    next_run_date: 2026-01-01 09:00:00
"""


class TestDefinitions:
    """Tests for parsing definitions."""

    def test_parses_all_sections(self):
        definitions = Definitions.from_yaml(DEFINITIONS)

        case = definitions.get_test_case("greets-user")
        assert case.validation_rules[0].type == ValidationRuleType.CONTAINS
        assert definitions.get_suite("smoke").config.stop_on_failure is True
        schedule = definitions.schedules[0]
        assert schedule.frequency == ScheduleFrequency.DAILY
        # naive timestamps are read as UTC
        assert schedule.next_run_date == datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
        assert definitions.get_test_case("missing") is None

    def test_empty_document(self):
        definitions = Definitions.from_yaml("")

        assert definitions.test_cases == ()
        assert definitions.schedules == ()

    @pytest.mark.parametrize(
        "text",
        [
            "test_cases: [",
            "- just a list",
            "unknown_section: []",
            "test_cases:\n  - inputs: {}",
        ],
    )
    def test_invalid_documents(self, text):
        with pytest.raises(InvalidConfigError):
            Definitions.from_yaml(text, source="bad.yaml")

    def test_load_file(self, tmp_path):
        path = tmp_path / "tests.yaml"
        path.write_text(DEFINITIONS)

        definitions = load_definitions(path)

        assert len(definitions.test_cases) == 1


class TestInstallDefinitions:
    """Tests for registering definitions with a service."""

    @pytest.mark.asyncio
    async def test_installs_in_dependency_order(self, invoker, repos):
        service = TestingService(invoker, repositories=repos)

        await install_definitions(service, Definitions.from_yaml(DEFINITIONS))

        assert await service.get_test_case("greets-user") is not None
        assert await service.get_test_suite("smoke") is not None
        assert [s.id for s in await service.get_scheduled_tests()] == ["nightly"]

    @pytest.mark.asyncio
    async def test_schedule_with_unknown_target(self, invoker, repos):
        service = TestingService(invoker, repositories=repos)
        definitions = Definitions.from_yaml(DEFINITIONS.split("suites:")[0] + """
schedules:
  - agent_id: agent-1
    type: test_suite
    item_id: smoke
    next_run_date: 2026-01-01T09:00:00Z
""")

        with pytest.raises(EntityNotFoundError):
            await install_definitions(service, definitions)
