"""
Definitions Loader

Reads test cases, suites and schedules from a YAML file:

    test_cases:
      - id: greets-user
        name: Greets the user
        inputs: {prompt: "Hello"}
        validation_rules:
          - {type: contains, target: response, value: hello}
    suites:
      - id: smoke
        name: Smoke
        test_case_ids: [greets-user]
        config: {stop_on_failure: true}
    schedules:
      - agent_id: agent-1
        type: test_suite
        item_id: smoke
        frequency: daily
        next_run_date: 2026-01-01T09:00:00Z
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.agenttest.contracts import ScheduledTest, TestCase, TestSuite
from src.agenttest.exceptions import InvalidConfigError

if TYPE_CHECKING:
    from src.agenttest.service import TestingService

logger = logging.getLogger(__name__)


class Definitions(BaseModel):
    """Test cases, suites and schedules declared in one file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    test_cases: tuple[TestCase, ...] = Field(default_factory=tuple)
    suites: tuple[TestSuite, ...] = Field(default_factory=tuple)
    schedules: tuple[ScheduledTest, ...] = Field(default_factory=tuple)

    @field_validator("schedules", mode="before")
    @classmethod
    def _assume_utc(cls, v: Any) -> Any:
        # YAML timestamps without an offset load as naive datetimes
        if not isinstance(v, list):
            return v
        entries = []
        for entry in v:
            if isinstance(entry, dict):
                run_date = entry.get("next_run_date")
                if isinstance(run_date, datetime) and run_date.tzinfo is None:
                    entry = {**entry, "next_run_date": run_date.replace(tzinfo=UTC)}
            entries.append(entry)
        return entries

    @classmethod
    def from_yaml(cls, text: str, source: str = "<string>") -> Definitions:
        """
        Parse definitions from YAML text.

        Raises:
            InvalidConfigError: If the YAML is malformed or a definition is invalid
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise InvalidConfigError("definitions", source, f"Invalid YAML: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidConfigError("definitions", source, "Top level must be a mapping")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidConfigError("definitions", source, str(e)) from e

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> Definitions:
        """Load definitions from a YAML file."""
        path = Path(path)
        definitions = cls.from_yaml(path.read_text(), source=str(path))
        logger.info(
            f"Loaded {len(definitions.test_cases)} test cases, {len(definitions.suites)} suites "
            f"and {len(definitions.schedules)} schedules from {path}"
        )
        return definitions

    def get_test_case(self, test_case_id: str) -> TestCase | None:
        return next((tc for tc in self.test_cases if tc.id == test_case_id), None)

    def get_suite(self, suite_id: str) -> TestSuite | None:
        return next((s for s in self.suites if s.id == suite_id), None)


def load_definitions(path: str | Path) -> Definitions:
    return Definitions.from_yaml_file(path)


async def install_definitions(service: TestingService, definitions: Definitions) -> None:
    """Register loaded definitions with a service. Test cases go first so schedules resolve."""
    for test_case in definitions.test_cases:
        await service.create_test_case(test_case)
    for suite in definitions.suites:
        await service.create_test_suite(suite)
    for schedule in definitions.schedules:
        await service.schedule_test(schedule)
