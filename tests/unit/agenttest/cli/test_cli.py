"""Tests for the agenttest CLI."""

from __future__ import annotations

import pytest
import typer
from typer.testing import CliRunner

from src.agenttest.cli.commands import run, schedule, templates
from src.agenttest.cli.main import app

runner = CliRunner()

DEFINITIONS = """
test_cases:
  - id: echoes-prompt
    name: Echoes prompt
    inputs: {prompt: "Hello"}
    validation_rules:
      - {type: exact_match, target: prompt, value: Hello}
  - id: wants-answer
    name: Wants answer
    inputs: {prompt: "Hi"}
    validation_rules:
      - {type: exact_match, target: answer, value: "42"}
suites:
  - id: smoke
    name: Smoke
    test_case_ids: [echoes-prompt]
  - id: mixed
    name: Mixed
    test_case_ids: [echoes-prompt, wants-answer]
schedules:
  - id: nightly-smoke
    agent_id: agent-1
    type: test_suite
    item_id: smoke
    frequency: daily
    next_run_date: 2020-01-01T09:00:00Z
"""


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich tables from wrapping cell text."""
    for module in (run, schedule, templates):
        monkeypatch.setattr(module.console, "width", 200)


@pytest.fixture
def definitions_file(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENTTEST_NOTIFIER", "none")
    monkeypatch.delenv("AGENTTEST_AGENT_BASE_URL", raising=False)
    path = tmp_path / "tests.yaml"
    path.write_text(DEFINITIONS)
    return path


class TestVersionAndTemplates:
    """Tests for informational commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "agenttest version 0.1.0" in result.output

    def test_templates_list(self):
        result = runner.invoke(app, ["templates", "list", "--category", "security"])

        assert result.exit_code == 0
        assert "Prompt Injection Test" in result.output
        assert "Tool Usage Test" not in result.output

    def test_templates_show(self):
        result = runner.invoke(app, ["templates", "show", "builtin:format-adherence"])

        assert result.exit_code == 0
        assert "Format Adherence Test" in result.output

    def test_templates_show_unknown(self):
        result = runner.invoke(app, ["templates", "show", "nope"])

        assert result.exit_code == 1


class TestRunCommand:
    """Tests for the run command against the echo agent."""

    def test_passing_test_case(self, definitions_file):
        result = runner.invoke(
            app, ["run", str(definitions_file), "-a", "agent-1", "-t", "echoes-prompt", "--echo"]
        )

        assert result.exit_code == 0, result.output
        assert "passed" in result.output

    def test_failing_suite_exits_1(self, definitions_file):
        result = runner.invoke(
            app, ["run", str(definitions_file), "--agent", "agent-1", "--suite", "mixed", "--echo"]
        )

        assert result.exit_code == 1
        assert "1/2 passed" in result.output

    def test_passing_suite(self, definitions_file):
        result = runner.invoke(
            app, ["run", str(definitions_file), "--agent", "agent-1", "--suite", "smoke", "--echo"]
        )

        assert result.exit_code == 0, result.output
        assert "1/1 passed" in result.output

    def test_requires_exactly_one_target(self, definitions_file):
        result = runner.invoke(app, ["run", str(definitions_file), "-a", "agent-1", "--echo"])

        assert result.exit_code == 2

    @pytest.mark.asyncio
    async def test_run_without_target_is_a_usage_error(self, definitions_file):
        with pytest.raises(typer.Exit) as exc_info:
            await run._run_async(
                definitions_file, "agent-1", None, None, None, True, None, False
            )

        assert exc_info.value.exit_code == 2

    def test_missing_file(self, tmp_path):
        result = runner.invoke(
            app, ["run", str(tmp_path / "nope.yaml"), "-a", "agent-1", "-s", "smoke"]
        )

        assert result.exit_code == 2

    def test_unknown_test_case(self, definitions_file):
        result = runner.invoke(
            app, ["run", str(definitions_file), "-a", "agent-1", "-t", "missing", "--echo"]
        )

        assert result.exit_code == 2
        assert "not found" in result.output


class TestScheduleCommands:
    """Tests for schedule commands."""

    def test_list(self, definitions_file):
        result = runner.invoke(app, ["schedule", "list", str(definitions_file)])

        assert result.exit_code == 0
        assert "agent-1" in result.output
        assert "daily" in result.output

    def test_start_once_fires_due_schedules(self, definitions_file):
        result = runner.invoke(
            app, ["schedule", "start", str(definitions_file), "--echo", "--once"]
        )

        assert result.exit_code == 0, result.output
        assert "Fired 1 schedule(s)" in result.output

    def test_start_rejects_non_positive_poll(self, definitions_file):
        result = runner.invoke(
            app, ["schedule", "start", str(definitions_file), "--echo", "--poll", "0"]
        )

        assert result.exit_code == 2
        assert "--poll must be positive" in result.output
