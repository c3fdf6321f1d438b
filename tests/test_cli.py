import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gen_pr import cli
from gen_pr.errors import CommandError, ConfigurationError
from gen_pr.options import CodingTool, ReasoningEffort

runner = CliRunner()


@pytest.fixture
def captured(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    calls = []

    async def fake_run(options, settings):
        calls.append({"options": options, "settings": settings, "cwd": Path(os.getcwd())})

    monkeypatch.setattr(cli, "run", fake_run)
    return calls


def test_defaults(captured):
    result = runner.invoke(cli.app, ["--issue-number", "8"])

    assert result.exit_code == 0, result.output
    options = captured[0]["options"]
    assert options.issue_number == 8
    assert options.coding_tool == CodingTool.AIDER
    assert options.two_stage_planning is True
    assert options.reasoning_effort is None
    assert options.max_test_attempts == 5
    assert options.dry_run is False


def test_all_options(captured):
    result = runner.invoke(
        cli.app,
        [
            "-i",
            "8",
            "-m",
            "openai/o4-mini",
            "--no-two-staged-planning",
            "--reasoning-effort",
            "high",
            "--coding-tool",
            "claude-code",
            "--claude-code-extra-args=--allowedTools Edit",
            "-t",
            "pytest -x",
            "--max-test-attempts",
            "2",
            "--dry-run",
        ],
    )

    assert result.exit_code == 0, result.output
    options = captured[0]["options"]
    assert options.planning_model == "openai/o4-mini"
    assert options.two_stage_planning is False
    assert options.reasoning_effort == ReasoningEffort.HIGH
    assert options.coding_tool == CodingTool.CLAUDE_CODE
    assert options.claude_code_extra_args == "--allowedTools Edit"
    assert options.test_command == "pytest -x"
    assert options.max_test_attempts == 2
    assert options.dry_run is True


def test_working_dir_changes_directory(captured, tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()

    result = runner.invoke(cli.app, ["-i", "8", "--working-dir", str(repo)])

    assert result.exit_code == 0, result.output
    assert captured[0]["cwd"].resolve() == repo.resolve()


def test_invalid_coding_tool_is_rejected(captured):
    result = runner.invoke(cli.app, ["-i", "8", "--coding-tool", "copilot"])

    assert result.exit_code != 0
    assert captured == []


def test_missing_issue_number_is_rejected(captured):
    result = runner.invoke(cli.app, [])

    assert result.exit_code != 0
    assert captured == []


def test_failure_exits_with_command_status(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    async def failing_run(options, settings):
        raise CommandError("git", ["push", "origin", "ai-pr-8"], 128)

    monkeypatch.setattr(cli, "run", failing_run)

    result = runner.invoke(cli.app, ["-i", "8"])

    assert result.exit_code == 128
    assert "exited with status 128" in result.output


def test_configuration_error_exits_with_one(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    async def failing_run(options, settings):
        raise ConfigurationError("Missing credentials for openai", ["OPENAI_API_KEY"])

    monkeypatch.setattr(cli, "run", failing_run)

    result = runner.invoke(cli.app, ["-i", "8", "-m", "openai/o4-mini"])

    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
