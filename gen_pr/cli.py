"""
Command line interface for gen-pr.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional

import typer
import weave
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from gen_pr.config import Settings, resolve_settings
from gen_pr.errors import GenPrError
from gen_pr.main import run
from gen_pr.options import (
    DEFAULT_AIDER_EXTRA_ARGS,
    DEFAULT_CLAUDE_CODE_EXTRA_ARGS,
    DEFAULT_CODEX_EXTRA_ARGS,
    DEFAULT_CODING_TOOL,
    DEFAULT_MAX_TEST_ATTEMPTS,
    DEFAULT_REPOMIX_EXTRA_ARGS,
    CodingTool,
    MainOptions,
    ReasoningEffort,
)
from gen_pr.plan import publish_prompts

app = typer.Typer()
console = Console()


def init_tracing(settings: Settings):
    """Start weave tracing when WEAVE_PROJECT is set"""
    if settings.weave_project:
        weave.init(settings.weave_project)
        publish_prompts()


def run_pipeline(options: MainOptions, settings: Settings):
    """Run the pipeline once; the only place a gen-pr failure becomes an exit code"""
    try:
        asyncio.run(run(options, settings))
    except GenPrError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(code=e.exit_code)


@app.command()
def generate(
    issue_number: int = typer.Option(
        ..., "--issue-number", "-i", help="Issue number to process"
    ),
    planning_model: Optional[str] = typer.Option(
        None,
        "--planning-model",
        "-m",
        help="LLM (<provider>/<model>) for planning code changes, e.g. openai/o4-mini",
    ),
    two_staged_planning: bool = typer.Option(
        True,
        "--two-staged-planning/--no-two-staged-planning",
        help="Select files first, then plan against their full contents",
    ),
    reasoning_effort: Optional[ReasoningEffort] = typer.Option(
        None,
        "--reasoning-effort",
        "-e",
        case_sensitive=False,
        help="Reasoning effort for the planning model, when it supports one",
    ),
    coding_tool: CodingTool = typer.Option(
        DEFAULT_CODING_TOOL,
        "--coding-tool",
        "-c",
        case_sensitive=False,
        help="Coding tool that edits the code",
    ),
    aider_extra_args: str = typer.Option(
        DEFAULT_AIDER_EXTRA_ARGS,
        "--aider-extra-args",
        help="Additional arguments for aider",
    ),
    claude_code_extra_args: str = typer.Option(
        DEFAULT_CLAUDE_CODE_EXTRA_ARGS,
        "--claude-code-extra-args",
        help="Additional arguments for Claude Code",
    ),
    codex_extra_args: str = typer.Option(
        DEFAULT_CODEX_EXTRA_ARGS,
        "--codex-extra-args",
        help="Additional arguments for Codex",
    ),
    repomix_extra_args: str = typer.Option(
        DEFAULT_REPOMIX_EXTRA_ARGS,
        "--repomix-extra-args",
        help="Additional arguments for repomix when taking the repository snapshot",
    ),
    test_command: Optional[str] = typer.Option(
        None,
        "--test-command",
        "-t",
        help="Command to run after the coding tool; failures are sent back for fixing",
    ),
    max_test_attempts: int = typer.Option(
        DEFAULT_MAX_TEST_ATTEMPTS,
        "--max-test-attempts",
        min=1,
        help="Maximum number of test runs",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-d",
        help="Print the branch, push and PR actions instead of performing them",
    ),
    working_dir: Optional[Path] = typer.Option(
        None,
        "--working-dir",
        "-w",
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Working directory to run in",
    ),
):
    """
    Generate a pull request that resolves a GitHub issue.
    """
    if working_dir:
        os.chdir(working_dir)
        console.print(f"Changed working directory to: [bold]{working_dir}[/bold]")

    load_dotenv(find_dotenv(usecwd=True))
    settings = resolve_settings()

    console.print(Panel.fit("Issue to PR", title="gen-pr", border_style="blue"))
    options = MainOptions(
        issue_number=issue_number,
        planning_model=planning_model,
        two_stage_planning=two_staged_planning,
        reasoning_effort=reasoning_effort,
        coding_tool=coding_tool,
        aider_extra_args=aider_extra_args,
        claude_code_extra_args=claude_code_extra_args,
        codex_extra_args=codex_extra_args,
        repomix_extra_args=repomix_extra_args,
        test_command=test_command,
        max_test_attempts=max_test_attempts,
        dry_run=dry_run,
    )
    run_pipeline(options, settings)
