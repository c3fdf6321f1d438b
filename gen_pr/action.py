"""
GitHub Action entry point; inputs arrive as INPUT_<NAME> environment variables.
"""

import os
import shutil
from pathlib import Path
from typing import Mapping, Optional

import typer
from rich.console import Console
from rich.markup import escape

from gen_pr.cli import init_tracing, run_pipeline
from gen_pr.config import resolve_settings
from gen_pr.errors import ConfigurationError, GenPrError
from gen_pr.options import (
    DEFAULT_AIDER_EXTRA_ARGS,
    DEFAULT_CLAUDE_CODE_EXTRA_ARGS,
    DEFAULT_CODEX_EXTRA_ARGS,
    DEFAULT_MAX_TEST_ATTEMPTS,
    DEFAULT_REPOMIX_EXTRA_ARGS,
    MainOptions,
    parse_coding_tool,
    parse_reasoning_effort,
)

console = Console()

TRUE_VALUES = ("true", "True", "TRUE")
FALSE_VALUES = ("false", "False", "FALSE")


def get_input(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(f"INPUT_{name.replace(' ', '_').upper()}", "").strip()


def get_boolean_input(name: str, default: bool, environ: Optional[Mapping[str, str]] = None) -> bool:
    value = get_input(name, environ)
    if not value:
        return default
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid {name} value: {value}. Valid values are: true, false")


def get_int_input(name: str, default: Optional[int], environ: Optional[Mapping[str, str]] = None) -> int:
    value = get_input(name, environ)
    if not value:
        if default is None:
            raise ConfigurationError(f"Input required and not supplied: {name}")
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid {name} value: {value}. Expected an integer") from None


def options_from_inputs(environ: Optional[Mapping[str, str]] = None) -> MainOptions:
    """Build MainOptions from action inputs, raising ConfigurationError on invalid values"""
    return MainOptions(
        issue_number=get_int_input("issue-number", None, environ),
        planning_model=get_input("planning-model", environ) or None,
        two_stage_planning=get_boolean_input("two-staged-planning", True, environ),
        reasoning_effort=parse_reasoning_effort(get_input("reasoning-effort", environ)),
        coding_tool=parse_coding_tool(get_input("coding-tool", environ)),
        aider_extra_args=get_input("aider-extra-args", environ) or DEFAULT_AIDER_EXTRA_ARGS,
        claude_code_extra_args=get_input("claude-code-extra-args", environ)
        or DEFAULT_CLAUDE_CODE_EXTRA_ARGS,
        codex_extra_args=get_input("codex-extra-args", environ) or DEFAULT_CODEX_EXTRA_ARGS,
        repomix_extra_args=get_input("repomix-extra-args", environ) or DEFAULT_REPOMIX_EXTRA_ARGS,
        test_command=get_input("test-command", environ) or None,
        max_test_attempts=get_int_input("max-test-attempts", DEFAULT_MAX_TEST_ATTEMPTS, environ),
        dry_run=get_boolean_input("dry-run", False, environ),
    )


def action():
    try:
        options = options_from_inputs()
    except GenPrError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(code=e.exit_code)

    # gh credentials left behind by an earlier job on the runner
    shutil.rmtree(Path.home() / ".config" / "gh", ignore_errors=True)

    run_pipeline(options, resolve_settings())


def main():
    init_tracing(resolve_settings())
    typer.run(action)


if __name__ == "__main__":
    main()
