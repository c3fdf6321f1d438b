"""
Running the test command and asking the coding tool to fix failures.
"""

from typing import Optional

from rich.console import Console

from gen_pr.assistants import run_assistant
from gen_pr.config import Settings
from gen_pr.options import MainOptions
from gen_pr.plan import ResolutionPlan
from gen_pr.utils import CommandResult, parse_command_line_args, run_command, truncate_text

console = Console()

# Per stream, in the prompt sent back to the coding tool
MAX_FIX_OUTPUT_LENGTH = 20_000


def build_fix_prompt(test_command: str, result: CommandResult) -> str:
    return (
        f"The previous changes were applied, but the test command `{test_command}` failed.\n\n"
        f"Exit code: {result.returncode}\n\n"
        f"Stdout:\n```\n{truncate_text(result.stdout, MAX_FIX_OUTPUT_LENGTH)}\n```\n\n"
        f"Stderr:\n```\n{truncate_text(result.stderr, MAX_FIX_OUTPUT_LENGTH)}\n```\n\n"
        "Please analyze the output and fix the errors."
    )


async def run_assistant_fix(
    options: MainOptions,
    prompt: str,
    resolution_plan: Optional[ResolutionPlan],
    settings: Settings,
) -> str:
    """Ask the coding tool to fix a failure and return its transcript under a heading"""
    tool_name = options.coding_tool.display_name
    console.print(f'[cyan]Asking {tool_name} to fix "{options.test_command}"...[/cyan]')
    transcript = await run_assistant(options, prompt, resolution_plan, settings)
    return f'\n\n# {tool_name} fix attempt for "{options.test_command}"\n\n{transcript.strip()}'


async def test_and_fix(
    options: MainOptions,
    resolution_plan: Optional[ResolutionPlan],
    settings: Settings,
) -> str:
    """
    Run the test command until it passes or max_test_attempts runs have failed.

    After every failing run except the last, the coding tool is asked to fix
    the failure. Returns the accumulated fix transcripts; when the attempts
    run out a notice is appended and the run continues.
    """
    command_args = parse_command_line_args(options.test_command)
    if not command_args:
        return ""

    max_attempts = options.max_test_attempts
    fix_log = ""
    attempts = 0
    while attempts < max_attempts:
        attempts += 1
        console.print(
            f"[cyan]Executing test command (attempt {attempts}/{max_attempts}): "
            f"{options.test_command}[/cyan]"
        )
        result = await run_command(
            command_args[0],
            command_args[1:],
            env=settings.subprocess_env() or None,
            ignore_exit_status=True,
        )
        if result.returncode == 0:
            console.print("[green]Test command passed successfully.[/green]")
            break

        console.print(f"[yellow]Test command failed with exit code {result.returncode}.[/yellow]")
        if attempts >= max_attempts:
            console.print(
                f"[yellow]Maximum fix attempts ({max_attempts}) reached. Giving up.[/yellow]"
            )
            fix_log += (
                f'\n\n# Test command "{options.test_command}" still failing '
                f"after {max_attempts} attempts"
            )
            break

        prompt = build_fix_prompt(options.test_command, result)
        fix_log += await run_assistant_fix(options, prompt, resolution_plan, settings)

    return fix_log
