"""
Command lines for the coding tools and running them.
"""

import shutil
import sys
from typing import Callable, Dict, List, NamedTuple, Optional

from rich.console import Console

from gen_pr.config import Settings
from gen_pr.options import (
    DEFAULT_AIDER_EXTRA_ARGS,
    DEFAULT_CLAUDE_CODE_EXTRA_ARGS,
    DEFAULT_CODEX_EXTRA_ARGS,
    CodingTool,
    MainOptions,
)
from gen_pr.plan import ResolutionPlan
from gen_pr.utils import parse_command_line_args, run_command

console = Console()

AIDER_MANDATORY_ARGS = ["--yes-always", "--no-check-update", "--no-show-release-notes"]


def build_aider_args(
    options: MainOptions, prompt: str, resolution_plan: Optional[ResolutionPlan] = None
) -> List[str]:
    """Arguments for `aider`; planned files are added to the chat and the prompt goes via --message"""
    args = list(AIDER_MANDATORY_ARGS)
    args.extend(parse_command_line_args(options.aider_extra_args or DEFAULT_AIDER_EXTRA_ARGS))
    if options.dry_run:
        args.append("--dry-run")
    if resolution_plan:
        args.extend(resolution_plan.file_paths)
    args.extend(["--message", prompt])
    return args


def build_claude_code_args(
    options: MainOptions, prompt: str, resolution_plan: Optional[ResolutionPlan] = None
) -> List[str]:
    """Arguments for `npx`, running Claude Code non-interactively"""
    # cf. https://docs.anthropic.com/en/docs/claude-code/cli-usage
    return [
        "--yes",
        "@anthropic-ai/claude-code@latest",
        *parse_command_line_args(options.claude_code_extra_args or DEFAULT_CLAUDE_CODE_EXTRA_ARGS),
        # Bypass all permission checks
        "--dangerously-skip-permissions",
        # Print response without interactive mode
        "--print",
        prompt,
    ]


def build_codex_args(
    options: MainOptions, prompt: str, resolution_plan: Optional[ResolutionPlan] = None
) -> List[str]:
    """Arguments for `npx`, running the Codex CLI"""
    return [
        "--yes",
        "@openai/codex",
        *parse_command_line_args(options.codex_extra_args or DEFAULT_CODEX_EXTRA_ARGS),
        prompt,
    ]


class Assistant(NamedTuple):
    command: str
    build_args: Callable[[MainOptions, str, Optional[ResolutionPlan]], List[str]]


ASSISTANTS: Dict[CodingTool, Assistant] = {
    CodingTool.AIDER: Assistant("aider", build_aider_args),
    CodingTool.CLAUDE_CODE: Assistant("npx", build_claude_code_args),
    CodingTool.CODEX: Assistant("npx", build_codex_args),
}


async def run_assistant(
    options: MainOptions,
    prompt: str,
    resolution_plan: Optional[ResolutionPlan],
    settings: Settings,
) -> str:
    """Run the configured coding tool with a prompt and return its transcript"""
    assistant = ASSISTANTS[options.coding_tool]
    args = assistant.build_args(options, prompt, resolution_plan)
    result = await run_command(
        assistant.command,
        args,
        env=settings.subprocess_env(NO_COLOR="1"),
        stream=True,
    )
    return result.stdout


async def _reshim_to_detect_new_tools():
    # Make newly installed tools visible on asdf-managed environments
    if shutil.which("asdf"):
        await run_command("asdf", ["reshim"], ignore_exit_status=True)


async def ensure_coding_tool_installed(options: MainOptions, settings: Settings):
    """Install aider when missing; npx-based tools need no installation"""
    if options.coding_tool != CodingTool.AIDER:
        return

    env = settings.subprocess_env()
    if not shutil.which("aider", path=env.get("PATH")):
        console.print("[blue]Installing aider...[/blue]")
        await run_command(sys.executable, ["-m", "pip", "install", "aider-install"], env=env)
        await _reshim_to_detect_new_tools()
        await run_command("aider-install", [], env=env)
        await _reshim_to_detect_new_tools()

    if "bedrock/" in (options.aider_extra_args or ""):
        await run_command(
            "uv",
            [
                "tool",
                "run",
                "--from",
                "aider-chat",
                "pip",
                "install",
                "--upgrade",
                "--upgrade-strategy",
                "only-if-needed",
                "boto3",
            ],
            env=env,
        )
