"""
The gen-pr pipeline: issue context, planning, coding tool, tests and pull request.
"""

import re
from datetime import datetime
from typing import Optional

import weave
from rich.console import Console

from gen_pr import fixer
from gen_pr.assistants import ensure_coding_tool_installed, run_assistant
from gen_pr.config import Settings, redact_settings
from gen_pr.git import (
    build_branch_name,
    commit_changes,
    configure_git_user_details_if_needed,
    get_current_branch,
    get_git_repo_name,
    get_header_of_first_commit,
)
from gen_pr.issue import create_issue_info, format_issue_info
from gen_pr.markdown import find_distinct_fence
from gen_pr.options import MainOptions
from gen_pr.plan import ResolutionPlan, plan_code_changes
from gen_pr.utils import run_command

console = Console()

MAX_ANSWER_LENGTH = 65000
BLANK_LINES_PATTERN = re.compile(r"(?:\s*\n){2,}")


def build_plan_text(resolution_plan: Optional[ResolutionPlan]) -> str:
    if resolution_plan and resolution_plan.plan:
        return f"# Plan\n\n{resolution_plan.plan}"
    return ""


def build_prompt(issue_text: str, plan_text: str) -> str:
    fence = find_distinct_fence(issue_text)
    return (
        "Modify the code to resolve the following GitHub issue:\n"
        f"{fence}yml\n{issue_text}\n{fence}\n\n{plan_text}"
    ).strip()


def build_pr_body(issue_number: int, plan_text: str, tool_name: str, transcript: str) -> str:
    """
    Assemble the pull request body.

    The transcript is cut from the end so that the whole body stays within
    MAX_ANSWER_LENGTH characters, and runs of blank lines become one.
    """
    fence = max(find_distinct_fence(transcript), "````", key=len)
    head = f"Close #{issue_number}\n\n{plan_text}\n\n# {tool_name} Log\n\n{fence}\n"
    tail = f"\n{fence}"
    available = max(0, MAX_ANSWER_LENGTH - len(head) - len(tail))
    body = f"{head}{transcript[:available]}{tail}"
    return BLANK_LINES_PATTERN.sub("\n\n", body).strip()


@weave.op(postprocess_inputs=redact_settings)
async def run(options: MainOptions, settings: Settings) -> None:
    started_at = datetime.now()

    if options.dry_run:
        console.print("[yellow]Running in dry-run mode. No branches or PRs will be created.[/yellow]")
    else:
        await configure_git_user_details_if_needed()

    await ensure_coding_tool_installed(options, settings)

    issue_info = await create_issue_info(options.issue_number)
    issue_text = format_issue_info(issue_info)

    resolution_plan = None
    if options.planning_model:
        resolution_plan = await plan_code_changes(
            options.planning_model,
            issue_text,
            options.two_stage_planning,
            options.reasoning_effort.value if options.reasoning_effort else None,
            options.repomix_extra_args,
            settings=settings,
        )
    plan_text = build_plan_text(resolution_plan)
    prompt = build_prompt(issue_text, plan_text)
    console.print("[bold]Resolution plan:[/bold]", resolution_plan)

    base_branch = await get_current_branch()
    branch_name = build_branch_name(options.issue_number, started_at)
    if not options.dry_run:
        await run_command("git", ["switch", "-C", branch_name])
    else:
        console.print(f"[yellow]Would create branch: {branch_name}[/yellow]")

    transcript = (await run_assistant(options, prompt, resolution_plan, settings)).strip()
    if options.test_command:
        transcript += await fixer.test_and_fix(options, resolution_plan, settings)

    await commit_changes(options.issue_number)
    if not options.dry_run:
        await run_command("git", ["push", "origin", branch_name, "--no-verify"])
    else:
        console.print(f"[yellow]Would push branch: {branch_name} to origin[/yellow]")

    tool_name = options.coding_tool.display_name
    pr_title = await get_header_of_first_commit(base_branch) or f"fix: Close #{options.issue_number}"
    pr_body = build_pr_body(options.issue_number, plan_text, tool_name, transcript)
    if not options.dry_run:
        args = ["pr", "create", "--title", pr_title, "--body", pr_body]
        repo_name = await get_git_repo_name()
        if repo_name:
            args.extend(["--repo", repo_name])
        await run_command("gh", args)
    else:
        console.print(f"[yellow]Would create PR with title: {pr_title}[/yellow]")
        console.print(
            f"[yellow]PR body would include the {tool_name} log "
            f"and close issue #{options.issue_number}[/yellow]"
        )

    console.print(f"\n[green]Issue #{options.issue_number} processed successfully.[/green]")
