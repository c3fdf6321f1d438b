"""
Git and GitHub CLI operations around the generated pull request.
"""

import re
from datetime import datetime
from typing import Optional

from rich.console import Console

from gen_pr.utils import run_command

console = Console()

REPO_URL_PATTERN = re.compile(r"github\.com[/:]([\w.-]+/[\w.-]+?)(?:\.git)?/?$")


def build_branch_name(issue_number: int, now: Optional[datetime] = None) -> str:
    """Branch name like `ai-pr-8-2025_0614_093005` from local wall-clock time"""
    now = now or datetime.now()
    return f"ai-pr-{issue_number}-{now.strftime('%Y_%m%d_%H%M%S')}"


def parse_repo_name(remote_url: str) -> str:
    """Extract `owner/repo` from an https or ssh GitHub remote URL"""
    match = REPO_URL_PATTERN.search(remote_url.strip())
    return match.group(1) if match else ""


async def get_git_repo_name() -> str:
    result = await run_command("git", ["remote", "get-url", "origin"], ignore_exit_status=True)
    return parse_repo_name(result.stdout)


async def get_current_branch() -> str:
    result = await run_command(
        "git", ["rev-parse", "--abbrev-ref", "HEAD"], ignore_exit_status=True
    )
    return result.stdout.strip()


async def get_header_of_first_commit(base_branch: str) -> str:
    """Subject line of the first commit made on top of base_branch"""
    result = await run_command(
        "git",
        ["log", f"{base_branch}..HEAD", "--reverse", "--pretty=%s"],
        ignore_exit_status=True,
    )
    lines = result.stdout.strip().split("\n")
    return lines[0].strip()


async def _configure_git_value(key: str, jq_field: str, label: str):
    current = await run_command("git", ["config", key], ignore_exit_status=True)
    if current.stdout.strip():
        return

    console.print(f"[dim]Git {key} not set. Attempting to configure from GitHub profile...[/dim]")
    github_value = await run_command(
        "gh", ["api", "user", "--jq", jq_field], ignore_exit_status=True
    )
    value = github_value.stdout.strip().strip('"')
    if value and value != "null":
        await run_command("git", ["config", key, value])
        console.print(f'[green]Successfully configured git {key} to "{value}"[/green]')
    else:
        console.print(
            f"[yellow]Could not retrieve user {label} from GitHub profile "
            f'(it might be "null", private, or not set).[/yellow]'
        )


async def configure_git_user_details_if_needed():
    """Fill git user.name and user.email from the GitHub profile when they are unset"""
    await _configure_git_value("user.name", ".name", "name")
    await _configure_git_value("user.email", ".email", "email")


async def commit_changes(issue_number: int):
    # Coding tools may already have committed, or hooks may reject; both are fine here
    await run_command("git", ["add", "--all"], ignore_exit_status=True)
    await run_command(
        "git",
        ["commit", "-m", f"fix: Close #{issue_number}", "--no-verify"],
        ignore_exit_status=True,
    )
