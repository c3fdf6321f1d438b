"""
GitHub issue and pull request context gathering.
"""

import asyncio
import json
import re
from typing import List, Optional, Set, TypedDict

import weave
import yaml
from rich.console import Console

from gen_pr.diff import truncate_diff
from gen_pr.errors import IssueNotFoundError
from gen_pr.utils import run_command, strip_html_comments

console = Console()

ISSUE_REFERENCE_PATTERN = re.compile(r"(?<!\w)#(\d+)\b")
ISSUE_JSON_FIELDS = "author,title,body,labels,comments,url"


class IssueComment(TypedDict):
    author: str
    body: str


class _IssueInfoRequired(TypedDict):
    author: str
    title: str
    description: str
    comments: List[IssueComment]


class IssueInfo(_IssueInfoRequired, total=False):
    code_changes: str
    referenced_issues: List["IssueInfo"]


def extract_issue_references(text: str) -> List[int]:
    """Collect `#<number>` references in first-seen order without duplicates"""
    numbers = []
    for match in ISSUE_REFERENCE_PATTERN.finditer(text):
        number = int(match.group(1))
        if number not in numbers:
            numbers.append(number)
    return numbers


async def _view_issue(issue_number: int) -> Optional[dict]:
    result = await run_command(
        "gh",
        ["issue", "view", str(issue_number), "--json", ISSUE_JSON_FIELDS],
        ignore_exit_status=True,
    )
    if result.returncode != 0 or not result.stdout.strip():
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        console.print(f"[yellow]Could not parse data for #{issue_number}: {e}[/yellow]")
        return None


async def fetch_issue_data(
    issue_number: int, visited: Set[int], is_referenced: bool = False
) -> Optional[IssueInfo]:
    """Fetch an issue or pull request and, recursively, the items it references.

    The number is added to visited before anything is awaited, so concurrent
    branches never fetch the same item twice and reference cycles terminate.
    Only the root item (is_referenced=False) of a pull request gets its diff.
    Returns None when the item was already visited or cannot be fetched.
    """
    if issue_number in visited:
        return None
    visited.add(issue_number)

    issue = await _view_issue(issue_number)
    if issue is None:
        return None

    description = strip_html_comments(issue.get("body"))
    comments: List[IssueComment] = [
        {
            "author": (comment.get("author") or {}).get("login", ""),
            "body": strip_html_comments(comment.get("body")),
        }
        for comment in issue.get("comments") or []
    ]
    issue_info: IssueInfo = {
        "author": (issue.get("author") or {}).get("login", ""),
        "title": issue.get("title", ""),
        "description": description,
        "comments": comments,
    }

    if not is_referenced and "/pull/" in (issue.get("url") or ""):
        diff_result = await run_command(
            "gh", ["pr", "diff", str(issue_number)], ignore_exit_status=True
        )
        code_changes = truncate_diff(diff_result.stdout).strip()
        if code_changes:
            issue_info["code_changes"] = code_changes

    text = "\n".join([description, *(comment["body"] for comment in comments)])
    pending = [n for n in extract_issue_references(text) if n not in visited]
    if pending:
        console.print(
            f"[blue]#{issue_number} references {', '.join(f'#{n}' for n in pending)}[/blue]"
        )
        # gather keeps results in reference order regardless of completion order
        results = await asyncio.gather(
            *(fetch_issue_data(n, visited, is_referenced=True) for n in pending)
        )
        referenced_issues = [info for info in results if info is not None]
        if referenced_issues:
            issue_info["referenced_issues"] = referenced_issues

    return issue_info


@weave.op()
async def create_issue_info(issue_number: int) -> IssueInfo:
    """Build the full context tree for the issue or pull request being resolved"""
    visited: Set[int] = set()
    issue_info = await fetch_issue_data(issue_number, visited)
    if issue_info is None:
        raise IssueNotFoundError(issue_number)
    return issue_info


def format_issue_info(issue_info: IssueInfo) -> str:
    """Serialize an issue context tree to YAML for prompts"""
    return yaml.safe_dump(
        dict(issue_info), sort_keys=False, allow_unicode=True, width=1000
    ).strip()
