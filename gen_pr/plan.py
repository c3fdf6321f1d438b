"""
Planning code changes with an LLM before the coding tool runs.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import weave
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from gen_pr.config import Settings, redact_settings
from gen_pr.llm import call_llm_api
from gen_pr.markdown import (
    extract_header_contents,
    find_distinct_fence,
    parse_file_paths,
    trim_code_block_fences,
)
from gen_pr.options import DEFAULT_REPOMIX_EXTRA_ARGS
from gen_pr.utils import parse_command_line_args, run_command

console = Console()

REPOMIX_FILE_NAME = "repomix.result"

HEADING_OF_FILE_PATHS_TO_BE_MODIFIED = "# File Paths to be Modified"
HEADING_OF_FILE_PATHS_TO_BE_REFERRED = "# File Paths to be Referred"
HEADING_OF_PLAN = "# Implementation Plans"


@dataclass
class ResolutionPlan:
    plan: Optional[str] = None
    file_paths: List[str] = field(default_factory=list)


FILE_SELECTOR_PROMPT = weave.MessagesPrompt(
    [
        {
            "role": "system",
            "content": (
                "You are an expert software developer tasked with analyzing GitHub issues "
                "and identifying relevant files for code changes.\n\n"
                "Review the following GitHub issue and the list of available file paths and their contents "
                "(which will be provided in a separate message).\n"
                "Your task is to identify:\n"
                "1. Files that need to be MODIFIED to resolve the issue\n"
                "2. Files that should be REFERRED to (but not modified) to understand the codebase better\n\n"
                "GitHub Issue:\n"
                "{issue_fence}yml\n{issue_content}\n{issue_fence}\n\n"
                "Please format your response without any explanatory text as follows:\n"
                "```\n"
                "# File Paths to be Modified\n\n"
                "- `<filePath1>`\n- `<filePath2>`\n- ...\n\n"
                "# File Paths to be Referred\n\n"
                "- `<filePath1>`\n- `<filePath2>`\n- ...\n"
                "```"
            ),
        },
        {"role": "user", "content": "{repository}"},
    ]
)

PLANNER_PROMPT = weave.MessagesPrompt(
    [
        {
            "role": "system",
            "content": (
                "You are an expert software developer tasked with creating implementation plans "
                "based on GitHub issues.\n\n"
                "Review the following GitHub issue and the provided file contents "
                "(which will be provided in a separate message).\n"
                "Create a detailed, step-by-step plan outlining how to address the issue effectively.\n\n"
                "Your plan should:\n"
                "- Focus on implementation details for each file that needs modification\n"
                "- Be clear and actionable for a developer to follow\n"
                "- Prefer showing diffs rather than complete file contents when describing changes\n"
                "- Exclude testing procedures unless users explicitly request\n\n"
                "GitHub Issue:\n"
                "{issue_fence}yml\n{issue_content}\n{issue_fence}\n\n"
                "Please format your response without any explanatory text as follows:\n"
                "```\n"
                "# Implementation Plans\n\n"
                "1. <Specific implementation step>\n2. <Next implementation step>\n...\n"
                "```"
            ),
        },
        {"role": "user", "content": "{file_contents}"},
    ]
)

FILE_SELECTOR_AND_PLANNER_PROMPT = weave.MessagesPrompt(
    [
        {
            "role": "system",
            "content": (
                "You are an expert software developer tasked with analyzing GitHub issues "
                "and creating implementation plans.\n\n"
                "Review the following GitHub issue and the list of available file paths and their contents "
                "(which will be provided in a separate message).\n"
                "Your task is to:\n"
                "1. Create a detailed, step-by-step plan outlining how to resolve the issue effectively\n"
                "2. Identify files that need to be modified to resolve the issue\n\n"
                "Your plan should:\n"
                "- Focus on implementation details for each file that needs modification\n"
                "- Be clear and actionable for a developer to follow\n"
                "- Prefer showing diffs rather than complete file contents when describing changes\n"
                "- Exclude testing procedures as those will be handled separately\n\n"
                "GitHub Issue:\n"
                "{issue_fence}yml\n{issue_content}\n{issue_fence}\n\n"
                "Please format your response without any explanatory text as follows:\n"
                "```\n"
                "# Implementation Plans\n\n"
                "1. <Specific implementation step>\n2. <Next implementation step>\n...\n\n"
                "# File Paths to be Modified\n\n"
                "- `<filePath1>`\n- `<filePath2>`\n- ...\n"
                "```"
            ),
        },
        {"role": "user", "content": "{repository}"},
    ]
)


def publish_prompts():
    weave.publish(FILE_SELECTOR_PROMPT, name="file-selector-prompt")
    weave.publish(PLANNER_PROMPT, name="planner-prompt")
    weave.publish(FILE_SELECTOR_AND_PLANNER_PROMPT, name="file-selector-and-planner-prompt")


async def create_repository_snapshot(repomix_extra_args: Optional[str] = None) -> str:
    """Flatten the repository into text with repomix; the output file is always removed"""
    args = ["--yes", "repomix@latest", "--output", REPOMIX_FILE_NAME]
    args.extend(parse_command_line_args(repomix_extra_args or DEFAULT_REPOMIX_EXTRA_ARGS))

    snapshot_path = Path(REPOMIX_FILE_NAME)
    try:
        await run_command("npx", args)
        return snapshot_path.read_text(encoding="utf-8", errors="replace")
    finally:
        snapshot_path.unlink(missing_ok=True)


def read_file_contents(file_paths: List[str]) -> str:
    """Concatenate files under `# path` headings, each in a fence that cannot collide with its content"""
    sections = []
    for file_path in file_paths:
        path = Path(file_path)
        content = ""
        if path.is_file():
            content = path.read_text(encoding="utf-8", errors="replace").strip()
        fence = find_distinct_fence(content)
        sections.append(f"# `{file_path}`\n\n{fence}\n{content}\n{fence}")
    return "\n\n".join(sections)


async def _ask(
    description: str,
    model: str,
    messages: List[dict],
    reasoning_effort: Optional[str],
    settings: Optional[Settings],
) -> str:
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(
            f"{description} with {model} (reasoning effort: {reasoning_effort}) ...", total=None
        )
        response = await call_llm_api(model, messages, reasoning_effort, settings=settings)
    console.print(f"[green]{description} complete![/green]")
    return trim_code_block_fences(response)


@weave.op(postprocess_inputs=redact_settings)
async def plan_code_changes(
    model: str,
    issue_content: str,
    two_stage_planning: bool,
    reasoning_effort: Optional[str] = None,
    repomix_extra_args: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ResolutionPlan:
    """
    Ask the planning model which files to change and how.

    Two-stage planning first selects files to modify and refer to from a
    repository snapshot, then plans against the full contents of those
    files. Single-stage planning does both in one request. If a response
    does not contain the expected headings in order, an empty plan is returned.
    """
    issue_fence = find_distinct_fence(issue_content)
    repository = await create_repository_snapshot(repomix_extra_args)

    if two_stage_planning:
        files_response = await _ask(
            "Selecting files",
            model,
            FILE_SELECTOR_PROMPT.format(
                issue_fence=issue_fence, issue_content=issue_content, repository=repository
            ),
            reasoning_effort,
            settings,
        )
        file_lists = extract_header_contents(
            files_response,
            [HEADING_OF_FILE_PATHS_TO_BE_MODIFIED, HEADING_OF_FILE_PATHS_TO_BE_REFERRED],
        )
        if file_lists is None:
            console.print("[yellow]Warning: Could not find file lists in the response[/yellow]")
            return ResolutionPlan()
        files_to_be_modified = parse_file_paths(file_lists[0])
        files_to_be_referred = parse_file_paths(file_lists[1])

        plan_response = await _ask(
            "Planning code changes",
            model,
            PLANNER_PROMPT.format(
                issue_fence=issue_fence,
                issue_content=issue_content,
                file_contents=read_file_contents(files_to_be_modified + files_to_be_referred),
            ),
            reasoning_effort,
            settings,
        )
        plans = extract_header_contents(plan_response, [HEADING_OF_PLAN])
        if plans is None:
            console.print("[yellow]Warning: Could not find a plan in the response[/yellow]")
            return ResolutionPlan()
        return ResolutionPlan(plan=plans[0], file_paths=files_to_be_modified)

    response = await _ask(
        "Planning code changes",
        model,
        FILE_SELECTOR_AND_PLANNER_PROMPT.format(
            issue_fence=issue_fence, issue_content=issue_content, repository=repository
        ),
        reasoning_effort,
        settings,
    )
    sections = extract_header_contents(
        response, [HEADING_OF_PLAN, HEADING_OF_FILE_PATHS_TO_BE_MODIFIED]
    )
    if sections is None:
        console.print("[yellow]Warning: Could not find a plan in the response[/yellow]")
        return ResolutionPlan()
    return ResolutionPlan(plan=sections[0], file_paths=parse_file_paths(sections[1]))
