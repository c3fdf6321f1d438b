"""
Run options shared by the CLI and the GitHub Action, with their defaults.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gen_pr.errors import ConfigurationError


class CodingTool(str, Enum):
    AIDER = "aider"
    CLAUDE_CODE = "claude-code"
    CODEX = "codex"

    @property
    def display_name(self) -> str:
        return {"aider": "Aider", "claude-code": "Claude Code", "codex": "Codex"}[self.value]


class ReasoningEffort(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# "--yes-always --no-check-update --no-show-release-notes" is always applied
DEFAULT_AIDER_EXTRA_ARGS = (
    "--no-gitignore --no-show-model-warnings --model gemini/gemini-2.5-pro --edit-format diff-fenced"
)
# "--dangerously-skip-permissions --print" is always applied
DEFAULT_CLAUDE_CODE_EXTRA_ARGS = "--allowedTools Bash Edit Write"
DEFAULT_CODEX_EXTRA_ARGS = "exec --full-auto"
DEFAULT_REPOMIX_EXTRA_ARGS = (
    '--compress --remove-empty-lines --include "src/**/*.{py,ts,tsx},**/*.md"'
)
DEFAULT_MAX_TEST_ATTEMPTS = 5
DEFAULT_CODING_TOOL = CodingTool.AIDER


@dataclass
class MainOptions:
    """Options for a single gen-pr run"""

    issue_number: int
    planning_model: Optional[str] = None
    two_stage_planning: bool = True
    reasoning_effort: Optional[ReasoningEffort] = None
    coding_tool: CodingTool = DEFAULT_CODING_TOOL
    aider_extra_args: str = DEFAULT_AIDER_EXTRA_ARGS
    claude_code_extra_args: str = DEFAULT_CLAUDE_CODE_EXTRA_ARGS
    codex_extra_args: str = DEFAULT_CODEX_EXTRA_ARGS
    repomix_extra_args: str = DEFAULT_REPOMIX_EXTRA_ARGS
    test_command: Optional[str] = None
    max_test_attempts: int = DEFAULT_MAX_TEST_ATTEMPTS
    dry_run: bool = False


def parse_reasoning_effort(value: Optional[str]) -> Optional[ReasoningEffort]:
    if not value:
        return None
    try:
        return ReasoningEffort(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid reasoning-effort value: {value}. Valid values are: low, medium, high"
        ) from None


def parse_coding_tool(value: Optional[str]) -> CodingTool:
    if not value:
        return DEFAULT_CODING_TOOL
    try:
        return CodingTool(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid coding-tool value: {value}. Valid values are: aider, claude-code, codex"
        ) from None
