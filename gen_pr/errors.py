"""
Exception types raised by gen-pr components.

Components raise these instead of exiting; the CLI and Action entry points
turn them into a process exit code.
"""

from typing import List, Optional


class GenPrError(Exception):
    """Base exception for all gen-pr failures."""

    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(GenPrError):
    """Raised for invalid options, malformed model ids and missing credentials."""

    def __init__(self, message: str, missing_vars: Optional[List[str]] = None):
        if missing_vars:
            message = f"{message} (set {' or '.join(missing_vars)})"
        super().__init__(message)
        self.missing_vars = missing_vars or []


class CommandError(GenPrError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: str, args: List[str], returncode: int, stderr: str = ""):
        super().__init__(f"Command '{command}' exited with status {returncode}")
        self.command = command
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        self.exit_code = returncode if returncode > 0 else 1


class IssueNotFoundError(GenPrError):
    """Raised when the root issue or pull request cannot be fetched."""

    def __init__(self, issue_number: int):
        super().__init__(f"Failed to fetch issue data for issue #{issue_number}")
        self.issue_number = issue_number


class LlmError(GenPrError):
    """Raised when an LLM provider call fails."""
