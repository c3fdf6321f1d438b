"""
Size management for pull request diffs handed to language models.
"""

import re
from typing import List

from rich.console import Console

console = Console()

MAX_DIFF_SIZE = 50_000
MAX_FILE_DIFF_SIZE = 10_000
DIFF_BUDGET_RATIO = 0.9
HEADER_LINES_TO_KEEP = 4

# Paths whose diffs are build output rather than source
GENERATED_FILE_PATTERNS = [
    r"(^|/)dist/",  # Distribution directories
    r"(^|/)build/",  # Build directories
    r"(^|/)node_modules/",  # Node modules
    r"\.bundle\.",  # Bundled files
    r"\.min\.",  # Minified files
]

GENERATED_DIFF_NOTICE = "@@ ... @@\n(large bundled/compiled file diff truncated)\n"
REMAINING_DIFFS_NOTICE = "\n... (remaining diffs truncated to keep the context manageable) ...\n"

DIFF_HEADER_PATTERN = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)
SECTION_BOUNDARY_PATTERN = re.compile(r"(?=^diff --git )", re.MULTILINE)


def is_generated_file(file_path: str) -> bool:
    """Check if a path looks like bundled, minified or vendored output"""
    return any(re.search(pattern, file_path) for pattern in GENERATED_FILE_PATTERNS)


def split_diff_sections(diff: str) -> List[str]:
    """Split a unified diff into per-file sections, each starting with its `diff --git` header"""
    return [section for section in SECTION_BOUNDARY_PATTERN.split(diff) if section]


def _section_paths(section: str) -> List[str]:
    match = DIFF_HEADER_PATTERN.match(section)
    return list(match.groups()) if match else []


def _truncate_section(section: str) -> str:
    paths = _section_paths(section)
    if any(is_generated_file(path) for path in paths):
        header = "\n".join(section.split("\n")[:HEADER_LINES_TO_KEEP])
        console.print(f"[yellow]Truncating generated file diff: {paths[-1]}[/yellow]")
        return f"{header}\n{GENERATED_DIFF_NOTICE}"

    if len(section) > MAX_FILE_DIFF_SIZE:
        omitted = len(section) - MAX_FILE_DIFF_SIZE
        return (
            f"{section[:MAX_FILE_DIFF_SIZE]}\n"
            f"... (diff truncated, {omitted} characters omitted) ...\n"
        )

    return section


def truncate_diff(diff: str, max_size: int = MAX_DIFF_SIZE) -> str:
    """Keep a pull request diff within max_size characters.

    Small diffs are returned unchanged. Otherwise generated files are reduced
    to their headers, oversized file diffs are cut, and once the output passes
    90% of the budget the remaining files are replaced by a single notice.
    """
    if len(diff) <= max_size:
        return diff

    processed = []
    current_size = 0
    for section in split_diff_sections(diff):
        if current_size > max_size * DIFF_BUDGET_RATIO:
            processed.append(REMAINING_DIFFS_NOTICE)
            break
        truncated = _truncate_section(section)
        processed.append(truncated)
        current_size += len(truncated)

    console.print(
        f"[yellow]Diff truncated from {len(diff)} to {current_size} characters[/yellow]"
    )
    return "".join(processed)
