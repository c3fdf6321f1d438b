"""
Helpers for reading and writing the markdown exchanged with planning models.
"""

import re
from typing import List, Optional

BACKTICK_RUN_PATTERN = re.compile(r"```+")
OUTER_FENCE_PATTERN = re.compile(r"^(`{3,}|~{3,})[\s\S]*?\n([\s\S]*?)\n\1\s*$")
# "- path" or "- `path`" bullet items, not preceded by a word character
FILE_PATH_PATTERN = re.compile(r"\B-\s*`?([^`\n]+)`?")


def extract_header_contents(text: str, headers: List[str]) -> Optional[List[str]]:
    """Return the text under each header, or None if a header is missing or out of order.

    Each header must start a line. A section runs until the next requested
    header (or the end of the text) and is stripped of surrounding whitespace.
    """
    modified = f"\n{text}"
    indices = [modified.find(f"\n{header}") for header in headers]

    if any(index == -1 for index in indices):
        return None
    if any(indices[i] <= indices[i - 1] for i in range(1, len(indices))):
        return None

    contents = []
    for i, header in enumerate(headers):
        start = indices[i] + 1 + len(header)
        end = indices[i + 1] + 1 if i + 1 < len(headers) else len(modified)
        contents.append(modified[start:end].strip())
    return contents


def find_distinct_fence(content: str) -> str:
    """Return a backtick fence longer than any backtick run inside content"""
    runs = BACKTICK_RUN_PATTERN.findall(content)
    longest = max((len(run) for run in runs), default=0)
    return "`" * max(3, longest + 1)


def trim_code_block_fences(content: str) -> str:
    """Strip a single code fence wrapping the whole response, if there is one"""
    return OUTER_FENCE_PATTERN.sub(r"\2", content.strip())


def parse_file_paths(section: str) -> List[str]:
    return [match.strip() for match in FILE_PATH_PATTERN.findall(section)]
