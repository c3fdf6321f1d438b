"""
Utility functions for the gen-pr package.
"""

import asyncio
import codecs
import re
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Union

from rich.console import Console
from rich.markup import escape

from gen_pr.errors import CommandError

console = Console()

# Console echo limits; callers always receive the full output
MAX_OUTPUT_LENGTH = 5000
TRUNCATE_THRESHOLD = 3000

HTML_COMMENT_PATTERN = re.compile(r"<!--[\s\S]*?-->")


class CommandResult(NamedTuple):
    stdout: str
    stderr: str
    returncode: int


def parse_command_line_args(args_string: Optional[str]) -> List[str]:
    """Split a command line into arguments, honouring single and double quotes.

    Quotes group characters (including spaces) into one argument and are
    dropped from the result. A quote character inside the other kind of
    quote is kept literally.
    """
    if not args_string:
        return []

    result = []
    current = ""
    in_double_quote = False
    in_single_quote = False

    for char in args_string:
        if char == '"' and not in_single_quote:
            in_double_quote = not in_double_quote
            continue
        if char == "'" and not in_double_quote:
            in_single_quote = not in_single_quote
            continue
        if char == " " and not in_double_quote and not in_single_quote:
            if current:
                result.append(current)
                current = ""
            continue
        current += char

    if current:
        result.append(current)

    return result


def strip_html_comments(markdown_content: Optional[str]) -> str:
    """Remove every `<!-- ... -->` comment from markdown text"""
    if not markdown_content:
        return ""
    return HTML_COMMENT_PATTERN.sub("", markdown_content)


def truncate_text(output: str, max_length: int) -> str:
    """Cut text to max_length characters and note how much was dropped"""
    if len(output) <= max_length:
        return output
    omitted = len(output) - max_length
    return f"{output[:max_length]}\n\n... ({omitted} characters truncated) ..."


def truncate_output(output: str) -> str:
    """Shorten command output for console display.

    Keeps whole lines from the start up to TRUNCATE_THRESHOLD characters,
    then a notice, then a few trailing lines if they still fit.
    """
    if len(output) <= MAX_OUTPUT_LENGTH:
        return output

    lines = output.split("\n")
    truncated = ""
    current_length = 0
    truncated_lines = 0

    for i, line in enumerate(lines):
        line_with_newline = f"{line}\n"
        if current_length + len(line_with_newline) > TRUNCATE_THRESHOLD:
            truncated_lines = len(lines) - i
            break
        truncated += line_with_newline
        current_length += len(line_with_newline)

    if truncated_lines > 0:
        truncated += (
            f"\n... ({truncated_lines} lines truncated, "
            f"{len(output) - current_length} characters omitted) ...\n"
        )
        end_lines_to_show = min(10, (MAX_OUTPUT_LENGTH - len(truncated)) // 50)
        if end_lines_to_show > 0 and len(lines) > end_lines_to_show:
            truncated += "\n... (showing last few lines) ...\n"
            truncated += "\n".join(lines[-end_lines_to_show:])

    return truncated


def format_command(command: str, args: List[str]) -> str:
    """Render a command for display, quoting arguments that contain spaces"""
    rendered = [f'"{arg}"' if " " in arg else arg for arg in args]
    return " ".join([command, *rendered])


async def _read_stream(stream: asyncio.StreamReader, echo: bool) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    chunks = []
    while True:
        data = await stream.read(4096)
        if not data:
            break
        text = decoder.decode(data)
        chunks.append(text)
        if echo and text:
            console.out(text, end="", highlight=False)
    chunks.append(decoder.decode(b"", final=True))
    return "".join(chunks)


async def spawn_async(
    command: str,
    args: List[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    stream: bool = False,
) -> CommandResult:
    """Run a program without a shell and capture its output.

    With stream=True stdout is echoed to the console while it is read.
    A missing executable is reported like a shell would, with status 127.
    """
    sanitized_args = [arg.replace("\0", "") for arg in args]
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *sanitized_args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
        )
    except FileNotFoundError:
        return CommandResult("", f"{command}: command not found", 127)

    stdout, stderr = await asyncio.gather(
        _read_stream(process.stdout, echo=stream),
        _read_stream(process.stderr, echo=False),
    )
    returncode = await process.wait()
    return CommandResult(stdout, stderr, returncode)


async def run_command(
    command: str,
    args: List[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    ignore_exit_status: bool = False,
    stream: bool = False,
) -> CommandResult:
    """Run a command, echo it and its (truncated) output, and return the result.

    Raises CommandError on a non-zero exit unless ignore_exit_status is set,
    in which case the caller inspects the returned result itself.
    """
    console.print(f"[green]$ {escape(format_command(command, args))}[/green]")
    console.print("stdout: ---------------------")
    result = await spawn_async(command, args, cwd=cwd, env=env, stream=stream)

    if not stream:
        console.print(truncate_output(result.stdout), markup=False, highlight=False)

    stderr = result.stderr.strip()
    if stderr:
        console.print("stderr: ---------------------")
        console.print(f"[yellow]{escape(truncate_output(stderr))}[/yellow]")
    console.print("-----------------------------")
    console.print(f"[magenta]Exit code: {result.returncode}[/magenta]\n")

    if not ignore_exit_status and result.returncode != 0:
        raise CommandError(command, args, result.returncode, result.stderr)
    return result
