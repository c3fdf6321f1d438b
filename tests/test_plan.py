import asyncio
from pathlib import Path

import pytest

from gen_pr import plan
from gen_pr.config import Settings
from gen_pr.errors import CommandError
from gen_pr.plan import REPOMIX_FILE_NAME, plan_code_changes, read_file_contents
from gen_pr.utils import CommandResult

SNAPSHOT = "This file is a merged representation of the codebase."
ISSUE = "author: exKAZUu\ntitle: feat: print Hello World"


class FakeRepomix:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def __call__(self, command, args, cwd=None, env=None, ignore_exit_status=False, stream=False):
        self.calls.append([command, *args])
        Path(REPOMIX_FILE_NAME).write_text(SNAPSHOT, encoding="utf-8")
        if self.fail:
            raise CommandError(command, args, 1)
        return CommandResult("", "", 0)


class FakeLlm:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, model, messages, reasoning_effort=None, settings=None):
        self.calls.append({"model": model, "messages": messages, "reasoning_effort": reasoning_effort})
        return self.responses.pop(0)


@pytest.fixture
def repo(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.ts").write_text("console.log('hi');\n", encoding="utf-8")
    (tmp_path / "src" / "util.ts").write_text("export const x = 1;\n", encoding="utf-8")
    repomix = FakeRepomix()
    monkeypatch.setattr(plan, "run_command", repomix)
    return repomix


def use_llm(monkeypatch, responses):
    fake = FakeLlm(responses)
    monkeypatch.setattr(plan, "call_llm_api", fake)
    return fake


def test_two_stage_planning(repo, monkeypatch):
    llm = use_llm(
        monkeypatch,
        [
            "```\n# File Paths to be Modified\n\n- `src/index.ts`\n\n"
            "# File Paths to be Referred\n\n- `src/util.ts`\n```",
            "# Implementation Plans\n\n1. Print Hello World in `src/index.ts`",
        ],
    )

    result = asyncio.run(
        plan_code_changes("openai/o4-mini", ISSUE, True, "high", settings=Settings())
    )

    assert result.plan == "1. Print Hello World in `src/index.ts`"
    assert result.file_paths == ["src/index.ts"]
    assert len(llm.calls) == 2
    assert all(call["reasoning_effort"] == "high" for call in llm.calls)

    selector_messages = llm.calls[0]["messages"]
    assert selector_messages[0]["role"] == "system"
    assert ISSUE in selector_messages[0]["content"]
    assert selector_messages[1] == {"role": "user", "content": SNAPSHOT}

    planner_content = llm.calls[1]["messages"][1]["content"]
    assert "# `src/index.ts`" in planner_content
    assert "console.log('hi');" in planner_content
    assert "export const x = 1;" in planner_content
    assert not Path(REPOMIX_FILE_NAME).exists()


def test_single_stage_planning(repo, monkeypatch):
    llm = use_llm(
        monkeypatch,
        [
            "# Implementation Plans\n\n1. Edit both files\n\n"
            "# File Paths to be Modified\n\n- `src/index.ts`\n- `src/util.ts`\n"
        ],
    )

    result = asyncio.run(plan_code_changes("google/gemini-2.5-pro", ISSUE, False))

    assert result.plan == "1. Edit both files"
    assert result.file_paths == ["src/index.ts", "src/util.ts"]
    assert len(llm.calls) == 1
    assert repo.calls[0][:5] == ["npx", "--yes", "repomix@latest", "--output", REPOMIX_FILE_NAME]


def test_missing_heading_returns_empty_plan(repo, monkeypatch):
    llm = use_llm(monkeypatch, ["I could not decide which files to change."])

    result = asyncio.run(plan_code_changes("openai/o4-mini", ISSUE, True))

    assert result.plan is None
    assert result.file_paths == []
    assert len(llm.calls) == 1


def test_headings_out_of_order_return_empty_plan(repo, monkeypatch):
    use_llm(
        monkeypatch,
        ["# File Paths to be Modified\n\n- `src/index.ts`\n\n# Implementation Plans\n\n1. Edit"],
    )

    result = asyncio.run(plan_code_changes("openai/o4-mini", ISSUE, False))

    assert result.plan is None
    assert result.file_paths == []


def test_snapshot_is_removed_when_repomix_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(plan, "run_command", FakeRepomix(fail=True))

    with pytest.raises(CommandError):
        asyncio.run(plan.create_repository_snapshot())
    assert not (tmp_path / REPOMIX_FILE_NAME).exists()


def test_read_file_contents_uses_distinct_fences(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    Path("README.md").write_text("```bash\nnpm test\n```\n", encoding="utf-8")

    contents = read_file_contents(["README.md", "missing.txt"])

    assert contents.startswith("# `README.md`\n\n````\n```bash")
    assert "# `missing.txt`\n\n```\n\n```" in contents


def test_selected_file_with_invalid_utf8_is_read(repo, monkeypatch):
    Path("legacy.txt").write_bytes(b"caf\xe9 au lait\n")
    llm = use_llm(
        monkeypatch,
        [
            "# File Paths to be Modified\n\n- `legacy.txt`\n\n# File Paths to be Referred\n\n",
            "# Implementation Plans\n\n1. Convert `legacy.txt` to UTF-8",
        ],
    )

    result = asyncio.run(plan_code_changes("openai/o4-mini", ISSUE, True))

    assert result.file_paths == ["legacy.txt"]
    assert "caf� au lait" in llm.calls[1]["messages"][1]["content"]
