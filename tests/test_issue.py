import asyncio
import json

import pytest
import yaml

from gen_pr import issue
from gen_pr.errors import IssueNotFoundError
from gen_pr.issue import (
    create_issue_info,
    extract_issue_references,
    fetch_issue_data,
    format_issue_info,
)
from gen_pr.utils import CommandResult

REPO_URL = "https://github.com/WillBooster/gen-pr"


def make_issue(title, body, comments=(), kind="issues", number=1, author="exKAZUu"):
    return {
        "author": {"login": author},
        "title": title,
        "body": body,
        "labels": [],
        "comments": [{"author": {"login": login}, "body": text} for login, text in comments],
        "url": f"{REPO_URL}/{kind}/{number}",
    }


def bundled_diff():
    bundle = (
        "diff --git a/dist/index.js b/dist/index.js\n"
        "index 1111111..2222222 100644\n"
        "--- a/dist/index.js\n"
        "+++ b/dist/index.js\n"
        "@@ -1 +1 @@\n"
        f"+{'x' * 60_000}\n"
    )
    source = (
        "diff --git a/src/index.ts b/src/index.ts\n"
        "index 3333333..4444444 100644\n"
        "--- a/src/index.ts\n"
        "+++ b/src/index.ts\n"
        "@@ -1 +1 @@\n"
        "-console.log('hi');\n"
        "+console.log('Hello World');\n"
    )
    return bundle + source


class FakeGitHub:
    def __init__(self, issues, diffs=None):
        self.issues = issues
        self.diffs = diffs or {}
        self.calls = []

    async def run_command(self, command, args, cwd=None, env=None, ignore_exit_status=False, stream=False):
        self.calls.append([command, *args])
        number = int(args[2])
        if args[:2] == ["issue", "view"]:
            if number not in self.issues:
                return CommandResult("", f"no issue #{number}", 1)
            return CommandResult(json.dumps(self.issues[number]), "", 0)
        if args[:2] == ["pr", "diff"]:
            return CommandResult(self.diffs.get(number, ""), "", 0)
        raise AssertionError(f"unexpected command: {command} {args}")

    def viewed(self):
        return [int(call[3]) for call in self.calls if call[1:3] == ["issue", "view"]]

    def diffed(self):
        return [int(call[3]) for call in self.calls if call[1:3] == ["pr", "diff"]]


@pytest.fixture
def github(monkeypatch):
    fake = FakeGitHub(
        {
            8: make_issue(
                'feat: print "Hello World" on `src/index.ts`',
                'Modify `src/index.ts` to print "Hello World"<!-- internal note -->',
                comments=[("exKAZUu", "This is related to #32 <!-- hidden -->")],
                number=8,
            ),
            9: make_issue(
                "feat: print Hello World",
                "Close #8",
                kind="pull",
                number=9,
                author="app/gen-pr",
            ),
            32: make_issue(
                "feat: Strip HTML comments from issue/PR descriptions before LLM processing",
                "Current Behavior:\n\nProblem:\n\nProposed Solution:",
                number=32,
            ),
        },
        diffs={9: bundled_diff()},
    )
    monkeypatch.setattr(issue, "run_command", fake.run_command)
    return fake


def test_extract_issue_references():
    text = "See #8 and #32, not foo#8bar, #8 again, or #abc"
    assert extract_issue_references(text) == [8, 32]


def test_issue_without_references(github):
    result = asyncio.run(create_issue_info(32))

    assert result["author"] == "exKAZUu"
    assert "Proposed Solution:" in result["description"]
    assert result["comments"] == []
    assert "code_changes" not in result
    assert "referenced_issues" not in result
    assert github.diffed() == []


def test_issue_with_reference_from_comment(github):
    result = asyncio.run(create_issue_info(8))

    assert "internal note" not in result["description"]
    assert result["comments"] == [{"author": "exKAZUu", "body": "This is related to #32 "}]
    assert "code_changes" not in result
    assert len(result["referenced_issues"]) == 1
    referenced = result["referenced_issues"][0]
    assert referenced["title"].startswith("feat: Strip HTML comments")
    assert "code_changes" not in referenced
    assert github.viewed() == [8, 32]


def test_pull_request_includes_truncated_diff_and_reference_chain(github):
    result = asyncio.run(create_issue_info(9))

    assert result["author"] == "app/gen-pr"
    code_changes = result["code_changes"]
    assert "diff --git a/dist/index.js b/dist/index.js" in code_changes
    assert "(large bundled/compiled file diff truncated)" in code_changes
    assert "x" * 100 not in code_changes
    assert "+console.log('Hello World');" in code_changes

    issue_8 = result["referenced_issues"][0]
    assert issue_8["title"].startswith('feat: print "Hello World"')
    assert "code_changes" not in issue_8
    issue_32 = issue_8["referenced_issues"][0]
    assert issue_32["title"].startswith("feat: Strip HTML comments")
    assert "referenced_issues" not in issue_32
    assert github.diffed() == [9]


def test_referenced_pull_request_has_no_diff(github):
    github.issues[40] = make_issue("chore: follow-up", "Follow-up of #9", number=40)

    result = asyncio.run(create_issue_info(40))

    pull_request = result["referenced_issues"][0]
    assert pull_request["title"] == "feat: print Hello World"
    assert "code_changes" not in pull_request
    assert github.diffed() == []


def test_cyclic_references_terminate(monkeypatch):
    fake = FakeGitHub(
        {
            1: make_issue("A", "Depends on #2", number=1),
            2: make_issue("B", "Blocked by #1", number=2),
        }
    )
    monkeypatch.setattr(issue, "run_command", fake.run_command)

    result = asyncio.run(create_issue_info(1))

    issue_b = result["referenced_issues"][0]
    assert issue_b["title"] == "B"
    assert "referenced_issues" not in issue_b
    assert sorted(fake.viewed()) == [1, 2]


def test_already_visited_number_is_skipped(github):
    visited = {8}
    assert asyncio.run(fetch_issue_data(8, visited)) is None
    assert github.calls == []


def test_missing_reference_is_dropped(monkeypatch):
    fake = FakeGitHub({1: make_issue("A", "See #99", number=1)})
    monkeypatch.setattr(issue, "run_command", fake.run_command)

    result = asyncio.run(create_issue_info(1))

    assert "referenced_issues" not in result
    assert fake.viewed() == [1, 99]


def test_missing_root_issue_raises(github):
    with pytest.raises(IssueNotFoundError) as excinfo:
        asyncio.run(create_issue_info(12345))
    assert "#12345" in excinfo.value.message


def test_format_issue_info_keeps_field_order(github):
    info = asyncio.run(create_issue_info(8))

    text = format_issue_info(info)

    assert text.splitlines()[0] == "author: exKAZUu"
    assert list(yaml.safe_load(text)) == [
        "author",
        "title",
        "description",
        "comments",
        "referenced_issues",
    ]


class SlowGitHub(FakeGitHub):
    def __init__(self, issues, delays):
        super().__init__(issues)
        self.delays = delays

    async def run_command(self, command, args, **kwargs):
        await asyncio.sleep(self.delays.get(int(args[2]), 0))
        return await super().run_command(command, args, **kwargs)


def test_referenced_issues_keep_reference_order(monkeypatch):
    fake = SlowGitHub(
        {
            1: make_issue("root", "See #2 and #3", number=1),
            2: make_issue("two", "", number=2),
            3: make_issue("three", "", number=3),
        },
        delays={2: 0.05},
    )
    monkeypatch.setattr(issue, "run_command", fake.run_command)

    result = asyncio.run(create_issue_info(1))

    assert [info["title"] for info in result["referenced_issues"]] == ["two", "three"]
    assert fake.viewed()[-1] == 2
