from __future__ import annotations

import pytest

from taskdeck.agent.tool_messages import bash_message, format_tool_message, generic_tool_message


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("npm install lodash", "Installing lodash"),
        ("pnpm add react react-dom", "Installing react react-dom"),
        ("npm install", "Installing dependencies"),
        ("yarn", "Installing dependencies"),
        ("pip install -r requirements.txt", "Installing dependencies"),
        ("pip install --upgrade requests", "Installing requests"),
        ("uv add httpx", "Installing httpx"),
        ("cargo add serde", "Installing serde"),
        ("npm test", "Running tests"),
        ("yarn test --watch=false", "Running tests"),
        ("pytest -q tests/", "Running tests"),
        ("python -m pytest", "Running tests"),
        ("npx vitest run", "Running tests"),
        ("go test ./...", "Running tests"),
        ("npm run build", "Building project"),
        ("cargo build --release", "Building project"),
        ("tsc --noEmit", "Building project"),
        ("ruff format .", "Formatting code"),
        ("npx prettier --write src", "Formatting code"),
        ("ruff check src", "Running linter"),
        ("npx eslint .", "Running linter"),
        ("mypy src", "Running linter"),
        ("git status", "Checking git status"),
        ("git diff HEAD~1", "Reviewing changes"),
        ("git log --oneline", "Reviewing commit history"),
        ("git add -A", "Staging changes"),
        ('git commit -m "wip"', "Committing changes"),
        ("git push origin main", "Pushing changes"),
        ("git pull", "Pulling changes"),
        ("git checkout -b feature", "Switching branches"),
        ("git switch main", "Switching branches"),
        ("git stash", "Running git stash"),
        ("cd /repo && npm install lodash", "Installing lodash"),
        ("cd /repo && cd web && git status", "Checking git status"),
        ("ls -la", "Running: ls -la"),
        ("", "Running command"),
    ],
)
def test_bash_message_pattern_table(command: str, expected: str) -> None:
    assert bash_message(command) == expected


def test_bash_message_does_not_mistake_npm_init_for_install() -> None:
    assert bash_message("npm init -y") == "Running: npm init -y"


def test_bash_fallback_truncates_long_commands() -> None:
    command = "echo " + "a" * 100

    message = bash_message(command)

    assert message == f"Running: {command[:60]}..."


@pytest.mark.parametrize(
    ("name", "tool_input", "expected"),
    [
        ("Read", {"file_path": "/repo/src/app.py"}, "Reading app.py"),
        ("Write", {"file_path": "notes.md"}, "Writing notes.md"),
        ("Edit", {"file_path": "/repo/main.go"}, "Editing main.go"),
        ("MultiEdit", {"file_path": "/repo/a.ts"}, "Editing a.ts"),
        ("Glob", {"pattern": "**/*.tsx"}, "Searching for **/*.tsx"),
        ("Grep", {"pattern": "def main"}, 'Searching for "def main"'),
        ("Task", {"description": "Review auth module"}, "Running subagent: Review auth module"),
        (
            "TodoWrite",
            {
                "todos": [
                    {"content": "Write tests", "status": "completed", "activeForm": "Writing tests"},
                    {"content": "Fix bug", "status": "in_progress", "activeForm": "Fixing bug"},
                ]
            },
            "Fixing bug",
        ),
        ("TodoWrite", {"todos": [{"content": "a", "status": "pending"}, {"content": "b"}]}, "Updating 2 todos"),
        ("Read", {}, "Reading file"),
        ("Grep", {"pattern": ""}, "Searching code"),
        ("Bash", {"command": 5}, "Running command"),
        ("WebFetch", {"url": "https://example.com"}, "Fetching web page"),
    ],
)
def test_format_tool_message_uses_input(name: str, tool_input: dict, expected: str) -> None:
    assert format_tool_message(name, tool_input) == expected


def test_generic_messages_for_unknown_and_mcp_tools() -> None:
    assert generic_tool_message("mcp__github__create_issue") == "Using create_issue (github)"
    assert generic_tool_message("mcp__broken") == "Using mcp__broken"
    assert generic_tool_message("CustomTool") == "Using CustomTool"
    assert generic_tool_message("") == "Using tool"
    assert format_tool_message("NotebookEdit", None) == "Editing notebook"
