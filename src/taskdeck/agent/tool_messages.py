"""Human-readable progress messages for agent tool invocations."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable, Mapping
from typing import Any

COMMAND_PREVIEW_LIMIT = 60

TOOL_VERBS: dict[str, str] = {
    "Read": "Reading file",
    "Write": "Writing file",
    "Edit": "Editing file",
    "MultiEdit": "Editing file",
    "Bash": "Running command",
    "Glob": "Searching files",
    "Grep": "Searching code",
    "WebFetch": "Fetching web page",
    "WebSearch": "Searching the web",
    "TodoWrite": "Updating todo list",
    "NotebookEdit": "Editing notebook",
    "Task": "Running subagent",
    "Skill": "Using skill",
    "AskUserQuestion": "Asking a question",
}

_CD_SEGMENT = re.compile(r"^cd\s+\S")
_AND_SPLIT = re.compile(r"\s*&&\s*")

_INSTALL = re.compile(
    r"^(?:(?:npm|pnpm|bun)\s+(?:install|i|add)"
    r"|yarn\s+(?:install|add)|yarn(?=\s*$)"
    r"|(?:pip3?|uv\s+pip|python3?\s+-m\s+pip)\s+install"
    r"|(?:uv|poetry|cargo)\s+add)(?=\s|$)(?P<rest>.*)$"
)
_TESTS = re.compile(
    r"^(?:(?:npm|pnpm|yarn|bun)\s+(?:run\s+)?test"
    r"|(?:python3?\s+-m\s+)?pytest"
    r"|(?:npx\s+)?(?:vitest|jest)"
    r"|cargo\s+test|go\s+test)(?=\s|$)"
)
_BUILD = re.compile(
    r"^(?:(?:npm|pnpm|yarn|bun)\s+run\s+build"
    r"|cargo\s+build|make|(?:npx\s+)?tsc|(?:npx\s+)?vite\s+build)(?=\s|$)"
)
_FORMAT = re.compile(
    r"^(?:(?:npx\s+)?prettier|ruff\s+format|black"
    r"|(?:npm|pnpm|yarn)\s+run\s+format)(?=\s|$)"
)
_LINT = re.compile(
    r"^(?:(?:npx\s+)?eslint|ruff|flake8|mypy"
    r"|(?:npm|pnpm|yarn)\s+run\s+lint)(?=\s|$)"
)
_GIT = re.compile(r"^git\s+(?P<sub>[\w-]+)")

_GIT_PHRASES = {
    "status": "Checking git status",
    "diff": "Reviewing changes",
    "log": "Reviewing commit history",
    "add": "Staging changes",
    "commit": "Committing changes",
    "push": "Pushing changes",
    "pull": "Pulling changes",
    "fetch": "Fetching from remote",
    "checkout": "Switching branches",
    "switch": "Switching branches",
    "merge": "Merging branches",
    "rebase": "Rebasing branch",
}

_REQUIREMENT_FLAGS = frozenset({"-r", "--requirement", "-e", "--editable", "."})


def generic_tool_message(name: str) -> str:
    if name in TOOL_VERBS:
        return TOOL_VERBS[name]
    if name.startswith("mcp__"):
        parts = name.split("__")
        if len(parts) >= 3 and parts[1] and parts[2]:
            return f"Using {'__'.join(parts[2:])} ({parts[1]})"
    return f"Using {name or 'tool'}"


def _strip_cd_prefix(command: str) -> str:
    segments = _AND_SPLIT.split(command.strip())
    while len(segments) > 1 and _CD_SEGMENT.match(segments[0]):
        segments.pop(0)
    return " && ".join(segments)


def _install_message(rest: str) -> str:
    tokens = rest.split()
    if any(token in _REQUIREMENT_FLAGS for token in tokens):
        return "Installing dependencies"
    packages = [token for token in tokens if not token.startswith("-")]
    if not packages:
        return "Installing dependencies"
    return f"Installing {' '.join(packages)}"


def truncate_command(command: str, limit: int = COMMAND_PREVIEW_LIMIT) -> str:
    if len(command) <= limit:
        return command
    return f"{command[:limit]}..."


def bash_message(command: str) -> str:
    """Describe a shell command by the operation it most likely performs."""
    command = _strip_cd_prefix(command)
    if not command:
        return TOOL_VERBS["Bash"]

    install = _INSTALL.match(command)
    if install:
        return _install_message(install.group("rest"))
    if _TESTS.match(command):
        return "Running tests"
    if _BUILD.match(command):
        return "Building project"
    if _FORMAT.match(command):
        return "Formatting code"
    if _LINT.match(command):
        return "Running linter"
    git = _GIT.match(command)
    if git:
        sub = git.group("sub")
        return _GIT_PHRASES.get(sub, f"Running git {sub}")
    return f"Running: {truncate_command(command)}"


def _file_message(verb: str) -> Callable[[Mapping[str, Any]], str | None]:
    def render(tool_input: Mapping[str, Any]) -> str | None:
        path = tool_input.get("file_path") or tool_input.get("notebook_path")
        if not isinstance(path, str) or not path.strip():
            return None
        name = posixpath.basename(path.replace("\\", "/").rstrip("/"))
        return f"{verb} {name or path}"

    return render


def _glob_message(tool_input: Mapping[str, Any]) -> str | None:
    pattern = tool_input.get("pattern")
    return f"Searching for {pattern}" if isinstance(pattern, str) and pattern else None


def _grep_message(tool_input: Mapping[str, Any]) -> str | None:
    pattern = tool_input.get("pattern")
    return f'Searching for "{pattern}"' if isinstance(pattern, str) and pattern else None


def _bash_input_message(tool_input: Mapping[str, Any]) -> str | None:
    command = tool_input.get("command")
    return bash_message(command) if isinstance(command, str) else None


def _task_message(tool_input: Mapping[str, Any]) -> str | None:
    description = tool_input.get("description")
    if isinstance(description, str) and description.strip():
        return f"Running subagent: {description.strip()}"
    return None


def _todo_message(tool_input: Mapping[str, Any]) -> str | None:
    todos = tool_input.get("todos")
    if not isinstance(todos, list) or not todos:
        return None
    for item in todos:
        if isinstance(item, dict) and item.get("status") == "in_progress":
            active = item.get("activeForm") or item.get("content")
            if isinstance(active, str) and active.strip():
                return active.strip()
    return f"Updating {len(todos)} todos"


_INPUT_MESSAGES: dict[str, Callable[[Mapping[str, Any]], str | None]] = {
    "Read": _file_message("Reading"),
    "Write": _file_message("Writing"),
    "Edit": _file_message("Editing"),
    "MultiEdit": _file_message("Editing"),
    "NotebookEdit": _file_message("Editing"),
    "Glob": _glob_message,
    "Grep": _grep_message,
    "Bash": _bash_input_message,
    "Task": _task_message,
    "TodoWrite": _todo_message,
}


def format_tool_message(name: str, tool_input: Mapping[str, Any] | None = None) -> str:
    render = _INPUT_MESSAGES.get(name)
    if render is not None and isinstance(tool_input, Mapping):
        message = render(tool_input)
        if message:
            return message
    return generic_tool_message(name)
