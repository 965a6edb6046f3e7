"""Summarize buffered terminal output into commands, touched files and errors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")
PROMPT_PREFIX = re.compile(r"^(?:[$%]\s|PS\s.*?>\s)")
GIT_STATUS_LINE = re.compile(r"^\s*[MAD]\s+(\S.*)$")
SOURCE_PATH = re.compile(
    r"([A-Za-z0-9_\-./]+\.(?:py|ts|tsx|js|jsx|json|md|css|html|toml|yml|yaml|sql))\b"
)
PACKAGE_CHANGE = re.compile(r"\b(?:added|updated|removed)\s+(.+)")
ERROR_LINE = re.compile(r"^(?:error|fatal):|Error:|Exception:", re.IGNORECASE)
ERROR_MARKERS = ("FAILED", "[ERROR]", "✖", "⨯")

MAX_ERRORS = 20

_FILE_COMMANDS = frozenset({"cd", "ls", "pwd", "mkdir", "rm", "cp", "mv"})
_PACKAGE_MANAGERS = frozenset({"npm", "yarn", "pnpm", "pip", "uv", "poetry"})
_INTERPRETERS = frozenset({"node", "python", "python3", "ruby", "go"})


@dataclass(frozen=True)
class SessionInsight:
    title: str
    commands: list[str] = field(default_factory=list)
    files_modified: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    summary: str = ""


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub("", text)


def _lines(output: str) -> list[str]:
    return output.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def extract_commands(output: str) -> list[str]:
    commands: list[str] = []
    for line in _lines(output):
        stripped = line.strip()
        if not PROMPT_PREFIX.match(stripped):
            continue
        command = PROMPT_PREFIX.sub("", stripped, count=1).strip()
        if command:
            commands.append(command)
    return commands


def extract_file_paths(output: str) -> list[str]:
    files: dict[str, None] = {}
    for line in _lines(output):
        git_match = GIT_STATUS_LINE.match(line)
        if git_match:
            files[git_match.group(1).strip()] = None
            continue
        for match in SOURCE_PATH.finditer(line):
            files[match.group(1)] = None
        package_match = PACKAGE_CHANGE.search(line)
        if package_match:
            files[package_match.group(1).strip()] = None
    return list(files)


def extract_errors(output: str, *, limit: int = MAX_ERRORS) -> list[str]:
    errors: dict[str, None] = {}
    for line in _lines(output):
        stripped = line.strip()
        if not stripped:
            continue
        if ERROR_LINE.search(stripped) or any(marker in stripped for marker in ERROR_MARKERS):
            errors[stripped] = None
            if len(errors) >= limit:
                break
    return list(errors)


def _generate_title(commands: list[str], errors: list[str]) -> str:
    first = commands[0].split() if commands else []
    name = first[0] if first else ""
    if errors:
        return f"Session with errors: {name or 'terminal activity'}"
    if not name:
        return "Terminal session"
    if name == "git":
        return f"Git {first[1] if len(first) > 1 else 'operations'}"
    if name in _PACKAGE_MANAGERS:
        return f"Package management: {name}"
    if name in _FILE_COMMANDS:
        return f"File operations: {name}"
    if name in _INTERPRETERS:
        return f"Running {name} script"
    return f"Terminal session: {name}"


def _generate_summary(commands: list[str], files: list[str], errors: list[str]) -> str:
    sections: list[str] = []
    for heading, items in (
        ("Commands executed", commands),
        ("Files modified", files),
        ("Errors encountered", errors),
    ):
        if items:
            body = "\n".join(f"  - {item}" for item in items)
            sections.append(f"{heading}:\n{body}")
    if not sections:
        return "No significant activity recorded in this session."
    return "\n\n".join(sections)


def summarize_session(output: str, *, title: str = "") -> SessionInsight:
    clean = strip_ansi(output)
    commands = extract_commands(clean)
    files = extract_file_paths(clean)
    errors = extract_errors(clean)
    return SessionInsight(
        title=title.strip() or _generate_title(commands, errors),
        commands=commands,
        files_modified=files,
        errors=errors,
        summary=_generate_summary(commands, files, errors),
    )
