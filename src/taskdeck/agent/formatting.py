"""Render agent stdout/stderr for display in a terminal view."""

from __future__ import annotations

import json
import re
import textwrap

from taskdeck.agent.models import StartTaskOptions
from taskdeck.agent.parser import LINE_BREAK, JsonObject, system_message
from taskdeck.agent.tool_messages import format_tool_message
from taskdeck.security import command_for_log

CRLF = "\r\n"
RESET = "\x1b[0m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
CYAN = "\x1b[36m"
DIM = "\x1b[2m"

BANNER_WIDTH = 66
_NEWLINES = re.compile(r"\r\n|\n|\r")


def _styled(color: str, text: str) -> str:
    return f"{color}{text}{RESET}{CRLF}"


def _text_lines(text: str) -> str:
    return "".join(f"{line}{CRLF}" for line in _NEWLINES.split(text))


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _tool_result_error(block: JsonObject) -> str:
    content = block.get("content")
    if isinstance(content, list):
        content = "\n".join(
            item["text"] for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)
        )
    return _first_line(content) if isinstance(content, str) else ""


class DisplayFormatter:
    """Turns stream-json stdout into readable terminal text.

    JSON lines are rendered (assistant text, tool markers, errors, completion);
    anything else passes through unchanged. Incomplete trailing lines are held
    until the next chunk or :meth:`flush`.
    """

    def __init__(self) -> None:
        self._carry = ""

    def feed(self, chunk: str) -> str:
        if not chunk:
            return ""
        lines = LINE_BREAK.split(self._carry + chunk)
        self._carry = lines.pop()
        return "".join(self.render_line(line) for line in lines)

    def flush(self) -> str:
        line, self._carry = self._carry, ""
        return self.render_line(line) if line else ""

    def render_line(self, line: str) -> str:
        stripped = line.strip()
        if not stripped.startswith("{"):
            return f"{line}{CRLF}"
        try:
            data = json.loads(stripped)
        except ValueError:
            return f"{line}{CRLF}"
        if not isinstance(data, dict):
            return f"{line}{CRLF}"

        event_type = data.get("type")
        if event_type == "assistant":
            return self._render_assistant(data)
        if event_type == "user":
            return self._render_user(data)
        if event_type == "result":
            return self._render_result(data)
        if event_type == "system":
            message = system_message(data)
            return _styled(DIM, message) if message else ""
        return ""

    def _render_assistant(self, data: JsonObject) -> str:
        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            return ""
        rendered: list[str] = []
        for block in content:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text" and isinstance(block.get("text"), str) and block["text"].strip():
                rendered.append(_text_lines(block["text"].strip()))
            elif block.get("type") == "tool_use":
                name = block.get("name") if isinstance(block.get("name"), str) else "tool"
                tool_input = block.get("input") if isinstance(block.get("input"), dict) else {}
                rendered.append(_styled(CYAN, f"● {format_tool_message(name, tool_input)}"))
        return "".join(rendered)

    def _render_user(self, data: JsonObject) -> str:
        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            return ""
        rendered: list[str] = []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_result" and block.get("is_error") is True:
                detail = _tool_result_error(block) or "Tool failed"
                rendered.append(_styled(RED, f"✗ {detail}"))
        return "".join(rendered)

    def _render_result(self, data: JsonObject) -> str:
        subtype = data.get("subtype")
        result = data.get("result")
        if subtype == "success" and data.get("is_error") is not True:
            header = _styled(GREEN, "✓ Completed")
        else:
            header = _styled(RED, f"✗ {subtype or 'error'}")
        if isinstance(result, str) and result.strip():
            return header + _text_lines(result.strip())
        return header


def format_stderr(chunk: str) -> str:
    if not chunk:
        return ""
    return f"{RED}{_NEWLINES.sub(CRLF, chunk)}{RESET}"


def _banner_row(text: str) -> str:
    return f"║ {text.ljust(BANNER_WIDTH)} ║{CRLF}"


def build_startup_banner(argv: list[str], options: StartTaskOptions) -> str:
    """Boxed header shown before the agent's own output."""
    border = "═" * (BANNER_WIDTH + 2)
    command = command_for_log(argv[:-1]) if len(argv) > 1 else command_for_log(argv)
    rows = [
        f"╔{border}╗{CRLF}",
        _banner_row("Starting agent"),
        f"╠{border}╣{CRLF}",
    ]
    for label, value in (
        ("Command", command),
        ("Path", options.project_path),
        ("Session", options.session_id),
        ("Task ID", options.task_id),
    ):
        wrapped = textwrap.wrap(f"{label}: {value}", BANNER_WIDTH, break_long_words=True) or [f"{label}:"]
        rows.extend(_banner_row(line) for line in wrapped)
    rows.append(f"╚{border}╝{CRLF}")
    rows.append(CRLF)
    return "".join(rows)
